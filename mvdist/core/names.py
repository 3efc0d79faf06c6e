"""
mvdist.core.names
=================

Typed names shared across the package.

- `BoundKind`: which of a constraint row's lower/upper limits are active.
- `BOUND_CODES`: the fixed integer codes the integration routine understands.
- `MVStatus`: convergence classification of a successful integration.

The code table is the only place where a `BoundKind` meets its integer code;
`BoundKind.code` and `BoundKind.from_code` both read from it.

Examples
--------
>>> from mvdist.core.names import BoundKind, MVStatus
>>> BoundKind.BOTH_SIDED.code
2
>>> BoundKind.from_code(-1) is BoundKind.UNBOUNDED
True
>>> BoundKind("upper_only").code
0
>>> MVStatus.NORMAL.value
'normal'
"""

from __future__ import annotations
from enum import Enum
from typing import Dict


class BoundKind(str, Enum):
    """Active limits of one constraint row.

    - UNBOUNDED: (-inf, inf), the row does not constrain anything
    - UPPER_ONLY: (-inf, upper]
    - LOWER_ONLY: [lower, inf)
    - BOTH_SIDED: [lower, upper]
    """

    UNBOUNDED = "unbounded"
    UPPER_ONLY = "upper_only"
    LOWER_ONLY = "lower_only"
    BOTH_SIDED = "both_sided"

    @property
    def code(self) -> int:
        """Integer code passed across the integration boundary."""
        return BOUND_CODES[self]

    @classmethod
    def from_code(cls, code: int) -> "BoundKind":
        """Inverse of `code`; raises ``ValueError`` for codes outside the table."""
        try:
            return _KINDS_BY_CODE[int(code)]
        except KeyError:
            raise ValueError(f"Unknown bound code: {code}") from None


BOUND_CODES: Dict[BoundKind, int] = {
    BoundKind.UNBOUNDED: -1,
    BoundKind.UPPER_ONLY: 0,
    BoundKind.LOWER_ONLY: 1,
    BoundKind.BOTH_SIDED: 2,
}

_KINDS_BY_CODE: Dict[int, BoundKind] = {code: kind for kind, code in BOUND_CODES.items()}


class MVStatus(str, Enum):
    """Convergence classification of a successful integration.

    - NORMAL: converged within the requested tolerance
    - EVALUATION_LIMIT_REACHED: stopped at the evaluation cap; the value and
      error are still the best available estimate
    """

    NORMAL = "normal"
    EVALUATION_LIMIT_REACHED = "evaluation_limit_reached"
