"""
mvdist.core.result
==================

Interpretation of the integration routine's raw outputs.

The routine answers every call with ``(error, value, evaluations, status)``.
Status 0 and 1 are successes; every other code is a failure. The probability
and critical-value operations share the success codes but not their failure
vocabularies, so each has its own table.

Examples
--------
>>> from mvdist.core.result import RawOutcome, interpret_rectangle
>>> res = interpret_rectangle(RawOutcome(error=1e-6, value=0.25, evaluations=1000, status_code=1))
>>> res.status.value, res.value, res.converged
('evaluation_limit_reached', 0.25, False)
>>> interpret_rectangle(RawOutcome(0.0, 0.0, 0, 3))
Traceback (most recent call last):
...
mvdist.core.errors.NotPositiveSemidefiniteError: covariance matrix not positive semidefinite
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, NamedTuple

from mvdist.core.errors import (
    IntegrationError,
    InvalidBoundsError,
    InvalidDimensionError,
    NotPositiveSemidefiniteError,
    UnrecognizedStatusError,
)
from mvdist.core.names import MVStatus


class RawOutcome(NamedTuple):
    """The routine's return tuple, in boundary order."""

    error: float
    value: float
    evaluations: int
    status_code: int


@dataclass(frozen=True)
class MVResult:
    """Outcome of one successful integration.

    Attributes:
        value: Probability (or critical value) estimate
        error: Estimated absolute error of `value`
        evaluations: Number of integrand evaluations used
        status: Whether the estimate converged or hit the evaluation limit
    """

    value: float
    error: float
    evaluations: int
    status: MVStatus

    @property
    def converged(self) -> bool:
        return self.status is MVStatus.NORMAL


SUCCESS_CODES: Dict[int, MVStatus] = {
    0: MVStatus.NORMAL,
    1: MVStatus.EVALUATION_LIMIT_REACHED,
}

FailureFactory = Callable[[int], IntegrationError]

RECTANGLE_FAILURES: Dict[int, FailureFactory] = {
    2: InvalidDimensionError,
    3: NotPositiveSemidefiniteError,
}

CRITICAL_FAILURES: Dict[int, FailureFactory] = {
    2: InvalidBoundsError,
}


def interpret(raw: RawOutcome, failures: Mapping[int, FailureFactory]) -> MVResult:
    """Map a raw outcome to an `MVResult`, or raise the matching failure."""
    code = int(raw.status_code)
    if code in SUCCESS_CODES:
        return MVResult(
            value=float(raw.value),
            error=float(raw.error),
            evaluations=int(raw.evaluations),
            status=SUCCESS_CODES[code],
        )
    factory = failures.get(code)
    if factory is None:
        raise UnrecognizedStatusError(code)
    raise factory(code)


def interpret_rectangle(raw: RawOutcome) -> MVResult:
    return interpret(raw, RECTANGLE_FAILURES)


def interpret_critical(raw: RawOutcome) -> MVResult:
    return interpret(raw, CRITICAL_FAILURES)
