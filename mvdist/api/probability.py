"""
mvdist.api.probability
======================

Thread-safe rectangle probabilities and critical values.

Both operations follow the same pipeline:

1. validate shapes and limits (raises `ContractViolation` subclasses)
2. marshal matrices to column-major buffers and bound kinds to codes
3. call the backend once, inside the process-wide invocation gate
4. interpret the status code into an `MVResult` or an `IntegrationError`

Any number of threads may call these functions; backend calls never overlap.
Do not call them from inside a backend: the gate is not reentrant.

Examples
--------
>>> from mvdist.api.probability import rectangle_probability, critical_value
>>> from mvdist.core.names import BoundKind
>>> res = rectangle_probability(
...     covariance=[[1.0]], degrees_of_freedom=0,
...     lower=[-1.96], upper=[1.96], bound_kinds=[BoundKind.BOTH_SIDED],
...     constraints=[[1.0]], shift=[0.0])
>>> round(res.value, 4), res.status.value
(0.95, 'normal')
>>> crit = critical_value(
...     covariance=[[1.0]], degrees_of_freedom=0,
...     lower=[-1.0], upper=[1.0], bound_kinds=[BoundKind.BOTH_SIDED],
...     constraints=[[1.0]], alpha=0.05)
>>> round(crit.value, 3)
1.96
"""

from __future__ import annotations
import logging
import math
import numbers
import threading
from typing import Any, List, Optional, Sequence, Tuple

import numpy as np

from mvdist.backends.base import MVBackend
from mvdist.backends.genz import GenzBackend
from mvdist.core.config import default_settings
from mvdist.core.errors import ContractViolation
from mvdist.core.gate import default_gate
from mvdist.core.layout import (
    BoundKindLike,
    as_matrix,
    as_vector,
    check_dimensions,
    encode_bounds,
    to_column_major,
)
from mvdist.core.names import MVStatus
from mvdist.core.result import MVResult, RawOutcome, interpret_critical, interpret_rectangle

logger = logging.getLogger(__name__)

_default_backend: Optional[MVBackend] = None
_default_backend_init = threading.Lock()


def default_backend() -> MVBackend:
    """Return the process-wide `GenzBackend`, creating it on first use."""
    global _default_backend
    if _default_backend is None:
        with _default_backend_init:
            if _default_backend is None:
                _default_backend = GenzBackend(seed=default_settings().seed)
    return _default_backend


def _finite_real(value: Any) -> bool:
    return not isinstance(value, bool) and isinstance(value, numbers.Real) and math.isfinite(value)


def _degrees_of_freedom(value: Any) -> int:
    if not _finite_real(value) or int(value) != value:
        raise ContractViolation(f"degrees_of_freedom must be an integer, got {value!r}")
    return int(value)


def _limits(
    max_evaluations: Optional[int],
    absolute_tolerance: Optional[float],
    relative_tolerance: Optional[float] = None,
) -> Tuple[int, float, float]:
    settings = default_settings()
    maxpts = settings.max_evaluations if max_evaluations is None else max_evaluations
    abseps = settings.absolute_tolerance if absolute_tolerance is None else absolute_tolerance
    releps = settings.relative_tolerance if relative_tolerance is None else relative_tolerance

    if isinstance(maxpts, bool) or not isinstance(maxpts, numbers.Integral) or maxpts <= 0:
        raise ContractViolation(f"max_evaluations must be a positive integer, got {maxpts!r}")
    if not _finite_real(abseps) or abseps < 0:
        raise ContractViolation(
            f"absolute_tolerance must be finite and non-negative, got {abseps!r}"
        )
    if not _finite_real(releps) or releps < 0:
        raise ContractViolation(
            f"relative_tolerance must be finite and non-negative, got {releps!r}"
        )
    return int(maxpts), float(abseps), float(releps)


def _encode(bound_kinds: Sequence[BoundKindLike]) -> np.ndarray:
    try:
        return encode_bounds(bound_kinds)
    except ValueError as exc:
        raise ContractViolation(f"invalid bound kind: {exc}") from exc


def _log_outcome(operation: str, n: int, m: int, raw: RawOutcome) -> None:
    logger.debug(
        "%s: n=%d m=%d status=%d value=%.6g error=%.3g evaluations=%d",
        operation, n, m, raw.status_code, raw.value, raw.error, raw.evaluations,
    )


def _warn_if_limited(operation: str, result: MVResult) -> MVResult:
    if result.status is MVStatus.EVALUATION_LIMIT_REACHED:
        logger.warning(
            "%s stopped at the evaluation limit (%d evaluations, error %.3g)",
            operation, result.evaluations, result.error,
        )
    return result


def rectangle_probability(
    covariance: Any,
    degrees_of_freedom: int,
    lower: Any,
    upper: Any,
    bound_kinds: Sequence[BoundKindLike],
    constraints: Any,
    shift: Any,
    max_evaluations: Optional[int] = None,
    absolute_tolerance: Optional[float] = None,
    relative_tolerance: Optional[float] = None,
    *,
    backend: Optional[MVBackend] = None,
) -> MVResult:
    """
    Probability that every constraint row lies within its bounds.

    Row ``i`` of the region is ``lower[i] <= (constraints[i] @ X + shift[i]) / s <= upper[i]``
    where X ~ N(0, covariance) and ``s = 1`` for ``degrees_of_freedom <= 0``
    (multivariate normal) or ``s = sqrt(chi2(nu) / nu)`` (Student-t).

    Parameters
    ----------
    covariance : (n, n) array-like
        Symmetric positive semidefinite covariance, row-major
    degrees_of_freedom : int
        0 for the normal distribution, otherwise Student-t degrees of freedom
    lower, upper : (m,) array-like
        Row limits; the inactive side of a row is ignored
    bound_kinds : sequence of BoundKind, length m
        Which limits of each row are active
    constraints : (m, n) array-like
        Linear constraint rows, row-major
    shift : (m,) array-like
        Non-centrality added to each row
    max_evaluations, absolute_tolerance, relative_tolerance : optional
        Integration limits; ``None`` uses `default_settings()`
    backend : MVBackend, optional
        Integration routine; defaults to `default_backend()`

    Returns
    -------
    MVResult
        ``status`` tells a converged estimate from one stopped at the limit

    Raises
    ------
    ContractViolation
        Inconsistent shapes or limits; the backend is not called
    IntegrationError
        The backend reported invalid dimensionality (2), a covariance that is
        not positive semidefinite (3) or an unknown status
    """
    cov = as_matrix("covariance", covariance)
    con = as_matrix("constraints", constraints)
    lo = as_vector("lower", lower)
    hi = as_vector("upper", upper)
    delta = as_vector("shift", shift)
    kinds: List[BoundKindLike] = list(bound_kinds)
    n, m = check_dimensions(cov, con, lo, hi, kinds, shift=delta)
    nu = _degrees_of_freedom(degrees_of_freedom)
    maxpts, abseps, releps = _limits(max_evaluations, absolute_tolerance, relative_tolerance)

    infin = _encode(kinds)
    flat_cov = to_column_major(cov)
    flat_con = to_column_major(con)
    routine = backend if backend is not None else default_backend()
    guard = default_gate()

    raw = RawOutcome(
        *guard.with_exclusive_access(
            lambda: routine.mvdist(
                n, flat_cov, nu, m, lo, flat_con, hi, infin, delta, maxpts, abseps, releps
            )
        )
    )
    _log_outcome("rectangle_probability", n, m, raw)
    return _warn_if_limited("rectangle_probability", interpret_rectangle(raw))


def critical_value(
    covariance: Any,
    degrees_of_freedom: int,
    lower: Any,
    upper: Any,
    bound_kinds: Sequence[BoundKindLike],
    constraints: Any,
    alpha: float,
    max_evaluations: Optional[int] = None,
    absolute_tolerance: Optional[float] = None,
    *,
    backend: Optional[MVBackend] = None,
) -> MVResult:
    """
    Scale ``c`` such that the region with limits ``c * lower``, ``c * upper`` has
    probability ``1 - alpha``.

    With ``lower = -1``, ``upper = 1`` and `BOTH_SIDED` rows this is the
    two-sided equicoordinate critical value; with `UPPER_ONLY` rows and
    ``upper = 1`` the one-sided one. Active lower limits must be <= 0 and
    active upper limits >= 0, otherwise the backend reports invalid bounds.

    Parameters
    ----------
    covariance, degrees_of_freedom, lower, upper, bound_kinds, constraints :
        As in `rectangle_probability`
    alpha : float
        Exceedance probability in (0, 1)
    max_evaluations, absolute_tolerance : optional
        Integration limits; ``None`` uses `default_settings()`
    backend : optional
        As in `rectangle_probability`

    Returns
    -------
    MVResult
        ``value`` is the critical scale and ``error`` its estimated error

    Raises
    ------
    ContractViolation
        Inconsistent shapes or limits; the backend is not called
    IntegrationError
        The backend reported invalid bounds (2) or an unknown status
    """
    cov = as_matrix("covariance", covariance)
    con = as_matrix("constraints", constraints)
    lo = as_vector("lower", lower)
    hi = as_vector("upper", upper)
    kinds: List[BoundKindLike] = list(bound_kinds)
    n, m = check_dimensions(cov, con, lo, hi, kinds)
    nu = _degrees_of_freedom(degrees_of_freedom)
    if not _finite_real(alpha) or not 0.0 < alpha < 1.0:
        raise ContractViolation(f"alpha must be a number in (0, 1), got {alpha!r}")
    maxpts, abseps, _ = _limits(max_evaluations, absolute_tolerance)

    infin = _encode(kinds)
    flat_cov = to_column_major(cov)
    flat_con = to_column_major(con)
    routine = backend if backend is not None else default_backend()
    guard = default_gate()

    raw = RawOutcome(
        *guard.with_exclusive_access(
            lambda: routine.mvcrit(
                n, flat_cov, nu, m, lo, flat_con, hi, infin, float(alpha), maxpts, abseps
            )
        )
    )
    _log_outcome("critical_value", n, m, raw)
    return _warn_if_limited("critical_value", interpret_critical(raw))
