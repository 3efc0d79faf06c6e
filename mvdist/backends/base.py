"""
mvdist.backends.base
====================

The calling contract of the integration routine.

A backend receives flat, column-major buffers and integer bound codes in a
fixed argument order and answers with ``(error, value, evaluations, status)``.
Backends are assumed to be non-reentrant; the public operations only call them
through the invocation gate.

No numerics here, only the contract.

Doctest (a stand-in that reports a fixed probability):
>>> from mvdist.backends.base import MVBackend
>>> class Fixed:
...     def mvdist(self, n, covariance, nu, m, lower, constraints, upper, infin,
...                delta, maxpts, abseps, releps):
...         return 0.0, 0.5, 1, 0
...     def mvcrit(self, n, covariance, nu, m, lower, constraints, upper, infin,
...                alpha, maxpts, abseps):
...         return 0.0, 1.96, 1, 0
>>> isinstance(Fixed(), MVBackend)
True
"""

from __future__ import annotations
from typing import Protocol, Tuple, runtime_checkable

import numpy as np

# (error, value, evaluations, status_code)
BoundaryOutcome = Tuple[float, float, int, int]


@runtime_checkable
class MVBackend(Protocol):
    """Rectangle probabilities and critical values over linear constraints.

    Arguments shared by both calls:
        n: Dimensionality of the distribution
        covariance: n*n covariance, column-major
        nu: Degrees of freedom; ``nu <= 0`` selects the normal distribution
        m: Number of constraint rows
        lower, upper: Row limits, length m
        constraints: m*n constraint matrix, column-major
        infin: Bound codes, length m (-1, 0, 1, 2)
        maxpts: Maximum integrand evaluations
        abseps: Absolute error tolerance
    """

    def mvdist(
        self,
        n: int,
        covariance: np.ndarray,
        nu: int,
        m: int,
        lower: np.ndarray,
        constraints: np.ndarray,
        upper: np.ndarray,
        infin: np.ndarray,
        delta: np.ndarray,
        maxpts: int,
        abseps: float,
        releps: float,
    ) -> BoundaryOutcome:
        """Probability of ``lower <= (C X + delta) / s <= upper``.

        Status codes: 0 converged, 1 evaluation limit reached, 2 invalid
        dimensionality, 3 covariance not positive semidefinite.
        """
        ...

    def mvcrit(
        self,
        n: int,
        covariance: np.ndarray,
        nu: int,
        m: int,
        lower: np.ndarray,
        constraints: np.ndarray,
        upper: np.ndarray,
        infin: np.ndarray,
        alpha: float,
        maxpts: int,
        abseps: float,
    ) -> BoundaryOutcome:
        """Scale c with ``P(c * lower <= C X / s <= c * upper) = 1 - alpha``.

        Status codes: 0 converged, 1 evaluation limit reached, 2 invalid
        bounds.
        """
        ...
