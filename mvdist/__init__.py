"""
mvdist: thread-safe multivariate normal and t probabilities.

The package wraps a numerical integration routine for rectangle (and general
linear-constraint) probabilities and critical values under multivariate
normal and Student-t distributions. The routine keeps internal mutable state
and must not run on two threads at once, so mvdist puts a small envelope
around it:

- a *layout transform* that turns row-major matrices and typed bound kinds
  into the flat, column-major, integer-coded buffers the routine expects;
- a *serialized invocation gate*, one process-wide lock held for exactly one
  routine call at a time;
- *result interpretation*, which turns the routine's status code into an
  `MVResult` or a typed exception.

The routine itself is injectable; `GenzBackend` is the default.

Example
-------
>>> import mvdist
>>> assert hasattr(mvdist, "rectangle_probability")
>>> assert mvdist.BoundKind.BOTH_SIDED.code == 2
"""

import logging

from mvdist.api.probability import critical_value, default_backend, rectangle_probability
from mvdist.backends.base import MVBackend
from mvdist.backends.genz import GenzBackend
from mvdist.core.config import IntegrationSettings, default_settings
from mvdist.core.errors import (
    ContractViolation,
    DimensionMismatchError,
    IntegrationError,
    InvalidBoundsError,
    InvalidDimensionError,
    MVDistError,
    NotPositiveSemidefiniteError,
    UnrecognizedStatusError,
)
from mvdist.core.gate import InvocationGate, default_gate
from mvdist.core.names import BoundKind, MVStatus
from mvdist.core.result import MVResult

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "BoundKind",
    "ContractViolation",
    "DimensionMismatchError",
    "GenzBackend",
    "IntegrationError",
    "IntegrationSettings",
    "InvalidBoundsError",
    "InvalidDimensionError",
    "InvocationGate",
    "MVBackend",
    "MVDistError",
    "MVResult",
    "MVStatus",
    "NotPositiveSemidefiniteError",
    "UnrecognizedStatusError",
    "critical_value",
    "default_backend",
    "default_gate",
    "default_settings",
    "rectangle_probability",
]
