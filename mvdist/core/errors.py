"""
mvdist.core.errors
==================

Exceptions raised by the package.

Two families:

- `ContractViolation`: the caller handed over inconsistent data. Raised before
  the integration routine is ever invoked.
- `IntegrationError`: the routine itself reported a failure through its status
  code. The raw code is kept on ``.code``.

Examples
--------
>>> from mvdist.core.errors import UnrecognizedStatusError, IntegrationError
>>> err = UnrecognizedStatusError(7)
>>> str(err), err.code, isinstance(err, IntegrationError)
('unrecognized status code 7', 7, True)
"""

from __future__ import annotations


class MVDistError(Exception):
    """Base class for every error raised by mvdist."""


class ContractViolation(MVDistError, ValueError):
    """Invalid arguments detected before crossing into the routine."""


class DimensionMismatchError(ContractViolation):
    """Matrix and vector shapes do not agree."""


class IntegrationError(MVDistError):
    """A failure reported by the integration routine."""

    def __init__(self, message: str, code: int):
        super().__init__(message)
        self.code = code


class InvalidDimensionError(IntegrationError):
    def __init__(self, code: int = 2):
        super().__init__("invalid dimensionality selection", code)


class NotPositiveSemidefiniteError(IntegrationError):
    def __init__(self, code: int = 3):
        super().__init__("covariance matrix not positive semidefinite", code)


class InvalidBoundsError(IntegrationError):
    def __init__(self, code: int = 2):
        super().__init__("invalid bounds supplied", code)


class UnrecognizedStatusError(IntegrationError):
    """Any status code outside the documented vocabulary of an operation."""

    def __init__(self, code: int):
        super().__init__(f"unrecognized status code {code}", code)
