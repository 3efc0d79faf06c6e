"""
mvdist.core.layout
==================

Adapt caller-shaped data to the flat layout of the integration routine.

The routine reads matrices as flat, column-major buffers and bound kinds as
small integer codes. Everything here is pure: inputs are only read, and every
returned buffer is freshly allocated.

Examples
--------
>>> from mvdist.core.layout import to_column_major, encode_bounds, decode_bounds
>>> to_column_major([[1.0, 2.0], [3.0, 4.0]]).tolist()
[1.0, 3.0, 2.0, 4.0]
>>> to_column_major([[1, 2, 3], [4, 5, 6]]).tolist()
[1.0, 4.0, 2.0, 5.0, 3.0, 6.0]
>>> from mvdist.core.names import BoundKind
>>> codes = encode_bounds([BoundKind.BOTH_SIDED, BoundKind.UNBOUNDED, "lower_only"])
>>> codes.tolist()
[2, -1, 1]
>>> [k.value for k in decode_bounds(codes)]
['both_sided', 'unbounded', 'lower_only']
"""

from __future__ import annotations
from typing import Any, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from mvdist.core.errors import DimensionMismatchError
from mvdist.core.names import BoundKind

BoundKindLike = Union[BoundKind, str]


def as_matrix(name: str, value: Any) -> np.ndarray:
    """Coerce `value` to a non-empty 2-D float64 array or raise."""
    try:
        arr = np.asarray(value, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise DimensionMismatchError(f"{name} must be a rectangular 2-D array: {exc}") from exc
    if arr.ndim != 2:
        raise DimensionMismatchError(f"{name} must be 2-D, got {arr.ndim}-D")
    if arr.size == 0:
        raise DimensionMismatchError(f"{name} must not be empty, got shape {arr.shape}")
    return arr


def as_vector(name: str, value: Any) -> np.ndarray:
    """Coerce `value` to a 1-D float64 array or raise."""
    try:
        arr = np.asarray(value, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise DimensionMismatchError(f"{name} must be a flat sequence of numbers: {exc}") from exc
    if arr.ndim != 1:
        raise DimensionMismatchError(f"{name} must be 1-D, got {arr.ndim}-D")
    return arr


def to_column_major(matrix: Any) -> np.ndarray:
    """Flatten an m x n matrix so that column 0 comes first, then column 1, ...

    Equivalent to transposing and flattening in row-major order: for a square
    n x n input, entry ``i*n + j`` of the result is ``matrix[j][i]``.
    """
    return np.asarray(matrix, dtype=np.float64).flatten(order="F")


def encode_bounds(kinds: Iterable[BoundKindLike]) -> np.ndarray:
    """Map bound kinds to their integer codes, preserving order."""
    return np.array([BoundKind(k).code for k in kinds], dtype=np.int32)


def decode_bounds(codes: Iterable[int]) -> List[BoundKind]:
    """Inverse of `encode_bounds`."""
    return [BoundKind.from_code(c) for c in codes]


def check_dimensions(
    covariance: np.ndarray,
    constraints: np.ndarray,
    lower: np.ndarray,
    upper: np.ndarray,
    bound_kinds: Sequence[BoundKindLike],
    shift: Optional[np.ndarray] = None,
) -> Tuple[int, int]:
    """Return ``(n, m)`` after checking that all shapes agree.

    ``n`` is the dimensionality (columns of the constraint matrix) and ``m``
    the number of constraint rows. The covariance must be n x n; every bound
    vector and the bound-kind sequence must have length m.
    """
    m, n = constraints.shape
    if covariance.shape != (n, n):
        raise DimensionMismatchError(
            f"covariance must be {n}x{n} to match the constraint matrix, "
            f"got {covariance.shape[0]}x{covariance.shape[1]}"
        )

    named = [("lower", len(lower)), ("upper", len(upper)), ("bound_kinds", len(bound_kinds))]
    if shift is not None:
        named.append(("shift", len(shift)))
    for name, length in named:
        if length != m:
            raise DimensionMismatchError(
                f"{name} has length {length}, expected {m} (one per constraint row)"
            )
    return n, m
