"""Dense linear-algebra primitives for the normal equation.

Only the linear trainer uses these. The Gram matrix is p x p with p in the
tens, so the O(p^3) Gauss-Jordan inverse is cheap even for large datasets.
"""

from __future__ import annotations

import logging
from typing import Tuple

import numpy as np

logger = logging.getLogger(__name__)

# Pivot magnitude (relative to the largest absolute entry) treated as zero.
PIVOT_TOLERANCE = 1e-12


def _as_matrix(matrix: np.ndarray, name: str) -> np.ndarray:
    arr = np.asarray(matrix, dtype=float)
    if arr.ndim != 2:
        raise ValueError(f"{name} must be 2-dimensional (got ndim={arr.ndim})")
    return arr


def transpose(matrix: np.ndarray) -> np.ndarray:
    """Return the transpose of a 2-D matrix as a new array."""
    arr = _as_matrix(matrix, "matrix")
    rows, cols = arr.shape
    out = np.empty((cols, rows), dtype=float)
    for i in range(rows):
        out[:, i] = arr[i, :]
    return out


def multiply(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Matrix product ``a @ b``.

    Raises
    ------
    ValueError
        If the inner dimensions do not match.
    """
    left = _as_matrix(a, "a")
    right = _as_matrix(b, "b")
    if left.shape[1] != right.shape[0]:
        raise ValueError(f"Cannot multiply {left.shape} by {right.shape}")
    out = np.zeros((left.shape[0], right.shape[1]), dtype=float)
    # Outer-product accumulation over the inner dimension; never materializes
    # anything larger than the output.
    for k in range(left.shape[1]):
        out += np.outer(left[:, k], right[k, :])
    return out


def invert(matrix: np.ndarray) -> Tuple[np.ndarray, bool]:
    """Invert a square matrix by Gauss-Jordan elimination on ``[A | I]``.

    Parameters
    ----------
    matrix : np.ndarray
        Square matrix to invert.

    Returns
    -------
    Tuple[np.ndarray, bool]
        ``(inverse, singular)``. When a pivot vanishes the identity matrix is
        returned with ``singular=True``; callers must treat anything built on
        it as low confidence.

    Raises
    ------
    ValueError
        If ``matrix`` is not square.
    """
    arr = _as_matrix(matrix, "matrix")
    n, m = arr.shape
    if n != m:
        raise ValueError(f"Only square matrices can be inverted (got {arr.shape})")
    if n == 0:
        return np.zeros((0, 0)), False

    augmented = np.hstack([arr.copy(), np.eye(n)])
    scale = max(float(np.max(np.abs(arr))), 1.0)
    tolerance = PIVOT_TOLERANCE * scale

    for col in range(n):
        # Partial pivoting: bring the largest remaining entry onto the diagonal.
        pivot_row = col + int(np.argmax(np.abs(augmented[col:, col])))
        pivot = augmented[pivot_row, col]
        if abs(pivot) <= tolerance:
            logger.warning(
                "Singular matrix (%dx%d): zero pivot in column %d; falling back to identity",
                n, n, col,
            )
            return np.eye(n), True
        if pivot_row != col:
            augmented[[col, pivot_row]] = augmented[[pivot_row, col]]

        augmented[col] /= augmented[col, col]
        for row in range(n):
            if row != col:
                factor = augmented[row, col]
                if factor != 0.0:
                    augmented[row] -= factor * augmented[col]

    return augmented[:, n:].copy(), False
