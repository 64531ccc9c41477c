"""Matrix products and observation weighting.

Genotype probabilities are held as 3-D arrays (individual, genotype, position).
matrix_x_3darray applies a matrix to the individual axis of every slice, which
is how they are rotated into a kinship eigenbasis. The weighting helpers scale
rows, e.g. by the square roots of observation weights before least squares.
"""

import numpy as np

from qtlscan.linalg.decomp import as_matrix


def _as_3darray(A: np.ndarray, name: str = "A") -> np.ndarray:
    A = np.asarray(A, dtype=np.float64)
    if A.ndim != 3:
        raise ValueError(f"{name} must be a 3-D array, got {A.ndim} dims")
    return A


def _as_weights(weights: np.ndarray, n_rows: int) -> np.ndarray:
    weights = np.asarray(weights, dtype=np.float64)
    if weights.ndim != 1:
        raise ValueError(f"weights must be a vector, got {weights.ndim} dims")
    if weights.size != n_rows:
        raise ValueError(
            f"weights has length {weights.size} but data has {n_rows} rows"
        )
    if np.any(weights < 0) or not np.all(np.isfinite(weights)):
        raise ValueError("weights must be finite and non-negative")
    return weights


def matrix_x_matrix(X: np.ndarray, Y: np.ndarray) -> np.ndarray:
    """Matrix product X @ Y with dimension checking."""
    X = as_matrix(X)
    Y = as_matrix(Y, "Y")
    if X.shape[1] != Y.shape[0]:
        raise ValueError(
            f"Cannot multiply {X.shape[0]}x{X.shape[1]} by {Y.shape[0]}x{Y.shape[1]}"
        )
    return X @ Y


def matrix_x_vector(X: np.ndarray, y: np.ndarray) -> np.ndarray:
    """Matrix-vector product X @ y with dimension checking."""
    X = as_matrix(X)
    y = np.asarray(y, dtype=np.float64)
    if y.ndim != 1:
        raise ValueError(f"y must be a vector, got {y.ndim} dims")
    if X.shape[1] != y.size:
        raise ValueError(
            f"Cannot multiply {X.shape[0]}x{X.shape[1]} matrix by vector of "
            f"length {y.size}"
        )
    return X @ y


def matrix_x_3darray(X: np.ndarray, A: np.ndarray) -> np.ndarray:
    """Apply X to the first axis of every slice of a 3-D array.

    Args:
        X: Matrix (m, n).
        A: Array (n, a, b).

    Returns:
        Array (m, a, b) with result[:, :, k] = X @ A[:, :, k].
    """
    X = as_matrix(X)
    A = _as_3darray(A)
    if X.shape[1] != A.shape[0]:
        raise ValueError(
            f"Cannot multiply {X.shape[0]}x{X.shape[1]} matrix by array with "
            f"{A.shape[0]} rows"
        )
    return np.tensordot(X, A, axes=(1, 0))


def weighted_matrix(mat: np.ndarray, weights: np.ndarray) -> np.ndarray:
    """Multiply each row of mat by the corresponding weight."""
    mat = as_matrix(mat, "mat")
    weights = _as_weights(weights, mat.shape[0])
    return mat * weights[:, None]


def weighted_3darray(array: np.ndarray, weights: np.ndarray) -> np.ndarray:
    """Multiply each array[i, :, :] by weights[i]."""
    array = _as_3darray(array, "array")
    weights = _as_weights(weights, array.shape[0])
    return array * weights[:, None, None]
