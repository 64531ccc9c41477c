"""Detection of duplicate and linearly dependent columns."""

import numpy as np

from qtlscan.core.config import DEFAULT_TOL
from qtlscan.linalg.decomp import as_matrix, rank_revealing_qr


def find_matching_columns(M: np.ndarray, tol: float = DEFAULT_TOL) -> np.ndarray:
    """Group numerically identical columns.

    Two columns match when their largest absolute elementwise difference is
    at most tol, so tol=0 matches exact duplicates.

    Args:
        M: Matrix (n, p).
        tol: Absolute matching threshold.

    Returns:
        Integer array (p,). Entry j is the index of the first column that
        column j matches, or j itself when no earlier column matches.

    Example:
        >>> M = np.array([[1.0, 0.0, 1.0], [0.0, 1.0, 0.0]])
        >>> find_matching_columns(M).tolist()
        [0, 1, 0]
    """
    M = as_matrix(M, "M")
    n_col = M.shape[1]
    result = np.full(n_col, -1, dtype=np.intp)

    for i in range(n_col):
        if result[i] != -1:
            continue
        result[i] = i
        if i + 1 == n_col:
            break
        rest = np.flatnonzero(result[i + 1 :] == -1) + i + 1
        if rest.size == 0:
            continue
        diff = np.max(np.abs(M[:, rest] - M[:, [i]]), axis=0, initial=0.0)
        result[rest[diff <= tol]] = i

    return result


def find_independent_columns(M: np.ndarray, tol: float = DEFAULT_TOL) -> np.ndarray:
    """Select a maximal linearly independent subset of columns.

    Args:
        M: Matrix (n, p).
        tol: Relative pivot threshold, as in rank_revealing_qr.

    Returns:
        Sorted indices of the retained columns; its length is the rank of M.
    """
    return rank_revealing_qr(as_matrix(M, "M"), tol).retained
