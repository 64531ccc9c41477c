"""Eigendecomposition of a kinship matrix and rotation into its eigenbasis.

Uses scipy.linalg.eigh (LAPACK) under scoped BLAS thread limits. With
K = V diag(values) V', left-multiplying phenotypes and covariates by V'
diagonalises the polygenic covariance, so every mixed-model likelihood
evaluation afterwards is O(n p^2) instead of O(n^3).

The decomposition is computed once per kinship matrix and shared, read-only,
by every position and every permutation of a scan.
"""

import warnings

import numpy as np
import scipy.linalg
from loguru import logger

from qtlscan.core.config import DEFAULT_TOL
from qtlscan.core.memory import check_memory_available, estimate_eigendecomp_memory
from qtlscan.core.threading import blas_threads
from qtlscan.linalg.decomp import as_matrix, check_same_rows, rank_revealing_qr
from qtlscan.utils.logging import log_duration, log_rss_memory


def eigen_decompose(
    K: np.ndarray,
    threshold: float = 1e-10,
    n_threads: int | None = None,
) -> tuple[np.ndarray, np.ndarray]:
    """Eigendecompose a symmetric kinship matrix, zeroing small eigenvalues.

    - Eigenvalues with |value| < threshold are set to 0
    - Warning if more than one eigenvalue is zero
    - Warning if negative eigenvalues remain after thresholding

    Args:
        K: Symmetric kinship matrix (n, n). Not modified.
        threshold: Eigenvalues below this in absolute value are zeroed.
        n_threads: BLAS threads; None uses the default count.

    Returns:
        Tuple of (values, vectors) where:
        - values: (n,) sorted ascending
        - vectors: (n, n) columns are eigenvectors

    Raises:
        ValueError: If K is not square.
        MemoryError: If the decomposition will not fit in memory.
    """
    K = np.asarray(K, dtype=np.float64)
    if K.ndim != 2 or K.shape[0] != K.shape[1]:
        raise ValueError(f"Kinship matrix must be square, got shape {K.shape}")

    n_ind = K.shape[0]
    logger.info(f"Eigendecomposing kinship matrix ({n_ind:,} x {n_ind:,})")

    check_memory_available(
        estimate_eigendecomp_memory(n_ind),
        safety_margin=0.1,
        operation=f"eigendecomposition of {n_ind:,}x{n_ind:,} kinship matrix",
    )

    log_rss_memory("eigendecomp", "before")
    try:
        with blas_threads(n_threads), log_duration("Eigendecomposition", "INFO"):
            values, vectors = scipy.linalg.eigh(K, check_finite=False)
    except MemoryError:
        logger.error(
            f"MemoryError during eigendecomposition of {n_ind:,}x{n_ind:,} matrix"
        )
        raise
    log_rss_memory("eigendecomp", "after")

    n_negative = np.sum(values < -threshold)
    if n_negative > 0:
        warnings.warn(
            f"Kinship matrix has {n_negative} negative eigenvalue(s). "
            "Matrix may not be positive semi-definite.",
            stacklevel=2,
        )

    values = np.where(np.abs(values) < threshold, 0.0, values)

    n_zero = np.sum(values == 0.0)
    if n_zero > 1:
        warnings.warn(
            f"Kinship matrix has {n_zero} eigenvalues close to zero. "
            "Matrix may be rank-deficient.",
            stacklevel=2,
        )

    return values, vectors


def eigen_rotate(
    vectors: np.ndarray, y: np.ndarray, X: np.ndarray
) -> tuple[np.ndarray, np.ndarray]:
    """Rotate phenotype and covariates into the kinship eigenbasis.

    Args:
        vectors: Eigenvectors (n, n), one per column.
        y: Phenotype vector (n,) or matrix (n, m).
        X: Covariate matrix (n, p); may have zero columns.

    Returns:
        Tuple (V' y, V' X) with the shapes of y and X.
    """
    vectors = np.asarray(vectors, dtype=np.float64)
    if vectors.ndim != 2 or vectors.shape[0] != vectors.shape[1]:
        raise ValueError(f"Eigenvector matrix must be square, got {vectors.shape}")
    y = np.asarray(y, dtype=np.float64)
    X = as_matrix(X)
    check_same_rows(vectors, y, "eigenvectors", "y")
    check_same_rows(vectors, X, "eigenvectors", "X")

    Vt = vectors.T
    return Vt @ y, Vt @ X


def log_det_XpX(X: np.ndarray, tol: float = DEFAULT_TOL) -> float:
    """Compute log|X'X| from the pivoted QR of X.

    |X'X| = prod(R_kk^2), so log|X'X| = 2 * sum(log|R_kk|), avoiding overflow
    of the determinant. Singularity is decided by the same pivot rule as
    every other rank decision.

    Args:
        X: Matrix (n, p).
        tol: Relative pivot threshold, as in rank_revealing_qr.

    Returns:
        log|X'X|; 0.0 for a matrix with no columns.

    Raises:
        numpy.linalg.LinAlgError: If X has rank below p at this tolerance.
    """
    X = as_matrix(X)
    p = X.shape[1]
    if p == 0:
        return 0.0
    qr = rank_revealing_qr(X, tol)
    if qr.rank < p:
        raise np.linalg.LinAlgError(
            f"X'X is singular: rank {qr.rank} with {p} columns at tol={tol}"
        )
    return float(2.0 * np.sum(np.log(np.abs(np.diag(qr.r)[:p]))))
