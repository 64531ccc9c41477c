"""Linear regression by least squares.

Two interchangeable solvers:

- "qr": column-pivoted QR (rank_revealing_qr). Detects rank deficiency;
  redundant columns are excluded from the fit and get NaN coefficients.
- "cholesky": normal equations X'X b = X'y via a Cholesky factor. Faster,
  but requires full column rank. A singular X'X raises LinAlgError.

On full-rank inputs the two agree to floating-point tolerance.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import scipy.linalg

from qtlscan.core.config import DEFAULT_TOL, SolverMethod
from qtlscan.linalg.decomp import as_matrix, check_same_rows, rank_revealing_qr


@dataclass
class LinRegFit:
    """Result of a single-response least-squares fit.

    Attributes:
        coef: Coefficients (p,); NaN for columns dropped as redundant.
        fitted: Fitted values (n,).
        resid: Residuals (n,).
        rss: Residual sum of squares.
        sigma: Residual standard deviation, sqrt(rss / df).
        rank: Number of columns used in the fit.
        df: Residual degrees of freedom, n - rank.
        se: Standard errors of coef; NaN for dropped columns.
    """

    coef: np.ndarray
    fitted: np.ndarray
    resid: np.ndarray
    rss: float
    sigma: float
    rank: int
    df: int
    se: np.ndarray


def _as_response(y: np.ndarray, X: np.ndarray, name: str = "y") -> np.ndarray:
    y = np.asarray(y, dtype=np.float64)
    if y.ndim not in (1, 2):
        raise ValueError(f"{name} must be a vector or matrix, got {y.ndim} dims")
    check_same_rows(X, y, "X", name)
    return y


def _check_method(method: str) -> None:
    if method not in ("qr", "cholesky"):
        raise ValueError(f"method must be 'qr' or 'cholesky', got {method!r}")


def _cholesky_coef(X: np.ndarray, Y: np.ndarray):
    """Normal-equation coefficients and the Cholesky factor of X'X."""
    factor = scipy.linalg.cho_factor(X.T @ X, check_finite=False)
    return scipy.linalg.cho_solve(factor, X.T @ Y, check_finite=False), factor


def fit_linreg(
    X: np.ndarray,
    y: np.ndarray,
    tol: float = DEFAULT_TOL,
    method: SolverMethod = "qr",
) -> LinRegFit:
    """Fit y on X by least squares.

    Args:
        X: Design matrix (n, p).
        y: Response (n,).
        tol: Relative pivot threshold (QR only).
        method: "qr" or "cholesky".

    Returns:
        LinRegFit with coefficients, fitted values, residuals and RSS.

    Raises:
        ValueError: On dimension mismatch or unknown method.
        numpy.linalg.LinAlgError: If method="cholesky" and X'X is singular.

    Example:
        >>> X = np.column_stack([np.ones(10), np.repeat([0.0, 1.0], 5)])
        >>> y = np.repeat([1.0, 2.0], 5)
        >>> fit = fit_linreg(X, y)
        >>> fit.rank, np.round(fit.coef, 8).tolist()
        (2, [1.0, 1.0])
    """
    _check_method(method)
    X = as_matrix(X)
    y = _as_response(y, X)
    if y.ndim != 1:
        raise ValueError("fit_linreg takes a single response vector")
    n, p = X.shape

    if method == "cholesky":
        if p == 0:
            coef = np.zeros(0)
            unscaled = np.zeros(0)
        else:
            coef, factor = _cholesky_coef(X, y)
            unscaled = np.diag(
                scipy.linalg.cho_solve(factor, np.eye(p), check_finite=False)
            )
        rank = p
    else:
        qr = rank_revealing_qr(X, tol)
        coef = qr.solve(y)
        unscaled = qr.unscaled_variances()
        rank = qr.rank

    fitted = X @ np.nan_to_num(coef, nan=0.0)
    resid = y - fitted
    rss = float(resid @ resid)
    df = n - rank
    sigma = float(np.sqrt(rss / df)) if df > 0 else np.nan

    return LinRegFit(
        coef=coef,
        fitted=fitted,
        resid=resid,
        rss=rss,
        sigma=sigma,
        rank=rank,
        df=df,
        se=np.sqrt(unscaled) * sigma,
    )


def calc_mvrss(
    X: np.ndarray,
    Y: np.ndarray,
    tol: float = DEFAULT_TOL,
    method: SolverMethod = "qr",
) -> np.ndarray:
    """Residual sum of squares for each column of Y regressed on X.

    Coefficients are not materialised on the QR path: the residual is
    Y minus its projection onto the retained columns.

    Args:
        X: Design matrix (n, p).
        Y: Responses (n, m).
        tol: Relative pivot threshold (QR only).
        method: "qr" or "cholesky".

    Returns:
        RSS per response column, shape (m,).
    """
    resid = residuals_linreg(X, as_matrix(Y, "Y"), tol=tol, method=method)
    return np.sum(resid**2, axis=0)


def calc_rss(
    X: np.ndarray,
    y: np.ndarray,
    tol: float = DEFAULT_TOL,
    method: SolverMethod = "qr",
) -> float:
    """Residual sum of squares for a single response vector."""
    y = np.asarray(y, dtype=np.float64)
    if y.ndim != 1:
        raise ValueError("calc_rss takes a single response vector")
    return float(calc_mvrss(X, y, tol=tol, method=method)[0])


def rss_linreg(
    X: np.ndarray,
    Y: np.ndarray,
    tol: float = DEFAULT_TOL,
    method: SolverMethod = "qr",
) -> float | np.ndarray:
    """RSS of Y on X: a scalar for a vector Y, a vector for a matrix Y."""
    Y = np.asarray(Y, dtype=np.float64)
    if Y.ndim == 1:
        return calc_rss(X, Y, tol=tol, method=method)
    return calc_mvrss(X, Y, tol=tol, method=method)


def residuals_linreg(
    X: np.ndarray,
    Y: np.ndarray,
    tol: float = DEFAULT_TOL,
    method: SolverMethod = "qr",
) -> np.ndarray:
    """Y minus its projection onto the column space of X.

    Args:
        X: Design matrix (n, p).
        Y: Responses (n,) or (n, m).
        tol: Relative pivot threshold (QR only).
        method: "qr" or "cholesky".

    Returns:
        Residuals with the shape of Y.
    """
    _check_method(method)
    X = as_matrix(X)
    Y = _as_response(Y, X, "Y")

    if X.shape[1] == 0:
        return Y.copy()
    if method == "cholesky":
        coef, _ = _cholesky_coef(X, Y)
        return Y - X @ coef
    return rank_revealing_qr(X, tol).residuals(Y)


def residuals_linreg_3d(
    X: np.ndarray, A: np.ndarray, tol: float = DEFAULT_TOL
) -> np.ndarray:
    """Project X out of every (n, :, k) slice of a 3-D array.

    Used to regress covariates out of genotype probabilities at all
    positions at once. X is factored once and applied to every slice.

    Args:
        X: Design matrix (n, p).
        A: Array (n, a, b), e.g. genotype probabilities (ind, gen, pos).
        tol: Relative pivot threshold.

    Returns:
        Residual array with the shape of A.
    """
    X = as_matrix(X)
    A = np.asarray(A, dtype=np.float64)
    if A.ndim != 3:
        raise ValueError(f"A must be a 3-D array, got {A.ndim} dims")
    check_same_rows(X, A, "X", "A")

    flat = A.reshape(A.shape[0], -1)
    resid = residuals_linreg(X, flat, tol=tol)
    return resid.reshape(A.shape)
