"""Mixed-model log-likelihood in a rotated kinship eigenbasis.

Model: y = X b + g + e with Var(g) = sigma^2 hsq K and Var(e) = sigma^2 (1 - hsq) I.
After rotation by the eigenvectors of K the covariance is diagonal, with
variance v_i = hsq * lambda_i + (1 - hsq) at coordinate i. For a given hsq
the fixed effects come from a generalised least-squares fit (rows scaled
by 1/sqrt(v_i), then the shared pivoted QR), and sigma^2 is profiled out.

ML:   sigma^2 = rss / n
      LL = -1/2 [n log(2 pi sigma^2) + sum log v_i + n]
REML: sigma^2 = rss / (n - p)
      LL = -1/2 [(n - p) log(2 pi sigma^2) + sum log v_i + (n - p)
                 + log|X' V^-1 X| - log|X' X|]

rss is the weighted residual sum of squares and p the rank of X.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from qtlscan.core.config import DEFAULT_TOL
from qtlscan.linalg.columns import find_independent_columns
from qtlscan.linalg.decomp import as_matrix, rank_revealing_qr

# Smallest variance allowed at a rotated coordinate. Keeps hsq=1 finite when
# the kinship matrix has zero eigenvalues.
VARIANCE_FLOOR = 1e-10


@dataclass
class LMMEval:
    """Log-likelihood and GLS fit at one value of hsq."""

    hsq: float
    loglik: float
    sigmasq: float
    coef: np.ndarray
    rank: int


def check_lmm_inputs(
    eigenvalues: np.ndarray, y: np.ndarray, X: np.ndarray
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Coerce arrays and check that their lengths agree.

    Raises:
        ValueError: If eigenvalues, y and X disagree on the number of
            individuals.
    """
    eigenvalues = np.asarray(eigenvalues, dtype=np.float64)
    if eigenvalues.ndim != 1:
        raise ValueError("eigenvalues must be a vector")
    y = np.asarray(y, dtype=np.float64)
    X = as_matrix(X)
    n = eigenvalues.size
    if y.shape[0] != n:
        raise ValueError(f"{n} eigenvalues but y has {y.shape[0]} rows")
    if X.shape[0] != n:
        raise ValueError(f"{n} eigenvalues but X has {X.shape[0]} rows")
    return eigenvalues, y, X


def variance_components(hsq: float, eigenvalues: np.ndarray) -> np.ndarray:
    """Per-coordinate variances hsq * lambda + (1 - hsq), floored."""
    if not 0.0 <= hsq <= 1.0:
        raise ValueError(f"hsq must be in [0, 1], got {hsq}")
    return np.maximum(hsq * eigenvalues + (1.0 - hsq), VARIANCE_FLOOR)


def independent_design(X: np.ndarray, tol: float = DEFAULT_TOL) -> np.ndarray:
    """Indices of the columns of X kept for mixed-model fits.

    The REML correction log|X'V^-1 X| - log|X'X| is only constant in hsq
    when both determinants use the same basis, so rank-deficient designs
    are reduced to one fixed set of independent columns up front.
    """
    return find_independent_columns(X, tol)


def reml_logdet_XpX(X: np.ndarray, tol: float = DEFAULT_TOL) -> float:
    """log|X'X| over the independent columns of X (the REML constant).

    Taken from the same pivoted QR that independent_design() uses, so it
    never disagrees with the column set the fit keeps.
    """
    X = as_matrix(X)
    if X.shape[1] == 0:
        return 0.0
    qr = rank_revealing_qr(X, tol)
    return float(2.0 * np.sum(np.log(np.abs(np.diag(qr.r)[: qr.rank]))))


def _evaluate_independent(
    hsq: float,
    eigenvalues: np.ndarray,
    y: np.ndarray,
    X: np.ndarray,
    reml: bool,
    logdetXpX: float,
    tol: float,
) -> LMMEval:
    """Evaluate at one hsq for an X with linearly independent columns."""
    v = variance_components(hsq, eigenvalues)
    scale = 1.0 / np.sqrt(v)
    qr = rank_revealing_qr(X * scale[:, None], tol)
    yw = y * scale
    resid = qr.residuals(yw)
    rss = float(resid @ resid)

    n = y.size
    p = qr.rank
    nu = n - p if reml else n
    if nu <= 0:
        raise ValueError(
            f"Need more individuals ({n}) than covariate columns ({p}) for REML"
        )
    sigmasq = rss / nu
    loglik = -0.5 * (nu * np.log(2.0 * np.pi * sigmasq) + np.sum(np.log(v)) + nu)

    if reml:
        logdet_XVX = 2.0 * np.sum(np.log(np.abs(np.diag(qr.r)[:p])))
        loglik -= 0.5 * (logdet_XVX - logdetXpX)

    return LMMEval(
        hsq=hsq,
        loglik=float(loglik),
        sigmasq=sigmasq,
        coef=qr.solve(yw),
        rank=p,
    )


def evaluate_lmm(
    hsq: float,
    eigenvalues: np.ndarray,
    y: np.ndarray,
    X: np.ndarray,
    reml: bool = True,
    logdetXpX: float | None = None,
    tol: float = DEFAULT_TOL,
) -> LMMEval:
    """Evaluate the log-likelihood and GLS estimates at one hsq.

    Inputs must already be rotated and validated (see check_lmm_inputs).

    Args:
        hsq: Heritability in [0, 1].
        eigenvalues: Kinship eigenvalues (n,).
        y: Rotated phenotype (n,).
        X: Rotated covariates (n, p).
        reml: REML if True, ML otherwise.
        logdetXpX: log|X'X| for the REML term; computed when None.
        tol: Relative pivot threshold for the rank decisions.

    Returns:
        LMMEval with loglik, sigmasq and coefficients (NaN for columns
        dropped as redundant).
    """
    cols = independent_design(X, tol)
    if reml and logdetXpX is None:
        logdetXpX = reml_logdet_XpX(X, tol)

    result = _evaluate_independent(
        hsq, eigenvalues, y, X[:, cols], reml, logdetXpX, tol
    )
    coef = np.full(X.shape[1], np.nan)
    coef[cols] = result.coef
    result.coef = coef
    return result


def log_likelihood(
    hsq: float,
    eigenvalues: np.ndarray,
    y: np.ndarray,
    X: np.ndarray,
    reml: bool = True,
    logdetXpX: float | None = None,
) -> float:
    """Mixed-model log-likelihood at a single heritability.

    Args:
        hsq: Heritability in [0, 1]. hsq=0 is pure environmental variance,
            hsq=1 pure polygenic variance.
        eigenvalues: Kinship eigenvalues (n,).
        y: Phenotype rotated into the eigenbasis (n,).
        X: Covariates rotated into the eigenbasis (n, p).
        reml: REML if True, ML otherwise.
        logdetXpX: Precomputed log|X'X|; computed from X when None.

    Returns:
        Log-likelihood (finite for any hsq in [0, 1]).

    Raises:
        ValueError: On length mismatch or hsq outside [0, 1].
    """
    eigenvalues, y, X = check_lmm_inputs(eigenvalues, y, X)
    if y.ndim != 1:
        raise ValueError("log_likelihood takes a single phenotype vector")
    return evaluate_lmm(hsq, eigenvalues, y, X, reml, logdetXpX).loglik
