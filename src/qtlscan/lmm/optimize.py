"""Heritability optimization via Brent's method.

Maximizes the mixed-model log-likelihood over hsq in [0, 1] with a bounded,
derivative-free Brent search (golden section with parabolic interpolation).

Convergence: the search stops once the bracketing interval around the
current best point x has half-width at most 2 * (sqrt(eps) * |x| + tol / 3),
so tol is an absolute tolerance on hsq. Brent never evaluates the interval
ends, so with check_boundary the log-likelihood at hsq=0 and hsq=1 is also
computed and the best of the three is returned.

Reference: Brent, R.P. (1973) "Algorithms for Minimization without Derivatives"
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

import numpy as np
from loguru import logger

from qtlscan.core.backend import resolve_backend
from qtlscan.core.config import DEFAULT_HSQ_TOL, DEFAULT_TOL
from qtlscan.lmm.likelihood import (
    LMMEval,
    _evaluate_independent,
    check_lmm_inputs,
    independent_design,
    reml_logdet_XpX,
)

_SQRT_EPS = float(np.sqrt(np.finfo(np.float64).eps))


class ConvergenceError(RuntimeError):
    """Raised when the heritability search fails to converge."""


@dataclass
class LMMFit:
    """Result of fitting heritability for one phenotype.

    Attributes:
        hsq: Heritability at the maximum.
        loglik: Log-likelihood at hsq.
        sigmasq: Total variance sigma^2 at hsq.
        coef: GLS coefficients at hsq; NaN for columns dropped as redundant.
        reml: Whether the REML likelihood was maximized.
        n_iter: Number of search iterations.
    """

    hsq: float
    loglik: float
    sigmasq: float
    coef: np.ndarray
    reml: bool
    n_iter: int


def brent_minimize(
    func: Callable[[float], float],
    a: float,
    b: float,
    tol: float = DEFAULT_HSQ_TOL,
    maxiter: int = 500,
) -> tuple[float, float, int]:
    """Minimize a scalar function on [a, b] using Brent's method.

    Args:
        func: Scalar function to minimize.
        a: Lower bound of search interval.
        b: Upper bound of search interval.
        tol: Absolute tolerance on the minimizer.
        maxiter: Maximum iterations.

    Returns:
        Tuple of (x_min, f_min, n_iter).

    Raises:
        ConvergenceError: If func returns a non-finite value or maxiter is
            reached.
    """
    golden = 0.5 * (3.0 - np.sqrt(5.0))

    if a > b:
        a, b = b, a

    def evaluate(x: float) -> float:
        fx = func(x)
        if not np.isfinite(fx):
            raise ConvergenceError(f"Objective is not finite at x={x:.6g}")
        return fx

    # x is current best, w is second best, v is previous w
    x = w = v = a + golden * (b - a)
    fx = fw = fv = evaluate(x)

    d = 0.0
    e = 0.0

    for n_iter in range(1, maxiter + 1):
        midpoint = 0.5 * (a + b)
        tol1 = _SQRT_EPS * abs(x) + tol / 3.0
        tol2 = 2.0 * tol1

        if abs(x - midpoint) <= (tol2 - 0.5 * (b - a)):
            return x, fx, n_iter

        if abs(e) > tol1:
            # Fit parabola through x, w, v
            r = (x - w) * (fx - fv)
            q = (x - v) * (fx - fw)
            p = (x - v) * q - (x - w) * r
            q = 2.0 * (q - r)

            if q > 0:
                p = -p
            else:
                q = -q

            r = e
            e = d

            if abs(p) < abs(0.5 * q * r) and p > q * (a - x) and p < q * (b - x):
                d = p / q
                u = x + d

                # Don't evaluate too close to bounds
                if (u - a) < tol2 or (b - u) < tol2:
                    d = tol1 if x < midpoint else -tol1
            else:
                e = (b if x < midpoint else a) - x
                d = golden * e
        else:
            e = (b if x < midpoint else a) - x
            d = golden * e

        if abs(d) >= tol1:
            u = x + d
        else:
            u = x + (tol1 if d > 0 else -tol1)

        fu = evaluate(u)

        if fu <= fx:
            if u < x:
                b = x
            else:
                a = x
            v, w, x = w, x, u
            fv, fw, fx = fw, fx, fu
        else:
            if u < x:
                a = u
            else:
                b = u
            if fu <= fw or w == x:
                v, w = w, u
                fv, fw = fw, fu
            elif fu <= fv or v == x or v == w:
                v = u
                fv = fu

    raise ConvergenceError(
        f"Brent optimization did not converge in {maxiter} iterations"
    )


def _fit_independent(
    eigenvalues: np.ndarray,
    y: np.ndarray,
    X: np.ndarray,
    reml: bool,
    check_boundary: bool,
    logdetXpX: float,
    tol: float,
    rank_tol: float,
    maxiter: int,
) -> tuple[LMMEval, int]:
    """Search hsq for a design with linearly independent columns."""

    def evaluate(hsq: float) -> LMMEval:
        return _evaluate_independent(hsq, eigenvalues, y, X, reml, logdetXpX, rank_tol)

    candidates: list[LMMEval] = []
    n_iter = 0
    try:
        hsq_opt, _, n_iter = brent_minimize(
            lambda h: -evaluate(h).loglik, 0.0, 1.0, tol=tol, maxiter=maxiter
        )
        candidates.append(evaluate(hsq_opt))
    except ConvergenceError as e:
        if not check_boundary:
            raise
        logger.warning(f"Heritability search failed ({e}); using best boundary")

    if check_boundary:
        candidates.append(evaluate(0.0))
        candidates.append(evaluate(1.0))

    best = max(candidates, key=lambda c: c.loglik)
    return best, n_iter


def fit_lmm(
    eigenvalues: np.ndarray,
    y: np.ndarray,
    X: np.ndarray,
    reml: bool = True,
    check_boundary: bool = True,
    logdetXpX: float | None = None,
    tol: float = DEFAULT_HSQ_TOL,
    rank_tol: float = DEFAULT_TOL,
    maxiter: int = 500,
) -> LMMFit:
    """Find the heritability maximizing the mixed-model log-likelihood.

    Args:
        eigenvalues: Kinship eigenvalues (n,).
        y: Phenotype rotated into the eigenbasis (n,).
        X: Covariates rotated into the eigenbasis (n, p).
        reml: Maximize the REML (True) or ML (False) likelihood.
        check_boundary: Also evaluate hsq=0 and hsq=1 and keep the global
            maximum. A failed interior search then degrades to the best
            boundary instead of raising.
        logdetXpX: Precomputed log|X'X|; computed from X when None.
        tol: Absolute convergence tolerance on hsq.
        rank_tol: Relative pivot threshold for rank decisions on X.
        maxiter: Maximum Brent iterations.

    Returns:
        LMMFit at the optimum.

    Raises:
        ValueError: If eigenvalues, y and X disagree in length.
        ConvergenceError: If the search fails and check_boundary is False.
    """
    eigenvalues, y, X = check_lmm_inputs(eigenvalues, y, X)
    if y.ndim != 1:
        raise ValueError("fit_lmm takes a single phenotype vector; use fit_lmm_multi")

    cols = independent_design(X, rank_tol)
    X_ind = X[:, cols]
    if reml and logdetXpX is None:
        logdetXpX = reml_logdet_XpX(X, rank_tol)

    best, n_iter = _fit_independent(
        eigenvalues, y, X_ind, reml, check_boundary, logdetXpX, tol, rank_tol, maxiter
    )
    return _to_fit(best, cols, X.shape[1], reml, n_iter)


def _to_fit(
    result: LMMEval, cols: np.ndarray, n_col: int, reml: bool, n_iter: int
) -> LMMFit:
    coef = np.full(n_col, np.nan)
    coef[cols] = result.coef
    return LMMFit(
        hsq=result.hsq,
        loglik=result.loglik,
        sigmasq=result.sigmasq,
        coef=coef,
        reml=reml,
        n_iter=n_iter,
    )


def fit_lmm_multi(
    eigenvalues: np.ndarray,
    Y: np.ndarray,
    X: np.ndarray,
    reml: bool = True,
    check_boundary: bool = True,
    logdetXpX: float | None = None,
    tol: float = DEFAULT_HSQ_TOL,
    rank_tol: float = DEFAULT_TOL,
    backend: str | None = None,
) -> list[LMMFit]:
    """Fit heritability independently for each column of Y.

    Args:
        eigenvalues: Kinship eigenvalues (n,).
        Y: Rotated phenotypes (n, m), or a vector for a single phenotype.
        X: Rotated covariates (n, p).
        reml: Maximize the REML (True) or ML (False) likelihood.
        check_boundary: Also compare against hsq=0 and hsq=1.
        logdetXpX: Precomputed log|X'X|; computed from X when None.
        tol: Absolute convergence tolerance on hsq.
        rank_tol: Relative pivot threshold for rank decisions on X.
        backend: "numpy" (one Brent search per column) or "jax" (vmapped
            golden-section search over all columns). None uses
            QTLSCAN_BACKEND.

    Returns:
        One LMMFit per column of Y, in column order.
    """
    eigenvalues, Y, X = check_lmm_inputs(eigenvalues, Y, X)
    if Y.ndim == 1:
        Y = Y[:, None]

    cols = independent_design(X, rank_tol)
    X_ind = X[:, cols]
    if reml and logdetXpX is None:
        logdetXpX = reml_logdet_XpX(X, rank_tol)

    backend = resolve_backend(backend)
    logger.debug(
        f"Fitting heritability for {Y.shape[1]} phenotype(s), backend={backend}"
    )

    if backend == "jax":
        from qtlscan.lmm.likelihood_jax import golden_section_fit_hsq

        hsqs, n_iter = golden_section_fit_hsq(
            eigenvalues,
            Y,
            X_ind,
            reml=reml,
            logdetXpX=0.0 if logdetXpX is None else logdetXpX,
            check_boundary=check_boundary,
            tol=tol,
        )
        return [
            _to_fit(
                _evaluate_independent(
                    float(h), eigenvalues, Y[:, j], X_ind, reml, logdetXpX, rank_tol
                ),
                cols,
                X.shape[1],
                reml,
                n_iter,
            )
            for j, h in enumerate(hsqs)
        ]

    fits = []
    for j in range(Y.shape[1]):
        best, n_iter = _fit_independent(
            eigenvalues,
            Y[:, j],
            X_ind,
            reml,
            check_boundary,
            logdetXpX,
            tol,
            rank_tol,
            maxiter=500,
        )
        fits.append(_to_fit(best, cols, X.shape[1], reml, n_iter))
    return fits
