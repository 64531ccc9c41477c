"""JAX batch heritability search across phenotype columns.

JIT-compiled, vmapped version of the mixed-model log-likelihood for fitting
many phenotypes against one full-rank rotated design:

1. Grid search over hsq in [0, 1] (vectorized across phenotypes)
2. Golden-section refinement inside the best grid cell (vectorized)

After the grid brackets the optimum to one cell on each side, each
golden-section step shrinks the bracket by 0.618; the iteration count is
chosen so the final bracket is narrower than tol.

Type annotations use jaxtyping for shape documentation:
    n = n_ind, m = n_phe, p = n_covariates, g = n_grid
"""

from __future__ import annotations

import math
from functools import partial
from typing import TYPE_CHECKING

import jax
import jax.numpy as jnp
import jax.scipy.linalg
import numpy as np
from jax import jit, vmap

from qtlscan.core.jax_config import configure_jax, device_arrays
from qtlscan.lmm.likelihood import VARIANCE_FLOOR
from qtlscan.lmm.optimize import ConvergenceError

if TYPE_CHECKING:
    from jaxtyping import Array, Float

_PHI = 0.6180339887498949  # Golden ratio - 1


@partial(jit, static_argnames=("reml",))
def log_likelihood_jax(
    hsq: Float[Array, ""],
    eigenvalues: Float[Array, " n"],
    y: Float[Array, " n"],
    X: Float[Array, "n p"],
    reml: bool,
    logdetXpX: float,
) -> Float[Array, ""]:
    """Mixed-model log-likelihood at one hsq for a full-rank X.

    Same formula as qtlscan.lmm.likelihood, solved through the Cholesky
    factor of X' V^-1 X instead of a pivoted QR.
    """
    n = y.shape[0]
    p = X.shape[1]
    v = jnp.maximum(hsq * eigenvalues + (1.0 - hsq), VARIANCE_FLOOR)
    w = 1.0 / v

    if p == 0:
        rss = jnp.sum(w * y * y)
        logdet_XVX = 0.0
    else:
        Xw = X * w[:, None]
        L = jnp.linalg.cholesky(Xw.T @ X)
        beta = jax.scipy.linalg.cho_solve((L, True), Xw.T @ y)
        resid = y - X @ beta
        rss = jnp.sum(w * resid * resid)
        logdet_XVX = 2.0 * jnp.sum(jnp.log(jnp.diag(L)))

    nu = n - p if reml else n
    sigmasq = rss / nu
    loglik = -0.5 * (nu * jnp.log(2.0 * jnp.pi * sigmasq) + jnp.sum(jnp.log(v)) + nu)
    if reml:
        loglik = loglik - 0.5 * (logdet_XVX - logdetXpX)
    return loglik


@partial(jit, static_argnames=("reml",))
def batch_log_likelihood(
    hsqs: Float[Array, " m"],
    eigenvalues: Float[Array, " n"],
    Y: Float[Array, "n m"],
    X: Float[Array, "n p"],
    reml: bool,
    logdetXpX: float,
) -> Float[Array, " m"]:
    """Log-likelihood for each phenotype column at its own hsq."""
    return vmap(
        lambda h, y: log_likelihood_jax(h, eigenvalues, y, X, reml, logdetXpX),
        in_axes=(0, 1),
    )(hsqs, Y)


@partial(jit, static_argnames=("reml", "n_grid", "n_iter", "check_boundary"))
def _golden_section_kernel(
    eigenvalues: Float[Array, " n"],
    Y: Float[Array, "n m"],
    X: Float[Array, "n p"],
    reml: bool,
    logdetXpX: float,
    n_grid: int,
    n_iter: int,
    check_boundary: bool,
) -> tuple[Float[Array, " m"], Float[Array, " m"]]:
    m = Y.shape[1]

    def loglik_at(hsqs):
        return batch_log_likelihood(hsqs, eigenvalues, Y, X, reml, logdetXpX)

    # Stage 1: interior grid, evaluated for every phenotype
    grid = jnp.linspace(0.0, 1.0, n_grid + 2)[1:-1]
    grid_logls = vmap(lambda h: loglik_at(jnp.full(m, h)))(grid)  # (g, m)
    best_idx = jnp.argmax(grid_logls, axis=0)

    step = 1.0 / (n_grid + 1)
    a = jnp.maximum(grid[best_idx] - step, 0.0)
    b = jnp.minimum(grid[best_idx] + step, 1.0)

    c = b - _PHI * (b - a)
    d = a + _PHI * (b - a)
    fc = loglik_at(c)
    fd = loglik_at(d)

    # Stage 2: golden section, maximizing
    def golden_step(_, state):
        a, b, c, d, fc, fd = state
        keep_left = fc > fd

        new_a = jnp.where(keep_left, a, c)
        new_b = jnp.where(keep_left, d, b)
        new_c = new_b - _PHI * (new_b - new_a)
        new_d = new_a + _PHI * (new_b - new_a)

        new_logl = loglik_at(jnp.where(keep_left, new_c, new_d))
        new_fc = jnp.where(keep_left, new_logl, fd)
        new_fd = jnp.where(keep_left, fc, new_logl)
        return (new_a, new_b, new_c, new_d, new_fc, new_fd)

    a, b, c, d, fc, fd = jax.lax.fori_loop(
        0, n_iter, golden_step, (a, b, c, d, fc, fd)
    )
    best_hsq = (a + b) / 2
    best_logl = loglik_at(best_hsq)

    if check_boundary:
        for edge in (0.0, 1.0):
            edge_hsq = jnp.full(m, edge)
            edge_logl = loglik_at(edge_hsq)
            better = edge_logl > best_logl
            best_hsq = jnp.where(better, edge_hsq, best_hsq)
            best_logl = jnp.where(better, edge_logl, best_logl)

    return best_hsq, best_logl


def golden_section_fit_hsq(
    eigenvalues: np.ndarray,
    Y: np.ndarray,
    X: np.ndarray,
    reml: bool = True,
    logdetXpX: float = 0.0,
    check_boundary: bool = True,
    tol: float = 1e-4,
    n_grid: int = 20,
) -> tuple[np.ndarray, int]:
    """Fit hsq for every column of Y with one vectorized search.

    Args:
        eigenvalues: Kinship eigenvalues (n,).
        Y: Rotated phenotypes (n, m).
        X: Rotated covariates (n, p) with linearly independent columns.
        reml: Maximize the REML (True) or ML (False) likelihood.
        logdetXpX: log|X'X| for the REML term.
        check_boundary: Also compare against hsq=0 and hsq=1.
        tol: Width of the final bracket on hsq.
        n_grid: Number of interior grid points.

    Returns:
        Tuple of (hsq per column as numpy array, golden-section iterations).

    Raises:
        ConvergenceError: If any fitted log-likelihood is not finite.
    """
    configure_jax(enable_x64=True)

    width = 2.0 / (n_grid + 1)
    n_iter = max(1, math.ceil(math.log(tol / width) / math.log(_PHI)))

    hsqs, logls = _golden_section_kernel(
        *device_arrays(eigenvalues, Y, X),
        reml,
        float(logdetXpX),
        n_grid,
        n_iter,
        check_boundary,
    )
    if not bool(jnp.all(jnp.isfinite(logls))):
        raise ConvergenceError("Batch heritability search gave non-finite likelihoods")
    return np.asarray(hsqs), n_iter
