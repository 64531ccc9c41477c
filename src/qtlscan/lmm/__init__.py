"""Linear mixed model (LMM) machinery for QTL scans.

Key components:
- eigen_decompose: kinship eigendecomposition with small-eigenvalue zeroing
- eigen_rotate: rotation of phenotype and covariates into the eigenbasis
- log_det_XpX, reml_logdet_XpX: log|X'X| for the REML correction
- log_likelihood: ML/REML log-likelihood at a given heritability
- fit_lmm / fit_lmm_multi: Brent search for the maximizing heritability

The JAX batch search lives in qtlscan.lmm.likelihood_jax and is imported
only when the jax backend is selected.
"""

from qtlscan.lmm.eigen import eigen_decompose, eigen_rotate, log_det_XpX
from qtlscan.lmm.likelihood import (
    LMMEval,
    evaluate_lmm,
    log_likelihood,
    reml_logdet_XpX,
)
from qtlscan.lmm.optimize import (
    ConvergenceError,
    LMMFit,
    brent_minimize,
    fit_lmm,
    fit_lmm_multi,
)

__all__ = [
    "eigen_decompose",
    "eigen_rotate",
    "log_det_XpX",
    "LMMEval",
    "evaluate_lmm",
    "log_likelihood",
    "reml_logdet_XpX",
    "ConvergenceError",
    "LMMFit",
    "brent_minimize",
    "fit_lmm",
    "fit_lmm_multi",
]
