"""Linear mixed model genome scan for one chromosome.

The phenotype, covariates and genotype columns are rotated into the kinship
eigenbasis, where the residual covariance is diagonal. Two modes:

- weights: the residual variances are fixed (weights are their inverses, as
  from a null-model fit). The scan is a weighted regression per position and
  reports its ML log-likelihood; hsq is not estimated.
- eigenvalues: heritability is re-fit at every position by maximizing the
  ML or REML log-likelihood (qtlscan.lmm.optimize.fit_lmm).

Phenotype and additive covariates are rotated once; genotype columns are
rotated per position (lowmem) or for the whole chromosome at once (highmem).
"""

from __future__ import annotations

from typing import NamedTuple

import numpy as np
from loguru import logger

from qtlscan.core.config import ScanOptions
from qtlscan.core.progress import iter_positions
from qtlscan.core.threading import blas_threads
from qtlscan.linalg.linreg import calc_rss
from qtlscan.lmm.optimize import fit_lmm
from qtlscan.scan.design import (
    PositionDesigns,
    prepare_scan_inputs,
    resolve_memory_strategy,
)
from qtlscan.utils.logging import log_duration


class LMMScan(NamedTuple):
    """Result of an LMM scan.

    Attributes:
        loglik: Log-likelihood per position (n_pos,).
        hsq: Fitted heritability per position (n_pos,); NaN in weights mode.
    """

    loglik: np.ndarray
    hsq: np.ndarray


def scan_lmm(
    genoprobs: np.ndarray,
    pheno: np.ndarray,
    addcovar: np.ndarray | None,
    eigenvec: np.ndarray,
    *,
    weights: np.ndarray | None = None,
    eigenvalues: np.ndarray | None = None,
    intcovar: np.ndarray | None = None,
    options: ScanOptions | None = None,
) -> LMMScan:
    """Mixed-model scan of one chromosome for a single phenotype.

    Args:
        genoprobs: Genotype probabilities (n_ind, n_gen, n_pos).
        pheno: Phenotype (n_ind,) or (n_ind, 1), not rotated.
        addcovar: Additive covariates (n_ind, n_add), not rotated, or None.
        eigenvec: Kinship eigenvectors (n_ind, n_ind), one per column.
        weights: Inverse residual variances in the eigenbasis (n_ind,),
            e.g. 1 / (hsq * eigenvalues + 1 - hsq) at the null-model hsq.
        eigenvalues: Kinship eigenvalues (n_ind,), to re-fit hsq per position.
        intcovar: Interactive covariates (n_ind, n_int), or None.
        options: Tolerances, solver, REML flag, memory and display settings.

    Returns:
        LMMScan with the log-likelihood and hsq per position.

    Raises:
        ValueError: Unless exactly one of weights and eigenvalues is given, on
            inconsistent shapes, or on a phenotype with more than one column.
    """
    if (weights is None) == (eigenvalues is None):
        raise ValueError("Provide exactly one of weights or eigenvalues")
    options = options or ScanOptions()
    inputs = prepare_scan_inputs(genoprobs, pheno, addcovar, intcovar, weights)
    if inputs.pheno.shape[1] != 1:
        raise ValueError(
            f"scan_lmm takes a single phenotype, got {inputs.pheno.shape[1]} columns"
        )
    n_ind, n_gen, n_pos = inputs.genoprobs.shape

    eigenvec = np.asarray(eigenvec, dtype=np.float64)
    if eigenvec.shape != (n_ind, n_ind):
        raise ValueError(
            f"eigenvec must be ({n_ind}, {n_ind}) for {n_ind} individuals, "
            f"got {eigenvec.shape}"
        )
    # covariates are rotated with the genotype columns in PositionDesigns
    y = eigenvec.T @ inputs.pheno[:, 0]
    memory = resolve_memory_strategy(options.memory, inputs.genoprobs, inputs.intcovar)
    logger.debug(
        f"LMM scan: {n_ind} individuals, {n_gen} genotypes, {n_pos} positions, "
        f"mode={'weights' if weights is not None else 'eigenvalues'}, "
        f"memory={memory}, reml={options.reml}"
    )

    with log_duration("LMM scan"), blas_threads(options.n_threads):
        if inputs.weights is not None:
            result = _scan_fixed_weights(inputs, eigenvec, y, memory, options)
        else:
            result = _scan_fit_hsq(inputs, eigenvec, eigenvalues, y, memory, options)
    return result


def _scan_fixed_weights(inputs, eigenvec, y, memory, options) -> LMMScan:
    if np.any(inputs.weights <= 0):
        raise ValueError("weights must be strictly positive for an LMM scan")
    scale = np.sqrt(inputs.weights)
    designs = PositionDesigns(
        inputs.genoprobs,
        inputs.addcovar,
        inputs.intcovar,
        memory,
        rotation=eigenvec.T,
        scale=scale,
    )
    y = y * scale
    n = y.size
    sum_log_weights = float(np.sum(np.log(inputs.weights)))

    loglik = np.empty(len(designs))
    for pos in iter_positions(len(designs), options.show_progress, "LMM scan"):
        rss = calc_rss(designs(pos), y, options.tol, options.method)
        loglik[pos] = -0.5 * (n * np.log(2.0 * np.pi * rss / n) + n - sum_log_weights)
    return LMMScan(loglik, np.full(loglik.shape, np.nan))


def _scan_fit_hsq(inputs, eigenvec, eigenvalues, y, memory, options) -> LMMScan:
    eigenvalues = np.asarray(eigenvalues, dtype=np.float64)
    designs = PositionDesigns(
        inputs.genoprobs, inputs.addcovar, inputs.intcovar, memory, rotation=eigenvec.T
    )

    loglik = np.empty(len(designs))
    hsq = np.empty(len(designs))
    for pos in iter_positions(len(designs), options.show_progress, "LMM scan"):
        fit = fit_lmm(
            eigenvalues,
            y,
            designs(pos),
            reml=options.reml,
            check_boundary=options.check_boundary,
            tol=options.hsq_tol,
            rank_tol=options.tol,
        )
        loglik[pos] = fit.loglik
        hsq[pos] = fit.hsq
    return LMMScan(loglik, hsq)


def scan_lmm_onechr(genoprobs, pheno, addcovar, eigenvec, weights, tol=1e-12):
    """LMM scan with fixed weights; returns the log-likelihood per position.

    weights are inverse residual variances 1 / (hsq * eigenvalues + 1 - hsq)
    and their square roots scale the rows. Callers holding the row
    multipliers 1 / sqrt(v) must pass their squares.
    """
    return scan_lmm(
        genoprobs,
        pheno,
        addcovar,
        eigenvec,
        weights=weights,
        options=ScanOptions(tol=tol),
    ).loglik


def scan_lmm_onechr_intcovar_highmem(
    genoprobs, pheno, addcovar, intcovar, eigenvec, weights, tol=1e-12
):
    """Fixed-weight interactive LMM scan, genotype columns expanded up front.

    weights are inverse variances, as in scan_lmm_onechr, not row multipliers.
    """
    return scan_lmm(
        genoprobs,
        pheno,
        addcovar,
        eigenvec,
        weights=weights,
        intcovar=intcovar,
        options=ScanOptions(tol=tol, memory="highmem"),
    ).loglik


def scan_lmm_onechr_intcovar_lowmem(
    genoprobs, pheno, addcovar, intcovar, eigenvec, weights, tol=1e-12
):
    """Fixed-weight interactive LMM scan, designs formed per position.

    weights are inverse variances, as in scan_lmm_onechr, not row multipliers.
    """
    return scan_lmm(
        genoprobs,
        pheno,
        addcovar,
        eigenvec,
        weights=weights,
        intcovar=intcovar,
        options=ScanOptions(tol=tol, memory="lowmem"),
    ).loglik
