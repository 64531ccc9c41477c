"""Haley-Knott regression genome scan for one chromosome.

At each position the phenotypes are regressed on the design built by
qtlscan.scan.design (genotype probabilities, additive covariates and
genotype-by-covariate interactions) and the residual sum of squares is
recorded. With observation weights w, rows of the phenotypes and the design
are scaled by sqrt(w) before the fit, giving weighted least squares.
"""

from __future__ import annotations

import numpy as np
from loguru import logger

from qtlscan.core.config import ScanOptions
from qtlscan.core.progress import iter_positions
from qtlscan.core.threading import blas_threads
from qtlscan.linalg.linreg import calc_mvrss
from qtlscan.linalg.matrix import weighted_matrix
from qtlscan.scan.design import (
    PositionDesigns,
    prepare_scan_inputs,
    resolve_memory_strategy,
)
from qtlscan.utils.logging import log_duration


def scan_hk(
    genoprobs: np.ndarray,
    pheno: np.ndarray,
    addcovar: np.ndarray | None = None,
    intcovar: np.ndarray | None = None,
    weights: np.ndarray | None = None,
    options: ScanOptions | None = None,
) -> np.ndarray:
    """Haley-Knott scan of one chromosome.

    Args:
        genoprobs: Genotype probabilities (n_ind, n_gen, n_pos).
        pheno: Phenotypes, a vector (n_ind,) or a matrix (n_ind, n_phe).
        addcovar: Additive covariates (n_ind, n_add), or None.
        intcovar: Interactive covariates (n_ind, n_int), or None. Include
            them in addcovar as well for the usual nested model.
        weights: Observation weights (n_ind,), or None for ordinary least
            squares.
        options: Tolerance, solver, memory strategy and display settings.

    Returns:
        Residual sums of squares, (n_pos,) for a vector phenotype or
        (n_pos, n_phe) for a matrix.

    Raises:
        ValueError: On inconsistent shapes or invalid weights.
        numpy.linalg.LinAlgError: With method="cholesky" at a position whose
            design is rank deficient.
    """
    options = options or ScanOptions()
    inputs = prepare_scan_inputs(genoprobs, pheno, addcovar, intcovar, weights)
    n_ind, n_gen, n_pos = inputs.genoprobs.shape
    memory = resolve_memory_strategy(options.memory, inputs.genoprobs, inputs.intcovar)

    Y = inputs.pheno
    scale = None
    if inputs.weights is not None:
        scale = np.sqrt(inputs.weights)
        Y = weighted_matrix(Y, scale)
    designs = PositionDesigns(
        inputs.genoprobs, inputs.addcovar, inputs.intcovar, memory, scale=scale
    )

    logger.debug(
        f"HK scan: {n_ind} individuals, {n_gen} genotypes, {n_pos} positions, "
        f"{Y.shape[1]} phenotypes, {inputs.addcovar.shape[1]} additive and "
        f"{inputs.intcovar.shape[1]} interactive covariates, "
        f"weighted={inputs.weights is not None}, memory={memory}, "
        f"method={options.method}"
    )

    result = np.empty((n_pos, Y.shape[1]))
    with log_duration("HK scan"), blas_threads(options.n_threads):
        for pos in iter_positions(n_pos, options.show_progress, "HK scan"):
            result[pos] = calc_mvrss(designs(pos), Y, options.tol, options.method)

    return result[:, 0] if inputs.vector_pheno else result


def scan_hk_onechr_nocovar(genoprobs, pheno, tol=1e-12):
    """Haley-Knott scan without covariates."""
    return scan_hk(genoprobs, pheno, options=ScanOptions(tol=tol))


def scan_hk_onechr(genoprobs, pheno, addcovar, tol=1e-12):
    """Haley-Knott scan with additive covariates."""
    return scan_hk(genoprobs, pheno, addcovar, options=ScanOptions(tol=tol))


def scan_hk_onechr_weighted(genoprobs, pheno, addcovar, weights, tol=1e-12):
    """Weighted Haley-Knott scan with additive covariates."""
    return scan_hk(
        genoprobs, pheno, addcovar, weights=weights, options=ScanOptions(tol=tol)
    )


def scan_hk_onechr_intcovar_highmem(genoprobs, pheno, addcovar, intcovar, tol=1e-12):
    """Interactive-covariate scan with all positions expanded up front."""
    return scan_hk(
        genoprobs,
        pheno,
        addcovar,
        intcovar,
        options=ScanOptions(tol=tol, memory="highmem"),
    )


def scan_hk_onechr_intcovar_lowmem(genoprobs, pheno, addcovar, intcovar, tol=1e-12):
    """Interactive-covariate scan forming each design as it is reached."""
    return scan_hk(
        genoprobs,
        pheno,
        addcovar,
        intcovar,
        options=ScanOptions(tol=tol, memory="lowmem"),
    )


def scan_hk_onechr_intcovar_weighted_highmem(
    genoprobs, pheno, addcovar, intcovar, weights, tol=1e-12
):
    return scan_hk(
        genoprobs,
        pheno,
        addcovar,
        intcovar,
        weights,
        options=ScanOptions(tol=tol, memory="highmem"),
    )


def scan_hk_onechr_intcovar_weighted_lowmem(
    genoprobs, pheno, addcovar, intcovar, weights, tol=1e-12
):
    return scan_hk(
        genoprobs,
        pheno,
        addcovar,
        intcovar,
        weights,
        options=ScanOptions(tol=tol, memory="lowmem"),
    )
