"""Per-position design matrices for genome scans.

Every scan variant regresses the phenotype at position j on one design
matrix with columns, in this order:

    [probs(j), addcovar, intcovar[:, 0] * probs(j), ..., intcovar[:, k] * probs(j)]

where probs(j) is the (n_ind, n_gen) genotype probability slice at j. Without
interactive covariates the trailing block is empty.

PositionDesigns produces these matrices under one of two memory strategies:

- highmem: the genotype-dependent columns for every position are built (and
  transformed, e.g. rotated into a kinship eigenbasis) once up front.
- lowmem: they are built and transformed per position as the scan reaches it.

Both strategies assemble identical matrices, so scan results do not depend
on the choice.
"""

from __future__ import annotations

from typing import NamedTuple

import numpy as np
from loguru import logger

from qtlscan.core.config import MemoryStrategy
from qtlscan.core.memory import (
    estimate_expanded_genoprobs_memory,
    log_memory_snapshot,
    select_memory_strategy,
)
from qtlscan.linalg.decomp import as_matrix
from qtlscan.linalg.matrix import (
    _as_3darray,
    _as_weights,
    matrix_x_3darray,
    weighted_3darray,
    weighted_matrix,
)


class ScanInputs(NamedTuple):
    """Validated scan inputs.

    Attributes:
        genoprobs: Genotype probabilities (n_ind, n_gen, n_pos).
        pheno: Phenotypes as a matrix (n_ind, n_phe).
        addcovar: Additive covariates (n_ind, n_add); zero columns if absent.
        intcovar: Interactive covariates (n_ind, n_int); zero columns if absent.
        weights: Observation weights (n_ind,) or None.
        vector_pheno: True if the phenotype was passed as a vector.
    """

    genoprobs: np.ndarray
    pheno: np.ndarray
    addcovar: np.ndarray
    intcovar: np.ndarray
    weights: np.ndarray | None
    vector_pheno: bool


def _optional_covariates(
    covar: np.ndarray | None, n_ind: int, name: str
) -> np.ndarray:
    if covar is None:
        return np.empty((n_ind, 0))
    covar = as_matrix(covar, name)
    if covar.shape[0] != n_ind:
        raise ValueError(
            f"{name} has {covar.shape[0]} rows but genoprobs has {n_ind} individuals"
        )
    return covar


def prepare_scan_inputs(
    genoprobs: np.ndarray,
    pheno: np.ndarray,
    addcovar: np.ndarray | None = None,
    intcovar: np.ndarray | None = None,
    weights: np.ndarray | None = None,
) -> ScanInputs:
    """Validate and normalize scan inputs.

    Raises:
        ValueError: If genoprobs is not 3-D, if any input disagrees with it in
            the number of individuals, or if weights are negative or not
            finite.
    """
    genoprobs = _as_3darray(genoprobs, "genoprobs")
    n_ind = genoprobs.shape[0]

    pheno = np.asarray(pheno, dtype=np.float64)
    vector_pheno = pheno.ndim == 1
    pheno = as_matrix(pheno, "pheno")
    if pheno.shape[0] != n_ind:
        raise ValueError(
            f"pheno has {pheno.shape[0]} rows but genoprobs has {n_ind} individuals"
        )

    addcovar = _optional_covariates(addcovar, n_ind, "addcovar")
    intcovar = _optional_covariates(intcovar, n_ind, "intcovar")
    if weights is not None:
        weights = _as_weights(weights, n_ind)

    return ScanInputs(genoprobs, pheno, addcovar, intcovar, weights, vector_pheno)


def interaction_columns(probs: np.ndarray, intcovar: np.ndarray) -> np.ndarray:
    """Products of every interactive covariate with every genotype column.

    Args:
        probs: Genotype probabilities at one position (n_ind, n_gen), or for
            all positions (n_ind, n_gen, n_pos).
        intcovar: Interactive covariates (n_ind, n_int).

    Returns:
        Array with n_gen * n_int columns on axis 1, covariate-major: the
        block for intcovar[:, k] is intcovar[:, k] * probs.
    """
    n_ind = probs.shape[0]
    trailing = (1,) * (probs.ndim - 1)
    blocks = [
        intcovar[:, k].reshape((n_ind,) + trailing) * probs
        for k in range(intcovar.shape[1])
    ]
    if not blocks:
        return np.empty((n_ind, 0) + probs.shape[2:])
    return np.concatenate(blocks, axis=1)


def form_interaction_design(
    probs: np.ndarray,
    addcovar: np.ndarray,
    intcovar: np.ndarray,
    position: int,
) -> np.ndarray:
    """Design matrix at one position with additive and interactive covariates.

    Args:
        probs: Genotype probabilities (n_ind, n_gen, n_pos).
        addcovar: Additive covariates (n_ind, n_add).
        intcovar: Interactive covariates (n_ind, n_int).
        position: Position index, 0-based.

    Returns:
        Matrix (n_ind, n_gen + n_add + n_gen * n_int).

    Raises:
        IndexError: If position is outside 0..n_pos-1.
    """
    probs = _as_3darray(probs, "probs")
    if not 0 <= position < probs.shape[2]:
        raise IndexError(f"position {position} out of range 0..{probs.shape[2] - 1}")
    addcovar = as_matrix(addcovar, "addcovar")
    intcovar = as_matrix(intcovar, "intcovar")

    slice_ = probs[:, :, position]
    return np.hstack([slice_, addcovar, interaction_columns(slice_, intcovar)])


def expand_genoprobs_intcovar(probs: np.ndarray, intcovar: np.ndarray) -> np.ndarray:
    """Genotype probabilities followed by their interactions, for all positions.

    Returns:
        Array (n_ind, n_gen * (1 + n_int), n_pos). Slice [:, :, j] holds the
        genotype columns then the interaction columns of the design at j.
    """
    probs = _as_3darray(probs, "probs")
    intcovar = as_matrix(intcovar, "intcovar")
    if intcovar.shape[0] != probs.shape[0]:
        raise ValueError(
            f"intcovar has {intcovar.shape[0]} rows but probs has "
            f"{probs.shape[0]} individuals"
        )
    return np.concatenate([probs, interaction_columns(probs, intcovar)], axis=1)


def resolve_memory_strategy(
    memory: MemoryStrategy, genoprobs: np.ndarray, intcovar: np.ndarray
) -> str:
    """Turn "auto" into "highmem" or "lowmem" from the expanded array size."""
    if memory != "auto":
        return memory
    n_ind, n_gen, n_pos = genoprobs.shape
    required_gb = estimate_expanded_genoprobs_memory(
        n_ind, n_gen, intcovar.shape[1], n_pos
    )
    return select_memory_strategy(required_gb)


class PositionDesigns:
    """Design matrices for each position of a scan, under a memory strategy.

    An optional linear transform acts on the individual axis of every design:
    first the matrix ``rotation`` (e.g. transposed kinship eigenvectors), then
    row scaling by ``scale`` (e.g. square roots of observation weights).
    Interaction columns are formed before transforming, so the result is the
    transform of the untransformed design.

    Args:
        genoprobs: Genotype probabilities (n_ind, n_gen, n_pos).
        addcovar: Additive covariates (n_ind, n_add).
        intcovar: Interactive covariates (n_ind, n_int).
        memory: "highmem" or "lowmem".
        rotation: Optional (n_ind, n_ind) matrix applied on the left.
        scale: Optional (n_ind,) row multipliers.
    """

    def __init__(
        self,
        genoprobs: np.ndarray,
        addcovar: np.ndarray,
        intcovar: np.ndarray,
        memory: str,
        rotation: np.ndarray | None = None,
        scale: np.ndarray | None = None,
    ):
        if memory not in ("highmem", "lowmem"):
            raise ValueError(f"memory must be 'highmem' or 'lowmem', got {memory!r}")
        self.genoprobs = genoprobs
        self.intcovar = intcovar
        self.memory = memory
        self.rotation = rotation
        self.scale = scale
        self.n_gen = genoprobs.shape[1]
        self.n_pos = genoprobs.shape[2]
        self.addcovar = self.transform(addcovar)

        self._columns = None
        if memory == "highmem":
            expanded = expand_genoprobs_intcovar(genoprobs, intcovar)
            if rotation is not None:
                expanded = matrix_x_3darray(rotation, expanded)
            if scale is not None:
                expanded = weighted_3darray(expanded, scale)
            self._columns = expanded
            logger.debug(
                f"Precomputed genotype columns {self._columns.shape} "
                f"({self._columns.nbytes / 1e9:.3f}GB)"
            )
            log_memory_snapshot("after genotype expansion", level="DEBUG")

    def transform(self, A: np.ndarray) -> np.ndarray:
        """Apply the rotation and row scaling to a matrix (n_ind, k)."""
        if self.rotation is not None and A.shape[1] > 0:
            A = self.rotation @ A
        if self.scale is not None:
            A = weighted_matrix(A, self.scale)
        return A

    def genotype_columns(self, position: int) -> np.ndarray:
        """Transformed genotype and interaction columns at one position."""
        if self._columns is not None:
            return self._columns[:, :, position]
        slice_ = self.genoprobs[:, :, position]
        return self.transform(
            np.hstack([slice_, interaction_columns(slice_, self.intcovar)])
        )

    def __len__(self) -> int:
        return self.n_pos

    def __call__(self, position: int) -> np.ndarray:
        columns = self.genotype_columns(position)
        return np.hstack(
            [columns[:, : self.n_gen], self.addcovar, columns[:, self.n_gen :]]
        )
