"""Pytest fixtures for the qtlscan test suite."""

from __future__ import annotations

import numpy as np
import pytest

# =============================================================================
# Test Tier System
# =============================================================================
#
# tier0 - Fast unit tests (<5s each)
#   - Pure computation on small synthetic inputs
#   - Run: pytest -m tier0
#
# tier1 - Agreement tests
#   - Cross-checks between solvers (QR vs Cholesky), memory strategies
#     (highmem vs lowmem) and backends (numpy vs JAX)
#   - Run: pytest -m tier1
#
# Quick reference:
#   pytest -m tier0             # Fast tests only
#   pytest -m "tier0 or tier1"  # Unit + agreement tests
#   pytest -m "not jax"         # Skip the JAX backend
# =============================================================================


def make_genoprobs(
    rng: np.random.Generator, n_ind: int, n_gen: int, n_pos: int
) -> np.ndarray:
    """Random genotype probabilities (n_ind, n_gen, n_pos) summing to one."""
    probs = rng.dirichlet(np.ones(n_gen), size=(n_ind, n_pos))
    return probs.transpose(0, 2, 1)


def make_kinship(rng: np.random.Generator, n_ind: int, n_snp: int = 200) -> np.ndarray:
    """Positive semi-definite kinship matrix from random genotypes."""
    G = rng.binomial(2, 0.3, size=(n_ind, n_snp)).astype(np.float64)
    G -= G.mean(axis=0)
    return G @ G.T / n_snp


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(20240611)


@pytest.fixture
def genoprobs(rng) -> np.ndarray:
    """Genotype probabilities for 40 individuals, 3 genotypes, 6 positions."""
    return make_genoprobs(rng, 40, 3, 6)


@pytest.fixture
def pheno(rng) -> np.ndarray:
    return rng.normal(size=(40, 2))


@pytest.fixture
def addcovar(rng) -> np.ndarray:
    """Additive covariates: a binary sex indicator and a continuous term.

    No intercept: genotype probabilities sum to one, so they already span it.
    """
    sex = rng.integers(0, 2, size=40).astype(np.float64)
    return np.column_stack([sex, rng.normal(size=40)])


@pytest.fixture
def kinship_eigen(rng):
    """Eigendecomposition (values, vectors) of a 40x40 kinship matrix."""
    K = make_kinship(rng, 40)
    values, vectors = np.linalg.eigh(K)
    return np.clip(values, 0.0, None), vectors
