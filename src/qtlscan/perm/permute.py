"""Uniform and stratified permutations for empirical null distributions.

The random source is always passed in explicitly: either a
numpy.random.Generator, which is used and advanced in place, or a seed,
from which a fresh Generator is built. Given the same Generator state, every
function here returns the same result.

Output layout: one permutation per column, so ``permute(n_perm, x)`` has
shape ``(len(x), n_perm)`` and column j can be used directly as a permuted
phenotype vector for scan j.
"""

from __future__ import annotations

import numpy as np

RandomSource = np.random.Generator | int | None


def as_generator(rng: RandomSource) -> np.random.Generator:
    """Return rng itself if it is a Generator, else a Generator seeded by it."""
    return np.random.default_rng(rng)


def random_int(
    n: int, low: int, high: int, rng: RandomSource = None
) -> np.ndarray:
    """Draw n integers uniformly from low..high, both ends inclusive.

    Raises:
        ValueError: If n is negative or high < low.
    """
    if n < 0:
        raise ValueError(f"n must be non-negative, got {n}")
    if high < low:
        raise ValueError(f"high ({high}) must be >= low ({low})")
    return as_generator(rng).integers(low, high, size=n, endpoint=True)


def get_permutation(n: int, rng: RandomSource = None) -> np.ndarray:
    """Uniformly random permutation of 0..n-1 by Fisher-Yates shuffle.

    Position i (from n-1 down to 1) is swapped with a uniform draw from 0..i.

    Example:
        >>> sorted(get_permutation(5, rng=1).tolist())
        [0, 1, 2, 3, 4]
    """
    if n < 0:
        raise ValueError(f"n must be non-negative, got {n}")
    result = np.arange(n)
    if n < 2:
        return result

    upper = np.arange(n - 1, 0, -1)
    swaps = as_generator(rng).integers(0, upper, endpoint=True)
    for i, j in zip(upper, swaps):
        result[i], result[j] = result[j], result[i]
    return result


def permute(n_perm: int, x: np.ndarray, rng: RandomSource = None) -> np.ndarray:
    """Independent uniform permutations of a vector.

    Args:
        n_perm: Number of permutations.
        x: Numeric or integer vector; the dtype is preserved.
        rng: Random source.

    Returns:
        Array (len(x), n_perm); each column is a permutation of x.
    """
    x = _as_vector(x)
    if n_perm < 0:
        raise ValueError(f"n_perm must be non-negative, got {n_perm}")
    rng = as_generator(rng)

    result = np.empty((x.size, n_perm), dtype=x.dtype)
    for j in range(n_perm):
        result[:, j] = x[get_permutation(x.size, rng)]
    return result


def permute_stratified(
    n_perm: int,
    x: np.ndarray,
    strata: np.ndarray,
    n_strata: int,
    rng: RandomSource = None,
) -> np.ndarray:
    """Permutations of x that only exchange entries within a stratum.

    For every column and every stratum s, the values at positions with
    strata == s are a fresh uniform permutation of the original values at
    those positions; nothing crosses a stratum boundary.

    Args:
        n_perm: Number of permutations.
        x: Numeric or integer vector; the dtype is preserved.
        strata: Integer labels in 0..n_strata-1, one per entry of x.
        n_strata: Number of strata.
        rng: Random source.

    Returns:
        Array (len(x), n_perm).

    Raises:
        ValueError: On length mismatch or labels outside 0..n_strata-1.
    """
    x = _as_vector(x)
    strata = np.asarray(strata)
    if strata.ndim != 1 or strata.size != x.size:
        raise ValueError(
            f"strata must be a vector of length {x.size}, got shape {strata.shape}"
        )
    if not np.issubdtype(strata.dtype, np.integer):
        raise ValueError(f"strata must be integer labels, got dtype {strata.dtype}")
    if n_strata < 1:
        raise ValueError(f"n_strata must be positive, got {n_strata}")
    if strata.size and (strata.min() < 0 or strata.max() >= n_strata):
        raise ValueError(
            f"strata labels must be in 0..{n_strata - 1}, "
            f"got range {strata.min()}..{strata.max()}"
        )
    if n_perm < 0:
        raise ValueError(f"n_perm must be non-negative, got {n_perm}")
    rng = as_generator(rng)

    groups = [np.flatnonzero(strata == s) for s in range(n_strata)]
    result = np.empty((x.size, n_perm), dtype=x.dtype)
    for j in range(n_perm):
        column = x.copy()
        for index in groups:
            if index.size > 1:
                column[index] = x[index[get_permutation(index.size, rng)]]
        result[:, j] = column
    return result


def _as_vector(x: np.ndarray) -> np.ndarray:
    x = np.asarray(x)
    if x.ndim != 1:
        raise ValueError(f"x must be a vector, got {x.ndim} dims")
    return x
