"""Permutation generation for empirical null distributions."""

from qtlscan.perm.permute import (
    RandomSource,
    as_generator,
    get_permutation,
    permute,
    permute_stratified,
    random_int,
)

__all__ = [
    "RandomSource",
    "as_generator",
    "get_permutation",
    "permute",
    "permute_stratified",
    "random_int",
]
