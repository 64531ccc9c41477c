"""Single-chromosome genome scans.

- scan_hk: Haley-Knott regression, optionally weighted, with additive and
  interactive covariates
- scan_lmm: linear mixed model scan, with fixed weights or per-position
  heritability
- design: per-position design matrices under the highmem/lowmem strategies

The scan_*_onechr* functions are fixed-argument wrappers over scan_hk and
scan_lmm, one per covariate/weighting/memory combination.
"""

from qtlscan.scan.design import (
    PositionDesigns,
    expand_genoprobs_intcovar,
    form_interaction_design,
)
from qtlscan.scan.hk import (
    scan_hk,
    scan_hk_onechr,
    scan_hk_onechr_intcovar_highmem,
    scan_hk_onechr_intcovar_lowmem,
    scan_hk_onechr_intcovar_weighted_highmem,
    scan_hk_onechr_intcovar_weighted_lowmem,
    scan_hk_onechr_nocovar,
    scan_hk_onechr_weighted,
)
from qtlscan.scan.lmm import (
    LMMScan,
    scan_lmm,
    scan_lmm_onechr,
    scan_lmm_onechr_intcovar_highmem,
    scan_lmm_onechr_intcovar_lowmem,
)

__all__ = [
    "PositionDesigns",
    "expand_genoprobs_intcovar",
    "form_interaction_design",
    "scan_hk",
    "scan_hk_onechr",
    "scan_hk_onechr_intcovar_highmem",
    "scan_hk_onechr_intcovar_lowmem",
    "scan_hk_onechr_intcovar_weighted_highmem",
    "scan_hk_onechr_intcovar_weighted_lowmem",
    "scan_hk_onechr_nocovar",
    "scan_hk_onechr_weighted",
    "LMMScan",
    "scan_lmm",
    "scan_lmm_onechr",
    "scan_lmm_onechr_intcovar_highmem",
    "scan_lmm_onechr_intcovar_lowmem",
]
