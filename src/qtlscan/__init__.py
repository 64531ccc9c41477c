"""qtlscan: numerical engine for QTL genome scans.

Haley-Knott regression and linear mixed model scans of one chromosome at a
time, built on a rank-revealing least-squares core, plus the permutation
machinery for genome-wide significance thresholds.

Key features:
- Rank-aware QR and fast Cholesky least squares with identical results on
  full-rank designs
- Additive, interactive and weighted covariate models under a highmem or
  lowmem memory strategy
- ML/REML heritability fits in the kinship eigenbasis, with an optional JAX
  batch search across traits

Example:
    >>> import numpy as np
    >>> from qtlscan import scan_hk
    >>> rng = np.random.default_rng(1)
    >>> probs = rng.dirichlet(np.ones(3), size=(50, 10)).transpose(0, 2, 1)
    >>> rss = scan_hk(probs, rng.normal(size=50))
    >>> rss.shape
    (10,)
"""

from importlib.metadata import version

from qtlscan.utils.logging import setup_logging

__version__ = version("qtlscan")

# Default INFO sink on stdout; call setup_logging() or logger.remove()/add()
# to change it
setup_logging()

from qtlscan.core.config import ScanOptions  # noqa: E402
from qtlscan.lmm import eigen_decompose, fit_lmm  # noqa: E402
from qtlscan.perm import permute, permute_stratified  # noqa: E402
from qtlscan.scan import LMMScan, scan_hk, scan_lmm  # noqa: E402

__all__ = [
    "ScanOptions",
    "eigen_decompose",
    "fit_lmm",
    "permute",
    "permute_stratified",
    "LMMScan",
    "scan_hk",
    "scan_lmm",
    "__version__",
]
