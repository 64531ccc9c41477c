"""Linear algebra kernels for QTL scans.

- decomp: rank-revealing pivoted QR shared by all rank decisions
- linreg: least-squares fits, RSS and residuals (QR and Cholesky paths)
- columns: duplicate and independent column detection
- matrix: matrix products and row weighting
"""

from qtlscan.linalg.columns import find_independent_columns, find_matching_columns
from qtlscan.linalg.decomp import PivotedQR, rank_revealing_qr
from qtlscan.linalg.linreg import (
    LinRegFit,
    calc_mvrss,
    calc_rss,
    fit_linreg,
    residuals_linreg,
    residuals_linreg_3d,
    rss_linreg,
)
from qtlscan.linalg.matrix import (
    matrix_x_3darray,
    matrix_x_matrix,
    matrix_x_vector,
    weighted_3darray,
    weighted_matrix,
)

__all__ = [
    "PivotedQR",
    "rank_revealing_qr",
    "LinRegFit",
    "fit_linreg",
    "calc_rss",
    "calc_mvrss",
    "rss_linreg",
    "residuals_linreg",
    "residuals_linreg_3d",
    "find_matching_columns",
    "find_independent_columns",
    "matrix_x_matrix",
    "matrix_x_vector",
    "matrix_x_3darray",
    "weighted_matrix",
    "weighted_3darray",
]
