"""Rank-revealing pivoted QR decomposition.

Every rank and collinearity decision in qtlscan (least-squares fits, RSS,
residuals, independent column selection, per-position design reduction)
goes through rank_revealing_qr so that all of them agree for a given tol.

Rank rule: with column pivoting, |R[k, k]| is non-increasing in k. Column
pivots[k] is retained when |R[k, k]| > tol * |R[0, 0]|.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import scipy.linalg

from qtlscan.core.config import DEFAULT_TOL


def as_matrix(X: np.ndarray, name: str = "X") -> np.ndarray:
    """Return X as a 2-D float64 array, promoting vectors to one column."""
    X = np.asarray(X, dtype=np.float64)
    if X.ndim == 1:
        return X.reshape(-1, 1)
    if X.ndim != 2:
        raise ValueError(f"{name} must be a vector or matrix, got {X.ndim} dims")
    return X


def check_same_rows(X: np.ndarray, Y: np.ndarray, x_name="X", y_name="Y") -> None:
    """Raise ValueError unless X and Y have the same number of rows."""
    if X.shape[0] != Y.shape[0]:
        raise ValueError(
            f"{x_name} has {X.shape[0]} rows but {y_name} has {Y.shape[0]}"
        )


@dataclass(frozen=True)
class PivotedQR:
    """Economic column-pivoted QR with tolerance-based rank.

    Attributes:
        q: Orthonormal factor (n, k) with k = min(n, p).
        r: Upper-triangular factor (k, p), columns in pivot order.
        pivots: Column permutation (p,); X[:, pivots] = q @ r.
        rank: Number of retained columns.
    """

    q: np.ndarray
    r: np.ndarray
    pivots: np.ndarray
    rank: int

    @property
    def n_cols(self) -> int:
        return self.pivots.size

    @property
    def retained(self) -> np.ndarray:
        """Sorted indices of the retained (linearly independent) columns."""
        return np.sort(self.pivots[: self.rank])

    @property
    def q_retained(self) -> np.ndarray:
        return self.q[:, : self.rank]

    def project(self, Y: np.ndarray) -> np.ndarray:
        """Projection of Y onto the column space of the retained columns."""
        Q = self.q_retained
        return Q @ (Q.T @ Y)

    def residuals(self, Y: np.ndarray) -> np.ndarray:
        return Y - self.project(Y)

    def solve(self, Y: np.ndarray) -> np.ndarray:
        """Least-squares coefficients; dropped columns get NaN.

        Args:
            Y: Response vector (n,) or matrix (n, m).

        Returns:
            Coefficients (p,) or (p, m) in the original column order.
        """
        k = self.rank
        shape = (self.n_cols,) + Y.shape[1:]
        coef = np.full(shape, np.nan)
        if k == 0:
            return coef
        qty = self.q[:, :k].T @ Y
        coef[self.pivots[:k]] = scipy.linalg.solve_triangular(
            self.r[:k, :k], qty, check_finite=False
        )
        return coef

    def unscaled_variances(self) -> np.ndarray:
        """Diagonal of (X'X)^-1 for retained columns, NaN for dropped ones."""
        k = self.rank
        out = np.full(self.n_cols, np.nan)
        if k == 0:
            return out
        r_inv = scipy.linalg.solve_triangular(
            self.r[:k, :k], np.eye(k), check_finite=False
        )
        out[self.pivots[:k]] = np.sum(r_inv**2, axis=1)
        return out


def rank_revealing_qr(X: np.ndarray, tol: float = DEFAULT_TOL) -> PivotedQR:
    """Factor X with column-pivoted Householder QR and determine its rank.

    Args:
        X: Matrix (n, p). A vector is treated as a single column.
        tol: Relative pivot threshold.

    Returns:
        PivotedQR for X.
    """
    X = as_matrix(X)
    n, p = X.shape
    if n == 0 or p == 0:
        return PivotedQR(
            q=np.zeros((n, 0)),
            r=np.zeros((0, p)),
            pivots=np.arange(p),
            rank=0,
        )

    q, r, pivots = scipy.linalg.qr(
        X, mode="economic", pivoting=True, check_finite=False
    )
    diag = np.abs(np.diag(r))
    keep = diag > tol * diag[0]
    # leading run only; pivoting keeps the diagonal non-increasing
    rank = keep.size if keep.all() else int(np.argmin(keep))

    return PivotedQR(q=q, r=r, pivots=pivots, rank=rank)
