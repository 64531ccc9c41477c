"""Property-based tests using Hypothesis for numerical accuracy verification.

These tests verify:
1. Least-squares identities that must hold for any design
2. Agreement of the QR and Cholesky paths on full-rank designs
3. Rank handling when designs carry duplicated or dependent columns
"""

from __future__ import annotations

import numpy as np
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from qtlscan.linalg import (
    calc_mvrss,
    calc_rss,
    find_independent_columns,
    residuals_linreg,
)
from qtlscan.lmm import log_likelihood

pytestmark = pytest.mark.tier1


# -----------------------------------------------------------------------------
# Custom Strategies
# -----------------------------------------------------------------------------


@st.composite
def regression_problem(draw, min_samples=8, max_samples=60, max_cols=6):
    """Draw a full-rank design X (n, p) and responses Y (n, m)."""
    n = draw(st.integers(min_value=min_samples, max_value=max_samples))
    p = draw(st.integers(min_value=1, max_value=min(max_cols, n - 2)))
    m = draw(st.integers(min_value=1, max_value=3))
    rng = np.random.default_rng(draw(st.integers(min_value=0, max_value=2**32 - 1)))

    X = rng.standard_normal((n, p))
    X[:, 0] = 1.0
    Y = rng.standard_normal((n, m)) * draw(st.sampled_from([1e-3, 1.0, 1e3]))
    return X, Y


@st.composite
def eigen_problem(draw, min_samples=10, max_samples=40):
    """Draw kinship eigenvalues with rotated phenotype and covariates."""
    n = draw(st.integers(min_value=min_samples, max_value=max_samples))
    rng = np.random.default_rng(draw(st.integers(min_value=0, max_value=2**32 - 1)))

    G = rng.standard_normal((n, 2 * n))
    eigenvalues = np.clip(np.linalg.eigvalsh(G @ G.T / G.shape[1]), 0.0, None)
    X = np.column_stack([np.ones(n), rng.standard_normal(n)])
    return eigenvalues, rng.standard_normal(n), X


# -----------------------------------------------------------------------------
# Least squares
# -----------------------------------------------------------------------------


class TestLeastSquaresProperties:
    @given(regression_problem())
    @settings(max_examples=50, deadline=None)
    def test_qr_and_cholesky_agree(self, problem):
        X, Y = problem
        qr = calc_mvrss(X, Y, method="qr")
        chol = calc_mvrss(X, Y, method="cholesky")

        np.testing.assert_allclose(chol, qr, rtol=1e-6, atol=1e-8 * np.sum(Y**2))

    @given(regression_problem())
    @settings(max_examples=50, deadline=None)
    def test_rss_bounded_by_total(self, problem):
        X, Y = problem
        rss = calc_mvrss(X, Y)

        assert np.all(rss >= 0)
        assert np.all(rss <= np.sum(Y**2, axis=0) * (1 + 1e-12))

    @given(regression_problem())
    @settings(max_examples=50, deadline=None)
    def test_residuals_orthogonal_to_design(self, problem):
        X, Y = problem
        resid = residuals_linreg(X, Y)

        scale = np.linalg.norm(X) * np.linalg.norm(Y)
        np.testing.assert_allclose(X.T @ resid, 0.0, atol=1e-9 * scale)

    @given(regression_problem(), st.data())
    @settings(max_examples=50, deadline=None)
    def test_duplicated_column_changes_nothing(self, problem, data):
        X, Y = problem
        j = data.draw(st.integers(min_value=0, max_value=X.shape[1] - 1))
        X_dup = np.column_stack([X, 2.0 * X[:, j]])

        np.testing.assert_allclose(
            calc_rss(X_dup, Y[:, 0]),
            calc_rss(X, Y[:, 0]),
            rtol=1e-8,
            atol=1e-12 * np.sum(Y[:, 0] ** 2),
        )
        assert find_independent_columns(X_dup).size == X.shape[1]


# -----------------------------------------------------------------------------
# Mixed-model likelihood
# -----------------------------------------------------------------------------


class TestLikelihoodProperties:
    @given(eigen_problem(), st.floats(min_value=0.0, max_value=1.0), st.booleans())
    @settings(max_examples=50, deadline=None)
    def test_finite_on_unit_interval(self, problem, hsq, reml):
        eigenvalues, y, X = problem

        assert np.isfinite(log_likelihood(hsq, eigenvalues, y, X, reml=reml))

    @given(eigen_problem())
    @settings(max_examples=30, deadline=None)
    def test_hsq_zero_is_ordinary_regression(self, problem):
        """At hsq=0 the ML likelihood depends on the data only through RSS."""
        eigenvalues, y, X = problem
        n = y.size
        rss = calc_rss(X, y)
        expected = -0.5 * n * (np.log(2 * np.pi * rss / n) + 1)

        assert log_likelihood(0.0, eigenvalues, y, X, reml=False) == pytest.approx(
            expected, rel=1e-8
        )
