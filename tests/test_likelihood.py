"""Tests for the mixed-model log-likelihood."""

import numpy as np
import pytest
from conftest import make_kinship

from qtlscan.linalg import find_independent_columns
from qtlscan.lmm import evaluate_lmm, log_det_XpX, log_likelihood
from qtlscan.lmm.likelihood import (
    VARIANCE_FLOOR,
    reml_logdet_XpX,
    variance_components,
)

pytestmark = pytest.mark.tier0


@pytest.fixture
def rotated(rng):
    """Rotated phenotype and covariates with a rank-deficient kinship."""
    n = 30
    # fewer SNPs than individuals: several zero eigenvalues
    K = make_kinship(rng, n, n_snp=10)
    values, vectors = np.linalg.eigh(K)
    values = np.where(np.abs(values) < 1e-10, 0.0, values)
    X = np.column_stack([np.ones(n), rng.normal(size=n)])
    y = X @ [1.0, 0.5] + rng.normal(size=n)
    return values, vectors.T @ y, vectors.T @ X


class TestVarianceComponents:
    """Tests for variance_components()."""

    def test_values(self):
        v = variance_components(0.25, np.array([0.0, 1.0, 4.0]))
        np.testing.assert_allclose(v, [0.75, 1.0, 1.75])

    def test_floor_at_hsq_one(self):
        v = variance_components(1.0, np.array([0.0, 2.0]))
        assert v[0] == VARIANCE_FLOOR
        assert v[1] == 2.0

    @pytest.mark.parametrize("hsq", [-0.1, 1.1])
    def test_out_of_range_rejected(self, hsq):
        with pytest.raises(ValueError, match=r"\[0, 1\]"):
            variance_components(hsq, np.ones(3))


class TestLogLikelihood:
    """Tests for log_likelihood() and evaluate_lmm()."""

    @pytest.mark.parametrize("reml", [True, False])
    @pytest.mark.parametrize("hsq", [0.0, 1.0])
    def test_boundaries_finite_with_zero_eigenvalues(self, rotated, hsq, reml):
        values, y, X = rotated
        assert np.any(values == 0.0)

        assert np.isfinite(log_likelihood(hsq, values, y, X, reml=reml))

    def test_ml_at_zero_is_ordinary_regression(self, rotated):
        """At hsq=0 every variance is 1 and ML is the OLS likelihood."""
        values, y, X = rotated
        n = y.size
        coef = np.linalg.lstsq(X, y, rcond=None)[0]
        rss = float(np.sum((y - X @ coef) ** 2))
        expected = -0.5 * n * (np.log(2 * np.pi * rss / n) + 1)

        assert log_likelihood(0.0, values, y, X, reml=False) == pytest.approx(
            expected, rel=1e-10
        )

    def test_reml_at_zero(self, rotated):
        """At hsq=0 the REML determinant terms cancel."""
        values, y, X = rotated
        n, p = X.shape
        coef = np.linalg.lstsq(X, y, rcond=None)[0]
        rss = float(np.sum((y - X @ coef) ** 2))
        expected = -0.5 * (n - p) * (np.log(2 * np.pi * rss / (n - p)) + 1)

        assert log_likelihood(0.0, values, y, X, reml=True) == pytest.approx(
            expected, rel=1e-10
        )

    def test_reml_equals_ml_without_covariates(self, rotated):
        values, y, _ = rotated
        X = np.empty((y.size, 0))

        for hsq in (0.0, 0.3, 0.9):
            assert log_likelihood(hsq, values, y, X, reml=True) == pytest.approx(
                log_likelihood(hsq, values, y, X, reml=False)
            )

    def test_ml_matches_dense_gaussian_density(self, rng):
        """ML value equals the multivariate normal density at the GLS fit."""
        n = 12
        values = np.abs(rng.normal(size=n)) + 0.1
        X = np.column_stack([np.ones(n), rng.normal(size=n)])
        y = rng.normal(size=n)
        hsq = 0.4

        v = hsq * values + 1 - hsq
        Xw = X / np.sqrt(v)[:, None]
        yw = y / np.sqrt(v)
        coef = np.linalg.lstsq(Xw, yw, rcond=None)[0]
        resid = y - X @ coef
        sigmasq = float(np.sum(resid**2 / v)) / n
        cov = sigmasq * np.diag(v)
        _, logdet = np.linalg.slogdet(cov)
        quad = resid @ np.linalg.solve(cov, resid)
        expected = -0.5 * (n * np.log(2 * np.pi) + logdet + quad)

        assert log_likelihood(hsq, values, y, X, reml=False) == pytest.approx(
            expected, rel=1e-10
        )

    def test_redundant_column_ignored(self, rotated):
        values, y, X = rotated
        X_dup = np.column_stack([X, X[:, 1]])

        for reml in (True, False):
            assert log_likelihood(0.5, values, y, X_dup, reml=reml) == pytest.approx(
                log_likelihood(0.5, values, y, X, reml=reml), rel=1e-10
            )

        result = evaluate_lmm(0.5, values, y, X_dup)
        assert result.rank == 2
        assert np.isnan(result.coef).sum() == 1

    def test_reml_constant_from_retained_columns(self, rotated):
        _, _, X = rotated
        X_dup = np.column_stack([X, 3.0 * X[:, 1]])
        kept = X_dup[:, find_independent_columns(X_dup)]

        assert reml_logdet_XpX(X_dup) == pytest.approx(log_det_XpX(kept), rel=1e-10)

    def test_reml_with_large_scale_covariate(self, rotated):
        values, y, X = rotated
        X_big = X * [1.0, 1e10]

        assert log_likelihood(0.5, values, y, X_big) == pytest.approx(
            log_likelihood(0.5, values, y, X), rel=1e-8
        )

    def test_precomputed_logdet_used(self, rotated):
        values, y, X = rotated
        logdet = reml_logdet_XpX(X)

        assert log_likelihood(0.5, values, y, X, logdetXpX=logdet) == pytest.approx(
            log_likelihood(0.5, values, y, X)
        )
        # shifting the constant shifts the REML value by half of it
        shifted = log_likelihood(0.5, values, y, X, logdetXpX=logdet + 2.0)
        assert shifted == pytest.approx(log_likelihood(0.5, values, y, X) + 1.0)

    def test_length_mismatch_rejected(self, rotated):
        values, y, X = rotated
        with pytest.raises(ValueError, match="eigenvalues"):
            log_likelihood(0.5, values[:-1], y, X)

    def test_too_few_individuals_for_reml(self):
        X = np.eye(3)
        with pytest.raises(ValueError, match="REML"):
            log_likelihood(0.5, np.ones(3), np.ones(3), X, reml=True)
