"""Tests for kinship eigendecomposition and rotation."""

import warnings
from unittest.mock import patch

import numpy as np
import pytest
from conftest import make_kinship

from qtlscan.lmm import eigen_decompose, eigen_rotate, log_det_XpX

pytestmark = pytest.mark.tier0


class TestEigenDecompose:
    """Tests for eigen_decompose()."""

    def test_reconstructs_kinship(self, rng):
        K = make_kinship(rng, 30, n_snp=100)

        values, vectors = eigen_decompose(K)

        np.testing.assert_allclose(vectors @ np.diag(values) @ vectors.T, K, atol=1e-10)

    def test_shapes_and_order(self):
        values, vectors = eigen_decompose(np.diag([3.0, 1.0, 2.0]))

        assert values.shape == (3,)
        assert vectors.shape == (3, 3)
        np.testing.assert_allclose(values, [1.0, 2.0, 3.0])

    def test_small_eigenvalues_zeroed(self):
        K = np.diag([1e-12, 1.0, 2.0])

        values, _ = eigen_decompose(K)

        assert values[0] == 0.0

    def test_non_square_rejected(self):
        with pytest.raises(ValueError, match="square"):
            eigen_decompose(np.ones((3, 4)))

    def test_warns_on_negative_eigenvalues(self):
        with pytest.warns(UserWarning, match="negative"):
            eigen_decompose(np.diag([-1.0, 1.0, 2.0]))

    def test_warns_on_rank_deficiency(self):
        with pytest.warns(UserWarning, match="close to zero"):
            eigen_decompose(np.diag([0.0, 0.0, 1.0]))

    def test_no_warning_for_full_rank(self, rng):
        K = make_kinship(rng, 10, n_snp=200) + np.eye(10)
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            eigen_decompose(K)

    def test_memory_precheck_raises(self):
        with (
            patch("qtlscan.lmm.eigen.estimate_eigendecomp_memory", return_value=1e9),
            pytest.raises(MemoryError, match="eigendecomposition"),
        ):
            eigen_decompose(np.eye(3))

    def test_input_not_modified(self, rng):
        K = make_kinship(rng, 8)
        original = K.copy()
        eigen_decompose(K)
        np.testing.assert_array_equal(K, original)


class TestEigenRotate:
    """Tests for eigen_rotate()."""

    def test_rotation_is_transpose_product(self, rng):
        _, vectors = np.linalg.eigh(make_kinship(rng, 12))
        y = rng.normal(size=12)
        X = rng.normal(size=(12, 3))

        y_rot, X_rot = eigen_rotate(vectors, y, X)

        np.testing.assert_allclose(y_rot, vectors.T @ y)
        np.testing.assert_allclose(X_rot, vectors.T @ X)

    def test_rotation_preserves_norm(self, rng):
        _, vectors = np.linalg.eigh(make_kinship(rng, 12))
        y = rng.normal(size=12)

        y_rot, _ = eigen_rotate(vectors, y, np.empty((12, 0)))

        assert np.linalg.norm(y_rot) == pytest.approx(np.linalg.norm(y))

    def test_row_mismatch_rejected(self, rng):
        with pytest.raises(ValueError, match="rows"):
            eigen_rotate(np.eye(4), rng.normal(size=5), np.empty((4, 0)))

    def test_non_square_rejected(self, rng):
        with pytest.raises(ValueError, match="square"):
            eigen_rotate(np.ones((4, 3)), rng.normal(size=4), np.empty((4, 0)))


class TestLogDetXpX:
    """Tests for log_det_XpX()."""

    def test_matches_slogdet(self, rng):
        X = rng.normal(size=(20, 4))
        sign, expected = np.linalg.slogdet(X.T @ X)

        assert sign > 0
        assert log_det_XpX(X) == pytest.approx(expected, rel=1e-10)

    def test_no_columns(self):
        assert log_det_XpX(np.empty((5, 0))) == 0.0

    def test_large_scale_column(self, rng):
        X = np.column_stack([np.ones(50), rng.uniform(size=50)])

        scaled = log_det_XpX(X * [1.0, 1e10])

        assert scaled == pytest.approx(log_det_XpX(X) + 2 * np.log(1e10), rel=1e-10)

    def test_tolerance_decides_singularity(self, rng):
        x = rng.normal(size=20)
        X = np.column_stack([x, x + 1e-8 * rng.normal(size=20)])

        assert np.isfinite(log_det_XpX(X))
        with pytest.raises(np.linalg.LinAlgError, match="singular"):
            log_det_XpX(X, tol=1e-6)

    def test_singular_raises(self, rng):
        x = rng.normal(size=10)
        with pytest.raises(np.linalg.LinAlgError, match="singular"):
            log_det_XpX(np.column_stack([x, x]))
