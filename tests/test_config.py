"""Tests for ScanOptions."""

import dataclasses

import pytest

from qtlscan.core.config import DEFAULT_HSQ_TOL, DEFAULT_TOL, ScanOptions

pytestmark = pytest.mark.tier0


class TestScanOptions:
    def test_defaults(self):
        opts = ScanOptions()

        assert opts.tol == DEFAULT_TOL == 1e-12
        assert opts.hsq_tol == DEFAULT_HSQ_TOL
        assert opts.memory == "auto"
        assert opts.method == "qr"
        assert opts.reml is True
        assert opts.check_boundary is True
        assert opts.show_progress is False
        assert opts.n_threads is None

    def test_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            ScanOptions().tol = 1e-6

    def test_zero_tol_allowed(self):
        assert ScanOptions(tol=0.0).tol == 0.0

    @pytest.mark.parametrize(
        ("kwargs", "match"),
        [
            ({"tol": -1e-12}, "tol"),
            ({"memory": "medium"}, "memory"),
            ({"method": "svd"}, "method"),
            ({"hsq_tol": 0.0}, "hsq_tol"),
        ],
    )
    def test_invalid(self, kwargs, match):
        with pytest.raises(ValueError, match=match):
            ScanOptions(**kwargs)
