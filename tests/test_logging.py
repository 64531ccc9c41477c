"""Tests for loguru configuration and RSS logging."""

from types import SimpleNamespace
from unittest.mock import patch

import pytest
from loguru import logger

from qtlscan.utils.logging import log_duration, log_rss_memory, setup_logging

pytestmark = pytest.mark.tier0


@pytest.fixture(autouse=True)
def restore_logging():
    yield
    setup_logging()


class TestSetupLogging:
    def test_info_to_stdout(self, capfd):
        setup_logging()
        logger.info("scan started")
        logger.debug("hidden detail")

        out, err = capfd.readouterr()
        assert "scan started" in out
        assert "hidden detail" not in out
        assert "scan started" not in err

    def test_verbose_shows_debug(self, capfd):
        setup_logging(verbose=True)
        logger.debug("per-position detail")

        assert "per-position detail" in capfd.readouterr().out

    def test_log_file_is_json(self, tmp_path):
        log_file = tmp_path / "qtlscan.log"
        setup_logging(log_file=log_file)
        logger.debug("written to file")
        logger.complete()

        text = log_file.read_text()
        assert "written to file" in text
        assert text.lstrip().startswith("{")


class TestLogRssMemory:
    def test_returns_gb_and_logs_context(self, capfd):
        setup_logging()
        process = SimpleNamespace(memory_info=lambda: SimpleNamespace(rss=2.5e9))
        with patch("qtlscan.utils.logging.psutil.Process", return_value=process):
            rss = log_rss_memory("eigendecomp", "before")

        assert rss == pytest.approx(2.5)
        out = capfd.readouterr().out
        assert "RSS 2.50GB at eigendecomp/before" in out

    def test_real_process(self):
        assert log_rss_memory("scan_hk", "after") > 0

    def test_extras_bound(self):
        records = []
        sink_id = logger.add(records.append, level="INFO")
        try:
            log_rss_memory("scan_lmm", "after")
        finally:
            logger.remove(sink_id)

        extra = records[0].record["extra"]
        assert extra == {"phase": "scan_lmm", "checkpoint": "after"}


class TestLogDuration:
    def test_logs_on_completion(self, capfd):
        setup_logging(verbose=True)
        with log_duration("HK scan"):
            pass

        assert "HK scan completed in" in capfd.readouterr().out

    def test_level_respected(self, capfd):
        setup_logging()
        with log_duration("quiet step"):
            pass
        with log_duration("Eigendecomposition", level="INFO"):
            pass

        out = capfd.readouterr().out
        assert "quiet step" not in out
        assert "Eigendecomposition completed in" in out

    def test_silent_when_block_raises(self, capfd):
        setup_logging(verbose=True)
        with pytest.raises(ValueError):
            with log_duration("failing scan"):
                raise ValueError("bad input")

        assert "failing scan" not in capfd.readouterr().out
