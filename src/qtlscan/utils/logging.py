"""loguru configuration and timing/memory log helpers.

qtlscan logs to stdout (notebook cells show stdout reliably, stderr may be
buffered). Scans log their size and variant at DEBUG, eigendecompositions
their wall time at INFO.
"""

import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import psutil
from loguru import logger

LOG_FORMAT = "{time:HH:mm:ss} | <level>{level: <8}</level> | {message}"


def setup_logging(
    verbose: bool = False,
    log_file: Path | None = None,
) -> None:
    """Replace all loguru sinks with the qtlscan console sink.

    Args:
        verbose: Show DEBUG messages (per-scan sizes and timings) on stdout.
        log_file: Optional path for a JSON-serialized DEBUG log.
    """
    logger.remove()
    logger.add(
        sys.stdout,
        level="DEBUG" if verbose else "INFO",
        format=LOG_FORMAT,
        colorize=True,
    )
    if log_file:
        logger.add(log_file, serialize=True, level="DEBUG")


@contextmanager
def log_duration(label: str, level: str = "DEBUG") -> Iterator[None]:
    """Log the wall time of the enclosed block once it completes.

    Nothing is logged if the block raises.

    Example:
        >>> with log_duration("HK scan"):
        ...     rss = scan_hk(genoprobs, pheno)
        DEBUG    | HK scan completed in 0.42s
    """
    start = time.perf_counter()
    yield
    logger.log(level, f"{label} completed in {time.perf_counter() - start:.2f}s")


def log_rss_memory(phase: str, checkpoint: str) -> float:
    """Log the process resident set size at a named point of a computation.

    The reading is bound to ``phase`` and ``checkpoint`` extras so JSON logs
    can be filtered on them.

    Args:
        phase: Computation being measured, e.g. "eigendecomp".
        checkpoint: Point within it, e.g. "before" or "after".

    Returns:
        Resident set size in GB.
    """
    rss_gb = psutil.Process().memory_info().rss / 1e9
    logger.bind(phase=phase, checkpoint=checkpoint).info(
        f"RSS {rss_gb:.2f}GB at {phase}/{checkpoint}"
    )
    return rss_gb
