"""Scoped BLAS thread limits for the scan loops.

The kinship eigendecomposition, the rotation of genotype columns into the
eigenbasis and the per-position QR factorisations all call into the system
BLAS. Scans and eigen_decompose run under blas_threads() so the thread
count is explicit and restored afterwards.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import contextmanager

import psutil
from loguru import logger
from threadpoolctl import threadpool_limits

THREADS_ENV_VAR = "QTLSCAN_BLAS_THREADS"


def _env_thread_count() -> int | None:
    value = os.environ.get(THREADS_ENV_VAR)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        logger.warning(
            f"{THREADS_ENV_VAR}={value!r} is not an integer, "
            "using the physical core count"
        )
        return None


def get_blas_thread_count() -> int:
    """Default BLAS thread count for scans.

    QTLSCAN_BLAS_THREADS wins when set to an integer; otherwise the
    physical core count is used, since hyperthreads slow small QR
    factorisations down. The result is clamped to [1, os.cpu_count()].
    """
    max_threads = os.cpu_count() or 64
    n = _env_thread_count()
    source = THREADS_ENV_VAR
    if n is None:
        n = psutil.cpu_count(logical=False) or max_threads
        source = "physical core count"
    n = max(1, min(n, max_threads))
    logger.debug(f"BLAS threads from {source}: {n}")
    return n


@contextmanager
def blas_threads(n_threads: int | None = None) -> Generator[None, None, None]:
    """Limit BLAS threads for the enclosed block.

    Args:
        n_threads: Thread count; None uses get_blas_thread_count().

    Raises:
        ValueError: If n_threads is less than 1.

    Example:
        >>> with blas_threads(4):
        ...     rss = scan_hk(genoprobs, pheno)
    """
    if n_threads is None:
        n_threads = get_blas_thread_count()
    elif n_threads < 1:
        raise ValueError(f"n_threads must be at least 1, got {n_threads}")

    with threadpool_limits(limits=n_threads, user_api="blas"):
        yield
