"""Core configuration and resource management for qtlscan.

- config: ScanOptions dataclass shared by the scan drivers
- backend: numpy/JAX backend selection for multi-trait fits
- memory: memory estimation and strategy selection
- threading: scoped BLAS thread control
- progress: progress display for per-position loops
"""

from qtlscan.core.backend import get_compute_backend, resolve_backend
from qtlscan.core.config import DEFAULT_HSQ_TOL, DEFAULT_TOL, ScanOptions
from qtlscan.core.memory import (
    MemorySnapshot,
    check_memory_available,
    estimate_eigendecomp_memory,
    estimate_expanded_genoprobs_memory,
    get_memory_snapshot,
    log_memory_snapshot,
    select_memory_strategy,
)
from qtlscan.core.threading import blas_threads, get_blas_thread_count

__all__ = [
    "DEFAULT_HSQ_TOL",
    "DEFAULT_TOL",
    "ScanOptions",
    "get_compute_backend",
    "resolve_backend",
    "MemorySnapshot",
    "check_memory_available",
    "estimate_eigendecomp_memory",
    "estimate_expanded_genoprobs_memory",
    "get_memory_snapshot",
    "log_memory_snapshot",
    "select_memory_strategy",
    "blas_threads",
    "get_blas_thread_count",
]
