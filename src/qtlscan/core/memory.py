"""Memory estimation and checking for scan operations.

Provides pre-allocation memory checks for the kinship eigendecomposition
and the sizing logic used to choose between the high-memory and low-memory
interactive-covariate scan strategies.
"""

from typing import NamedTuple

import psutil
from loguru import logger

BYTES_PER_FLOAT = 8


def _dsyevd_workspace_gb(n: int) -> float:
    """DSYEVD workspace: LWORK=(1+6N+2N^2) doubles, LIWORK=(3+5N) ints."""
    lwork_bytes = (1 + 6 * n + 2 * n * n) * 8
    liwork_bytes = (3 + 5 * n) * 4
    return (lwork_bytes + liwork_bytes) / 1e9


def estimate_eigendecomp_memory(n_ind: int) -> float:
    """Estimate peak memory (GB) for eigendecomposition of a kinship matrix.

    Peak memory is the input matrix, the output eigenvectors and the
    DSYEVD workspace.

    Args:
        n_ind: Number of individuals (matrix dimension).

    Returns:
        Estimated peak memory in GB.

    Example:
        >>> round(estimate_eigendecomp_memory(10_000), 2)
        3.2
    """
    kinship_gb = n_ind**2 * BYTES_PER_FLOAT / 1e9
    eigenvectors_gb = n_ind**2 * BYTES_PER_FLOAT / 1e9
    return kinship_gb + eigenvectors_gb + _dsyevd_workspace_gb(n_ind)


def estimate_expanded_genoprobs_memory(
    n_ind: int, n_gen: int, n_intcovar: int, n_pos: int
) -> float:
    """Estimate memory (GB) for genotype probabilities expanded by intcovar.

    The high-memory interactive scan holds an array of shape
    ``(n_ind, n_gen * (1 + n_intcovar), n_pos)`` for the whole chromosome.

    Args:
        n_ind: Number of individuals.
        n_gen: Number of genotype categories.
        n_intcovar: Number of interactive covariate columns.
        n_pos: Number of positions on the chromosome.

    Returns:
        Memory in GB.
    """
    n_col = n_gen * (1 + n_intcovar)
    return n_ind * n_col * n_pos * BYTES_PER_FLOAT / 1e9


def check_memory_available(
    required_gb: float,
    safety_margin: float = 0.1,
    operation: str = "operation",
) -> bool:
    """Check if sufficient memory is available, raise if not.

    Args:
        required_gb: Memory required in GB.
        safety_margin: Additional margin (0.1 = 10%).
        operation: Description for error message.

    Returns:
        True if sufficient memory available.

    Raises:
        MemoryError: If insufficient memory with detailed message.
    """
    available_gb = psutil.virtual_memory().available / 1e9
    required_with_margin = required_gb * (1 + safety_margin)

    if required_with_margin > available_gb:
        raise MemoryError(
            f"Insufficient memory for {operation}. "
            f"Need {required_gb:.1f}GB (+{safety_margin*100:.0f}% margin = "
            f"{required_with_margin:.1f}GB), but only {available_gb:.1f}GB available."
        )

    return True


def select_memory_strategy(required_gb: float, max_fraction: float = 0.5) -> str:
    """Pick the interactive scan strategy from the expanded array size.

    Args:
        required_gb: Size of the precomputed expansion in GB.
        max_fraction: Largest share of currently available memory the
            expansion may take.

    Returns:
        ``"highmem"`` if the expansion fits, ``"lowmem"`` otherwise.
    """
    available_gb = psutil.virtual_memory().available / 1e9
    if required_gb <= max_fraction * available_gb:
        return "highmem"
    logger.info(
        f"Expanded genotype probabilities need {required_gb:.2f}GB "
        f"(available {available_gb:.1f}GB), using lowmem strategy"
    )
    return "lowmem"


class MemorySnapshot(NamedTuple):
    """Snapshot of current memory state for debugging.

    All values in GB.
    """

    rss_gb: float  # Resident Set Size (actual RAM used by process)
    vms_gb: float  # Virtual Memory Size (total address space)
    available_gb: float
    total_gb: float
    percent_used: float


def get_memory_snapshot() -> MemorySnapshot:
    """Get current memory usage snapshot.

    Returns:
        MemorySnapshot with RSS, VMS, available, and total memory.
    """
    process = psutil.Process()
    mem_info = process.memory_info()
    vm = psutil.virtual_memory()

    return MemorySnapshot(
        rss_gb=mem_info.rss / 1e9,
        vms_gb=mem_info.vms / 1e9,
        available_gb=vm.available / 1e9,
        total_gb=vm.total / 1e9,
        percent_used=((vm.total - vm.available) / vm.total) * 100,
    )


def log_memory_snapshot(label: str = "", level: str = "INFO") -> MemorySnapshot:
    """Log current memory state with optional label.

    Args:
        label: Optional label for this snapshot (e.g., "after_eigendecomp").
        level: Log level ("DEBUG", "INFO", "WARNING").

    Returns:
        MemorySnapshot for chaining/assertions.
    """
    snap = get_memory_snapshot()
    label_str = f" [{label}]" if label else ""
    msg = (
        f"Memory{label_str}: RSS={snap.rss_gb:.1f}GB, "
        f"Available={snap.available_gb:.1f}GB/{snap.total_gb:.1f}GB "
        f"({snap.percent_used:.1f}% used)"
    )
    logger.log(level, msg)
    return snap
