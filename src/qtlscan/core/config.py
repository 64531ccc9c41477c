"""Configuration dataclasses for qtlscan.

This module contains the options shared by the scan drivers: numerical
tolerance, linear solver, memory strategy for interactive covariates,
mixed-model settings and display toggles.
"""

from dataclasses import dataclass
from typing import Literal

MemoryStrategy = Literal["highmem", "lowmem", "auto"]
SolverMethod = Literal["qr", "cholesky"]

DEFAULT_TOL = 1e-12
DEFAULT_HSQ_TOL = 1e-4


@dataclass(frozen=True)
class ScanOptions:
    """Options for a single-chromosome scan.

    Attributes:
        tol: Relative pivot threshold for rank decisions in the QR solver.
        memory: Strategy for interactive covariates. ``"highmem"`` expands the
            genotype probabilities for every position up front, ``"lowmem"``
            forms each design matrix as the loop reaches it, ``"auto"`` picks
            highmem when the expansion fits in available memory.
        method: Linear solver, ``"qr"`` (rank-aware) or ``"cholesky"``
            (normal equations, full column rank required).
        reml: Use REML rather than ML when fitting heritability per position.
        hsq_tol: Absolute convergence tolerance of the heritability search.
        check_boundary: Also evaluate hsq=0 and hsq=1 when fitting.
        show_progress: Display a progress bar over positions.
        n_threads: BLAS threads for the scan; None uses the default count.
    """

    tol: float = DEFAULT_TOL
    memory: MemoryStrategy = "auto"
    method: SolverMethod = "qr"
    reml: bool = True
    hsq_tol: float = DEFAULT_HSQ_TOL
    check_boundary: bool = True
    show_progress: bool = False
    n_threads: int | None = None

    def __post_init__(self) -> None:
        if self.tol < 0:
            raise ValueError(f"tol must be non-negative, got {self.tol}")
        if self.memory not in ("highmem", "lowmem", "auto"):
            raise ValueError(
                f"memory must be 'highmem', 'lowmem' or 'auto', got {self.memory!r}"
            )
        if self.method not in ("qr", "cholesky"):
            raise ValueError(f"method must be 'qr' or 'cholesky', got {self.method!r}")
        if self.hsq_tol <= 0:
            raise ValueError(f"hsq_tol must be positive, got {self.hsq_tol}")
