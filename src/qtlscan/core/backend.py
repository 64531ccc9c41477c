"""Compute backend selection for multi-trait heritability fits.

qtlscan supports two backends for fitting many phenotype columns against
the same design:

- numpy: one Brent search per column on the host (default). Exact
  tolerance control and rank-aware GLS fits.
- jax: a single vmapped grid + golden-section search over all columns,
  JIT-compiled through XLA. Faster for many traits, requires a
  full-rank design.

Selection can be overridden via the QTLSCAN_BACKEND environment variable.
"""

import os
from functools import cache
from typing import Literal

from loguru import logger

Backend = Literal["numpy", "jax"]

BACKEND_ALIASES: dict[str, str] = {
    "np": "numpy",
    "cpu": "numpy",
    "xla": "jax",
}


def normalize_backend_name(value: str) -> str:
    """Normalize backend name to canonical form.

    Examples:
        >>> normalize_backend_name(" JAX ")
        'jax'
        >>> normalize_backend_name("np")
        'numpy'
    """
    normalized = value.lower().strip()
    return BACKEND_ALIASES.get(normalized, normalized)


@cache
def get_compute_backend() -> Backend:
    """Detect the compute backend for multi-trait fits.

    Returns:
        Backend identifier ('numpy' or 'jax').

    Raises:
        ValueError: If QTLSCAN_BACKEND names an unknown backend.
    """
    override = os.environ.get("QTLSCAN_BACKEND", "").strip()
    if override:
        override = normalize_backend_name(override)
        if override in ("numpy", "jax"):
            logger.debug(f"Backend override via QTLSCAN_BACKEND={override}")
            return override
        if override != "auto":
            raise ValueError(
                f"Unknown backend {override!r} in QTLSCAN_BACKEND. "
                "Use 'numpy', 'jax' or 'auto'."
            )

    logger.debug("Using numpy backend (default)")
    return "numpy"


def resolve_backend(backend: str | None) -> Backend:
    """Resolve an explicit backend argument, falling back to detection."""
    if backend is None:
        return get_compute_backend()
    name = normalize_backend_name(backend)
    if name not in ("numpy", "jax"):
        raise ValueError(f"backend must be 'numpy' or 'jax', got {backend!r}")
    return name
