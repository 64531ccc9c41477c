"""JAX setup for the batch heritability search.

The log-likelihood surface in hsq is flat near its optimum and 32-bit
arithmetic moves the argmax noticeably, so the JAX backend always runs in
64-bit mode. configure_jax() must run before any array is created.
"""

from __future__ import annotations

from typing import Any

import jax
import jax.numpy as jnp
import numpy as np
from loguru import logger


def configure_jax(enable_x64: bool = True, platform: str | None = None) -> None:
    """Configure JAX precision and, optionally, its platform.

    Safe to call repeatedly; settings already in effect are left alone.

    Args:
        enable_x64: Turn on 64-bit floats and ints.
        platform: "cpu", "gpu" or "tpu"; None lets JAX choose.
    """
    if enable_x64 and not jax.config.jax_enable_x64:
        jax.config.update("jax_enable_x64", True)
        logger.debug("JAX 64-bit precision enabled")

    if platform is not None:
        jax.config.update("jax_platform_name", platform)
        logger.debug(f"JAX platform set to: {platform}")


def device_arrays(*arrays: np.ndarray) -> tuple[jax.Array, ...]:
    """Move numpy arrays to the default device as float64.

    Raises:
        RuntimeError: If 64-bit mode is off, since the transfer would
            silently truncate to float32.
    """
    if not jax.config.jax_enable_x64:
        raise RuntimeError("JAX 64-bit mode is off; call configure_jax() first")
    return tuple(jnp.asarray(a, dtype=jnp.float64) for a in arrays)


def get_jax_info() -> dict[str, Any]:
    """Version, default backend, devices and precision of the JAX runtime."""
    return {
        "version": jax.__version__,
        "backend": jax.default_backend(),
        "devices": [str(d) for d in jax.devices()],
        "x64_enabled": bool(jax.config.jax_enable_x64),
    }
