"""Utility modules for qtlscan."""

from qtlscan.utils.interpolate import interpolate_map
from qtlscan.utils.logging import log_duration, log_rss_memory, setup_logging

__all__ = ["interpolate_map", "log_duration", "log_rss_memory", "setup_logging"]
