"""Utility functions (sequintools)."""

from sequintools.utils.logging import get_logger, setup_logging
from sequintools.utils.progress import iter_progress

__all__ = ["get_logger", "setup_logging", "iter_progress"]
