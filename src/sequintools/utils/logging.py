"""Centralized logging utilities for sequintools.

Provides a single place to configure logging and fetch namespaced loggers.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
CONSOLE_FORMAT = "%(levelname)s: %(message)s"

# Log rotation settings
DEFAULT_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
DEFAULT_BACKUP_COUNT = 5

LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
) -> None:
    """Configure logging for the 'sequintools' namespace.

    Args:
        level: Logging level for the application logger
        log_file: Optional path for log file output
        max_bytes: Maximum size per log file before rotation (default: 10MB)
        backup_count: Number of backup files to keep (default: 5)

    Notes:
        - Root logger kept at WARNING to suppress third-party noise
        - Console handler writes to stderr; stdout may carry BAM or report data
        - File handler (if any) is detailed at DEBUG and rotates
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.WARNING)

    app_logger = logging.getLogger("sequintools")
    app_logger.setLevel(level)
    # Avoid duplicate logs if called multiple times
    if app_logger.handlers:
        for h in list(app_logger.handlers):
            app_logger.removeHandler(h)

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    app_logger.addHandler(console)

    if log_file:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=max_bytes,
                backupCount=backup_count,
            )
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
            app_logger.addHandler(file_handler)
        except OSError as e:
            import warnings
            warnings.warn(f"Failed to create log file {log_file}: {e}")

    # Do not propagate to root to avoid double-printing
    app_logger.propagate = False


def level_from_verbosity(verbose: int) -> int:
    """Map a -v count to a logging level (0: WARNING, 1: INFO, 2+: DEBUG)."""
    if verbose >= 2:
        return logging.DEBUG
    if verbose == 1:
        return logging.INFO
    return logging.WARNING


def get_logger(name: str) -> logging.Logger:
    """Return a namespaced logger under 'sequintools' root."""
    base = logging.getLogger("sequintools")
    return base.getChild(name)


class LogTemplates:
    """Standard log message templates for consistent logging across modules.

    Example usage:
        logger.info(LogTemplates.REGION_CALIBRATE.format(
            name="seq1", region="chrQ:0-1000", observed=80.0, target=40.0
        ))
    """

    REGION_CALIBRATE = (
        "Calibrating {name} ({region}) mean_coverage={observed:.2f} "
        "target_coverage={target:.2f}"
    )
    REGION_PROFILE = "Calibrating region {name} ({region}) against sample {sample}"
    REGION_DEPTH = "Depth for {name} ({region}): mean={mean}"

    FILE_CREATED = "Created output file: {path}"
    FILE_LOADED = "Loaded {count:,} regions from {path}"

    SAMPLING_STATS = "Sampled {name}: {kept:,} of {seen:,} records selected"
    ASSEMBLY_STATS = "Wrote {written:,} of {total:,} records"
