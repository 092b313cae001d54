"""Validation utilities for sequintools."""

from __future__ import annotations

import importlib
from typing import List

REQUIRED_MODULES = ["pandas", "numpy", "pysam", "yaml", "click", "tqdm"]


def validate_installation(full_check: bool = False) -> List[str]:
    """
    Validate sequintools installation and dependencies.

    Args:
        full_check: If True, also check that pysam can index files and that
            the sequintools modules import

    Returns:
        List of validation issues (empty if all good)
    """
    issues = []

    for module in REQUIRED_MODULES:
        try:
            importlib.import_module(module)
        except ImportError:
            issues.append(f"Missing Python module: {module}")

    if full_check:
        try:
            pysam = importlib.import_module("pysam")
            if not hasattr(pysam, "index"):
                issues.append("pysam was built without samtools support (pysam.index missing)")
        except ImportError:
            pass

        try:
            from sequintools.modules.calibration import calibrate  # noqa: F401
            from sequintools.modules.coverage import depth_for_region  # noqa: F401
            from sequintools.config import Config  # noqa: F401
        except ImportError as e:
            issues.append(f"sequintools module import error: {e}")

    return issues
