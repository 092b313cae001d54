"""sequintools analysis modules.

- coverage     -> per-base depth and summary statistics (bedcov)
- calibration  -> coverage calibration of sequin regions (calibrate)
- report       -> delimited text reports
"""

from sequintools.modules.calibration import (
    CalibrationMode,
    CalibrationResult,
    FixedCoverage,
    SampleMeanCoverage,
    SampleProfile,
    calibrate,
)
from sequintools.modules.coverage import DepthResult, coverage_for_region, depth_for_region

__all__ = [
    "CalibrationMode",
    "CalibrationResult",
    "FixedCoverage",
    "SampleMeanCoverage",
    "SampleProfile",
    "calibrate",
    "DepthResult",
    "coverage_for_region",
    "depth_for_region",
]
