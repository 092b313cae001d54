"""
Report - delimited text output for coverage and calibration results

Floating point columns are written with ``OUTPUT_DECIMAL_PRECISION`` decimal
places. Statistics that are undefined for a region (for example ``cv`` when
the mean depth is 0) are written as 0.
"""

from __future__ import annotations

from pathlib import Path
from typing import IO, Optional, Sequence, Union

import pandas as pd

from sequintools.constants import OUTPUT_DECIMAL_PRECISION
from sequintools.modules.calibration import CalibrationResult
from sequintools.modules.coverage import DepthResult

COVERAGE_COLUMNS = ["name", "chrom", "beg", "end", "min", "max", "mean", "std", "cv"]
SUMMARY_COLUMNS = [
    "name",
    "chrom",
    "start",
    "end",
    "uncalibrated_coverage",
    "target_coverage",
    "calibrated_coverage",
]

Destination = Union[str, Path, IO[str]]

_FLOAT_FORMAT = f"%.{OUTPUT_DECIMAL_PRECISION}f"


def threshold_column(threshold: int) -> str:
    return f"pct_gt_{threshold}"


def coverage_table(
    results: Sequence[DepthResult], thresholds: Optional[Sequence[int]] = None
) -> pd.DataFrame:
    """One row per region: position, min/max depth and mean/std/cv."""
    thresholds = list(thresholds or [])
    rows = []
    for result in results:
        region = result.bed_region
        row = {
            "name": region.name,
            "chrom": region.contig,
            "beg": region.beg,
            "end": region.end,
            "min": result.min() or 0,
            "max": result.max() or 0,
            "mean": float(result.mean() or 0.0),
            "std": float(result.std() or 0.0),
            "cv": float(result.cv() or 0.0),
        }
        for threshold in thresholds:
            row[threshold_column(threshold)] = float(result.percent_above_threshold(threshold) or 0.0)
        rows.append(row)
    columns = COVERAGE_COLUMNS + [threshold_column(t) for t in thresholds]
    return pd.DataFrame(rows, columns=columns)


def write_coverage_report(
    results: Sequence[DepthResult],
    dest: Destination,
    thresholds: Optional[Sequence[int]] = None,
    sep: str = ",",
) -> None:
    """Write the coverage report to a path or an open text stream."""
    coverage_table(results, thresholds).to_csv(
        dest, sep=sep, index=False, float_format=_FLOAT_FORMAT, lineterminator="\n"
    )


def calibration_table(results: Sequence[CalibrationResult]) -> pd.DataFrame:
    """Uncalibrated, target and calibrated mean coverage of each target region."""
    rows = [
        {
            "name": result.region.name,
            "chrom": result.region.contig,
            "start": result.region.beg,
            "end": result.region.end,
            "uncalibrated_coverage": float(result.uncalibrated_coverage),
            "target_coverage": float(result.target_coverage),
            "calibrated_coverage": (
                float(result.calibrated_coverage)
                if result.calibrated_coverage is not None
                else float("nan")
            ),
        }
        for result in results
    ]
    return pd.DataFrame(rows, columns=SUMMARY_COLUMNS)


def write_calibration_summary(
    results: Sequence[CalibrationResult], dest: Destination, sep: str = ","
) -> None:
    """Write the calibration summary; unknown calibrated coverage is left blank."""
    calibration_table(results).to_csv(
        dest, sep=sep, index=False, float_format=_FLOAT_FORMAT, lineterminator="\n"
    )
