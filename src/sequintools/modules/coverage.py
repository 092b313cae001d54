"""
Coverage - per-base depth and summary statistics for regions

Two measurement paths share one read filter (flag mask 0xF04 plus a minimum
mapping quality):

- ``depth_for_region`` walks pysam pileup columns, honouring a maximum
  pileup depth. This is what the coverage report uses.
- ``coverage_for_region`` walks each record's CIGAR directly. The
  calibration engine uses it to measure observed and sample coverage.

Both return a :class:`DepthResult` covering every position of the
flank-trimmed region exactly once, with 0 for uncovered bases.
"""

from __future__ import annotations

from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional, Sequence, Union

import numpy as np
import pysam

from sequintools.alignment import AlignmentSource
from sequintools.constants import DEPTH_EXCLUDE_FLAGS, PILEUP_MAX_DEPTH, BEDCOV_MAX_DEPTH
from sequintools.exceptions import CoverageError
from sequintools.region import Region
from sequintools.utils.logging import get_logger
from sequintools.utils.progress import iter_progress

logger = get_logger("coverage")

# CIGAR operations: M, =, X add depth; D, N only move the reference cursor.
_CIGAR_COVERING = {pysam.CMATCH, pysam.CEQUAL, pysam.CDIFF}
_CIGAR_SKIPPING = {pysam.CDEL, pysam.CREF_SKIP}


def percent_above_threshold(depths: Sequence[int], threshold: int) -> Optional[float]:
    """Fraction of positions with depth >= ``threshold``; None for no positions."""
    values = np.asarray(depths)
    if values.size == 0:
        return None
    return float(np.count_nonzero(values >= threshold)) / values.size


@dataclass
class DepthResult:
    """Per-base depth over ``region`` (already flank-trimmed by ``flank``)."""

    region: Region
    depths: np.ndarray = field(repr=False)
    flank: int = 0

    def __post_init__(self) -> None:
        self.depths = np.asarray(self.depths, dtype=np.int64)
        if self.depths.size != len(self.region):
            raise CoverageError(
                f"Depth array of length {self.depths.size} does not cover region "
                f"{self.region.name} {self.region} ({len(self.region)} bases)"
            )

    @classmethod
    def from_histogram(cls, region: Region, histogram: Sequence[tuple[int, int]]) -> "DepthResult":
        """Build a result from ``(position, depth)`` pairs spanning ``region``.

        Positions missing from ``histogram`` are treated as depth 0.
        """
        depths = np.zeros(len(region), dtype=np.int64)
        for pos, depth in histogram:
            if not region.beg <= pos < region.end:
                raise CoverageError(f"Position {pos} lies outside region {region}")
            depths[pos - region.beg] = depth
        return cls(region=region, depths=depths)

    @property
    def bed_region(self) -> Region:
        """The region as listed in the BED file, before flank trimming."""
        if not self.flank:
            return self.region
        return replace(self.region, beg=self.region.beg - self.flank, end=self.region.end + self.flank)

    @property
    def histogram(self) -> list[tuple[int, int]]:
        """``(position, depth)`` for every base of the region, in order."""
        return [(self.region.beg + i, int(d)) for i, d in enumerate(self.depths)]

    def __len__(self) -> int:
        return int(self.depths.size)

    def min(self) -> Optional[int]:
        return int(self.depths.min()) if self.depths.size else None

    def max(self) -> Optional[int]:
        return int(self.depths.max()) if self.depths.size else None

    def mean(self) -> Optional[float]:
        return float(self.depths.mean()) if self.depths.size else None

    def std(self) -> Optional[float]:
        """Population standard deviation (divides by N)."""
        return float(self.depths.std()) if self.depths.size else None

    def cv(self) -> Optional[float]:
        """Coefficient of variation; None when empty or when the mean is 0."""
        mean = self.mean()
        if not mean:
            return None
        return self.std() / mean

    def percent_above_threshold(self, threshold: int) -> Optional[float]:
        return percent_above_threshold(self.depths, threshold)


def passes_depth_filter(record: pysam.AlignedSegment, min_mapq: int) -> bool:
    """True for primary, mapped, non-duplicate, QC-passing records at ``min_mapq`` or above."""
    return record.flag & DEPTH_EXCLUDE_FLAGS == 0 and record.mapping_quality >= min_mapq


def depth_for_region(
    source: AlignmentSource,
    region: Region,
    min_mapq: int = 0,
    flank: int = 0,
    max_depth: int = BEDCOV_MAX_DEPTH,
) -> DepthResult:
    """Per-base depth of ``region`` from pileup columns.

    Args:
        source: Open alignment source
        region: Region to measure; ``flank`` bases are removed from each end
        min_mapq: Minimum mapping quality of counted alignments
        flank: Bases to omit from the start and end of the region
        max_depth: Pileup depth ceiling; 0 removes the limit

    Raises:
        RegionError: If the flank leaves no bases to measure
    """
    trimmed = region.trim(flank)
    if max_depth == 0:
        max_depth = PILEUP_MAX_DEPTH

    depths = np.zeros(len(trimmed), dtype=np.int64)
    for column in source.pileup(trimmed.contig, trimmed.beg, trimmed.end, max_depth=max_depth):
        pos = column.reference_pos
        if pos < trimmed.beg or pos >= trimmed.end:
            continue
        depths[pos - trimmed.beg] = sum(
            1
            for read in column.pileups
            if not read.is_del
            and not read.is_refskip
            and passes_depth_filter(read.alignment, min_mapq)
        )
    return DepthResult(region=trimmed, depths=depths, flank=flank)


def coverage_for_region(
    source: AlignmentSource,
    region: Region,
    min_mapq: int = 0,
    flank: int = 0,
) -> DepthResult:
    """Per-base coverage of ``region`` by walking each record's CIGAR.

    Raises:
        RegionError: If the flank leaves no bases to measure
        CoverageError: If the contig is absent from the header
    """
    trimmed = region.trim(flank)
    if source.tid(trimmed.contig) < 0:
        raise CoverageError(f"Chromosome {trimmed.contig} not found in BAM header")

    beg, end = trimmed.beg, trimmed.end
    coverage = np.zeros(end - beg, dtype=np.int64)
    for record in source.fetch(trimmed.contig, beg, end):
        if not passes_depth_filter(record, min_mapq):
            continue
        ref_pos = record.reference_start
        for op, length in record.cigartuples or ():
            if op in _CIGAR_COVERING:
                lo = max(ref_pos, beg)
                hi = min(ref_pos + length, end)
                if lo < hi:
                    coverage[lo - beg:hi - beg] += 1
                ref_pos += length
            elif op in _CIGAR_SKIPPING:
                ref_pos += length
    return DepthResult(region=trimmed, depths=coverage, flank=flank)


def _depth_worker(
    path: str,
    region: Region,
    min_mapq: int,
    flank: int,
    max_depth: int,
    reference: Optional[str],
) -> DepthResult:
    with AlignmentSource(path, reference=reference) as source:
        return depth_for_region(source, region, min_mapq=min_mapq, flank=flank, max_depth=max_depth)


def calculate_coverage(
    path: Union[str, Path],
    regions: Sequence[Region],
    min_mapq: int = 0,
    flank: int = 0,
    max_depth: int = BEDCOV_MAX_DEPTH,
    reference: Optional[Union[str, Path]] = None,
    threads: int = 1,
    progress: bool = False,
) -> list[DepthResult]:
    """Depth for every region, fanned out over worker processes.

    Each worker opens its own handle. Results come back in the order of
    ``regions``; the first failure is re-raised.
    """
    reference = str(reference) if reference is not None else None
    if threads <= 1 or len(regions) <= 1:
        with AlignmentSource(path, reference=reference) as source:
            return [
                depth_for_region(source, region, min_mapq=min_mapq, flank=flank, max_depth=max_depth)
                for region in iter_progress(regions, desc="bedcov", enabled=progress)
            ]

    logger.debug(f"Computing depth for {len(regions)} regions with {threads} workers")
    with ProcessPoolExecutor(max_workers=threads) as executor:
        futures = [
            executor.submit(_depth_worker, str(path), region, min_mapq, flank, max_depth, reference)
            for region in regions
        ]
        return [future.result() for future in iter_progress(futures, desc="bedcov", enabled=progress)]
