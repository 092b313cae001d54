"""
Calibration - downsample sequin regions to a target coverage

Three calibration modes are supported:

- ``FixedCoverage``: every target region is downsampled to one fold coverage.
- ``SampleMeanCoverage``: each target region is downsampled to the mean
  coverage of the sample region with the same name.
- ``SampleProfile``: the per-window read-start profile of each sample region
  is reproduced, mirrored, in its target region.

Every mode only decides which query names to keep. A final pass over the
whole file then writes kept read groups together with reads from contigs that
were not calibrated, so both mates of a pair always share one decision.
"""

from __future__ import annotations

import zlib
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence, Union

import numpy as np
import pysam

from sequintools.alignment import AlignmentSource, query_name
from sequintools.constants import FLAG_DUPLICATE
from sequintools.exceptions import CalibrationError
from sequintools.modules.coverage import coverage_for_region
from sequintools.region import Region, contigs_of, regions_by_name, trim_regions
from sequintools.utils.logging import LogTemplates, get_logger
from sequintools.utils.progress import iter_progress

logger = get_logger("calibration")


@dataclass(frozen=True)
class FixedCoverage:
    """Calibrate every target region to ``fold_coverage``."""

    fold_coverage: float
    seed: int


@dataclass(frozen=True)
class SampleMeanCoverage:
    """Calibrate each target region to the mean coverage of its sample region."""

    sample_regions: tuple[Region, ...]
    seed: int


@dataclass(frozen=True)
class SampleProfile:
    """Reproduce the windowed read-start profile of each sample region."""

    sample_regions: tuple[Region, ...]
    flank: int
    window_size: int
    min_mapq: int
    seed: int


CalibrationMode = Union[FixedCoverage, SampleMeanCoverage, SampleProfile]


@dataclass
class CalibrationResult:
    """Coverage of one target region before and after calibration."""

    region: Region
    uncalibrated_coverage: float
    target_coverage: float
    calibrated_coverage: Optional[float] = None


def region_rng(seed: int, region: Region, *extra: int) -> np.random.Generator:
    """A fresh generator for one unit of work, derived from the global seed.

    Keyed by region name (and any ``extra`` integers, e.g. a window index) so
    the draws for a region do not depend on the order regions are processed.
    """
    return np.random.default_rng([seed, zlib.crc32(region.name.encode("utf-8")), *extra])


# ---------------------------------------------------------------------------
# Fixed and sample-mean coverage
# ---------------------------------------------------------------------------

def regions_coverage(source: AlignmentSource, regions: Iterable[Region]) -> dict[str, float]:
    """Mean coverage of each region (no mapping-quality filter, no flank)."""
    coverage = {}
    for region in regions:
        mean = coverage_for_region(source, region, min_mapq=0, flank=0).mean()
        coverage[region.name] = mean if mean is not None else 0.0
    return coverage


def mean_coverages(
    source: AlignmentSource,
    target_regions: Sequence[Region],
    sample_regions: Optional[Sequence[Region]] = None,
    fold_coverage: float = 0,
) -> tuple[dict[str, float], dict[str, float], dict[str, float]]:
    """Target means, sample means and downsampling probabilities by region name.

    ``probability = sample_mean / target_mean`` where ``sample_mean`` comes
    from the sample region of the same name, or is ``fold_coverage`` when no
    sample regions are given.

    Raises:
        CalibrationError: If a target has zero coverage, has less coverage
            than its sample, or has no sample counterpart.
    """
    target_means = regions_coverage(source, target_regions)
    if sample_regions is not None:
        sample_means = regions_coverage(source, sample_regions)
    else:
        sample_means = {name: float(fold_coverage) for name in target_means}
    return target_means, sample_means, probabilities_from_means(target_means, sample_means)


def determine_probabilities(
    source: AlignmentSource,
    target_regions: Sequence[Region],
    sample_regions: Optional[Sequence[Region]] = None,
    fold_coverage: float = 0,
) -> dict[str, float]:
    """Downsampling probability of every target region (see :func:`mean_coverages`)."""
    return mean_coverages(source, target_regions, sample_regions, fold_coverage)[2]


def probabilities_from_means(
    target_means: dict[str, float], sample_means: dict[str, float]
) -> dict[str, float]:
    """Apply the calibration policy checks to precomputed mean coverages."""
    probabilities = {}
    for name, target_mean in target_means.items():
        if name not in sample_means:
            raise CalibrationError(f"No sample mean coverage found for target region {name}")
        sample_mean = sample_means[name]
        if target_mean == 0.0:
            raise CalibrationError(
                f"Target mean coverage for region {name} is zero; cannot calibrate"
            )
        if target_mean < sample_mean:
            raise CalibrationError(
                f"Target mean coverage for region {name} ({target_mean:.2f}) is less than "
                f"sample mean coverage ({sample_mean:.2f}); cannot upsample"
            )
        probabilities[name] = sample_mean / target_mean
    return probabilities


def _select(
    record: pysam.AlignedSegment,
    name: str,
    probability: float,
    rng: np.random.Generator,
    keep: set[str],
    considered: set[str],
) -> bool:
    if record.flag & FLAG_DUPLICATE:
        return False
    if name in keep:
        return True
    if name in considered:
        # The mate was already evaluated and rejected; keeping this read
        # would create a singleton.
        return False
    if rng.random() <= probability:
        keep.add(name)
        return True
    return False


def subsample_region(
    source: AlignmentSource,
    region: Region,
    probability: float,
    rng: np.random.Generator,
    keep: set[str],
    considered: set[str],
    calibrated_tids: Optional[set[int]] = None,
) -> tuple[int, int]:
    """Decide, pair by pair, which reads of ``region`` to keep.

    Draws once per distinct query name, in the order records are returned by
    the source. Names selected are added to ``keep``; every name seen is
    added to ``considered``. When ``calibrated_tids`` is given, reads whose
    mate lies outside the calibrated contigs are artefacts and are never
    selected.

    Returns:
        ``(seen, selected)`` record counts
    """
    seen = selected = 0
    for record in source.fetch(region.contig, region.beg, region.end):
        name = query_name(record)
        seen += 1
        if calibrated_tids is None or record.next_reference_id in calibrated_tids:
            if _select(record, name, probability, rng, keep, considered):
                selected += 1
        considered.add(name)
    return seen, selected


def _keep_by_mean_coverage(
    source: AlignmentSource,
    target_regions: Sequence[Region],
    sample_regions: Optional[Sequence[Region]],
    fold_coverage: float,
    seed: int,
    keep: set[str],
    calibrated_tids: set[int],
    progress: bool,
) -> list[CalibrationResult]:
    target_means, sample_means, probabilities = mean_coverages(
        source, target_regions, sample_regions, fold_coverage
    )

    results = []
    considered: set[str] = set()
    for region in iter_progress(target_regions, desc="calibrate", enabled=progress):
        probability = probabilities[region.name]
        observed = target_means[region.name]
        target = sample_means[region.name]
        logger.info(
            LogTemplates.REGION_CALIBRATE.format(
                name=region.name, region=region, observed=observed, target=target
            )
        )
        seen, selected = subsample_region(
            source,
            region,
            probability,
            region_rng(seed, region),
            keep,
            considered,
            calibrated_tids,
        )
        logger.debug(LogTemplates.SAMPLING_STATS.format(name=region.name, kept=selected, seen=seen))
        results.append(
            CalibrationResult(region=region, uncalibrated_coverage=observed, target_coverage=target)
        )
    return results


def _keep_fixed(source, target_regions, mode: FixedCoverage, keep, calibrated_tids, progress):
    return _keep_by_mean_coverage(
        source, target_regions, None, mode.fold_coverage, mode.seed, keep, calibrated_tids, progress
    )


def _keep_sample_mean(source, target_regions, mode: SampleMeanCoverage, keep, calibrated_tids, progress):
    return _keep_by_mean_coverage(
        source, target_regions, mode.sample_regions, 0, mode.seed, keep, calibrated_tids, progress
    )


# ---------------------------------------------------------------------------
# Sample profile matching
# ---------------------------------------------------------------------------

def window_bounds(region: Region, window_size: int) -> list[tuple[int, int]]:
    """Consecutive ``[beg, end)`` windows from the region start; a partial last window is dropped."""
    if window_size <= 0:
        raise CalibrationError(f"Window size must be positive, got {window_size}")
    return [
        (beg, beg + window_size)
        for beg in range(region.beg, region.end - window_size + 1, window_size)
    ]


def starts_in(source: AlignmentSource, region: Region, min_mapq: int) -> int:
    """Number of records starting in ``region`` with ``mapq >= min_mapq``."""
    return sum(
        1
        for record in source.fetch(region.contig, region.beg, region.end)
        if region.beg <= record.reference_start < region.end
        and record.mapping_quality >= min_mapq
    )


def window_starts(
    source: AlignmentSource,
    region: Region,
    window_size: int,
    min_mapq: int,
) -> list[int]:
    """Read starts per window of ``region`` (see :func:`window_bounds`)."""
    windows = window_bounds(region, window_size)
    counts = np.zeros(len(windows), dtype=np.int64)
    if not windows:
        return []
    last = windows[-1][1]
    for record in source.fetch(region.contig, region.beg, last):
        pos = record.reference_start
        if region.beg <= pos < last and record.mapping_quality >= min_mapq:
            counts[(pos - region.beg) // window_size] += 1
    return counts.tolist()


def records_that_start_in_region(source: AlignmentSource, region: Region) -> list[pysam.AlignedSegment]:
    """Records overlapping ``region`` whose alignment start lies inside it."""
    return [
        record
        for record in source.fetch(region.contig, region.beg, region.end)
        if region.beg <= record.reference_start < region.end
    ]


def choose_from(size: int, n: int, rng: np.random.Generator) -> list[int]:
    """Pick ``n`` distinct indices from ``range(size)`` uniformly at random.

    When fewer than ``n`` items are available all of them are returned.
    """
    if n <= 0 or size <= 0:
        return []
    if n >= size:
        return list(range(size))
    return sorted(rng.choice(size, size=n, replace=False).tolist())


def profile_region(
    source: AlignmentSource,
    target: Region,
    sample: Region,
    window_size: int,
    min_mapq: int,
    seed: int,
) -> set[str]:
    """Query names to keep so ``target`` mirrors the read-start profile of ``sample``.

    Both regions must already be flank-trimmed. The first target window is
    matched against the last sample window: sequin regions are the mirror
    image of the sample region they model.
    """
    rev_sample_starts = window_starts(source, sample, window_size, min_mapq)[::-1]
    windows = window_bounds(target, window_size)
    if len(windows) != len(rev_sample_starts):
        logger.warning(
            f"Region {target.name} has {len(windows)} windows but sample region "
            f"{sample.name} has {len(rev_sample_starts)}; unmatched windows keep no reads"
        )

    records = records_that_start_in_region(source, target)
    keep_names: set[str] = set()
    for i, ((window_beg, window_end), sample_count) in enumerate(zip(windows, rev_sample_starts)):
        # Each selected read brings its mate, so half the sample starts give
        # roughly the sample coverage. This slightly undershoots the sample.
        n_starts = sample_count // 2
        candidates = [
            record for record in records if window_beg <= record.reference_start < window_end
        ]
        for idx in choose_from(len(candidates), n_starts, region_rng(seed, target, i)):
            keep_names.add(query_name(candidates[idx]))
    return keep_names


def _keep_profile(source, target_regions, mode: SampleProfile, keep, calibrated_tids, progress):
    targets = trim_regions(target_regions, mode.flank)
    samples = regions_by_name(trim_regions(mode.sample_regions, mode.flank))

    results = []
    for target in iter_progress(targets, desc="calibrate", enabled=progress):
        sample = samples.get(target.name)
        if sample is None:
            raise CalibrationError(
                f"No matching sample region found for target region {target.name}"
            )
        logger.info(
            LogTemplates.REGION_PROFILE.format(name=target.name, region=target, sample=sample)
        )
        keep_names = profile_region(
            source, target, sample, mode.window_size, mode.min_mapq, mode.seed
        )
        keep.update(keep_names)
        logger.debug(f"Selected {len(keep_names):,} read groups in {target.name}")
        results.append(
            CalibrationResult(
                region=target,
                uncalibrated_coverage=coverage_for_region(source, target).mean() or 0.0,
                target_coverage=coverage_for_region(source, sample).mean() or 0.0,
            )
        )
    return results


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

_STRATEGIES: dict[type, Callable[..., list[CalibrationResult]]] = {
    FixedCoverage: _keep_fixed,
    SampleMeanCoverage: _keep_sample_mean,
    SampleProfile: _keep_profile,
}


def calibrated_tids(source: AlignmentSource, regions: Iterable[Region]) -> set[int]:
    """Reference ids of the contigs that carry target regions."""
    tids = set()
    for contig in sorted(contigs_of(regions)):
        tid = source.tid(contig)
        if tid < 0:
            raise CalibrationError(f"Contig {contig} of the target regions is not in the BAM header")
        tids.add(tid)
    return tids


def assemble(
    source: AlignmentSource,
    writer: pysam.AlignmentFile,
    keep: set[str],
    calibrated: set[int],
    exclude_uncalibrated_reads: bool = False,
) -> tuple[int, int]:
    """Single pass over the whole file writing the final selection.

    A record is written when its read group is in ``keep``, or when its mate
    is not on a calibrated contig and uncalibrated reads are not excluded.

    Returns:
        ``(total, written)`` record counts
    """
    total = written = 0
    for record in source.fetch_all():
        total += 1
        if query_name(record) in keep:
            writer.write(record)
            written += 1
        elif not exclude_uncalibrated_reads and record.next_reference_id not in calibrated:
            writer.write(record)
            written += 1
    return total, written


def calibrate(
    source: AlignmentSource,
    writer: pysam.AlignmentFile,
    target_regions: Sequence[Region],
    mode: CalibrationMode,
    exclude_uncalibrated_reads: bool = False,
    progress: bool = False,
) -> list[CalibrationResult]:
    """Calibrate ``target_regions`` under ``mode`` and write the result.

    Args:
        source: Open alignment source (indexed)
        writer: Output opened with the source's header
        target_regions: Regions to calibrate, flank-trimmed as ``mode`` requires
        mode: One of :class:`FixedCoverage`, :class:`SampleMeanCoverage`,
            :class:`SampleProfile`
        exclude_uncalibrated_reads: Drop reads whose mate is not on a
            calibrated contig
        progress: Show a progress bar over regions

    Returns:
        One :class:`CalibrationResult` per target region
    """
    strategy = _STRATEGIES.get(type(mode))
    if strategy is None:
        raise CalibrationError(f"Unknown calibration mode: {type(mode).__name__}")

    calibrated = calibrated_tids(source, target_regions)
    keep: set[str] = set()
    results = strategy(source, target_regions, mode, keep, calibrated, progress)

    total, written = assemble(source, writer, keep, calibrated, exclude_uncalibrated_reads)
    logger.info(LogTemplates.ASSEMBLY_STATS.format(written=written, total=total))
    return results
