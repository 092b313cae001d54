"""`calibrate` subcommand implementation."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import click

from sequintools.alignment import AlignmentSource, build_index, open_writer
from sequintools.cli.common_options import common_options, pick, resolve_config
from sequintools.cli.exit_codes import exit_code_for
from sequintools.config import Config
from sequintools.exceptions import ConfigurationError, SequintoolsError
from sequintools.modules.calibration import (
    CalibrationMode,
    CalibrationResult,
    FixedCoverage,
    SampleMeanCoverage,
    SampleProfile,
    calibrate as run_calibration,
)
from sequintools.modules.coverage import coverage_for_region
from sequintools.modules.report import write_calibration_summary
from sequintools.region import Region, load_regions, trim_regions
from sequintools.utils.logging import LogTemplates, get_logger


@dataclass
class CalibrateOptions:
    """Container for calibrate options as given on the command line."""

    input_file: Path
    bed: Path
    sample_bed: Optional[Path]
    output: Optional[Path]
    summary_report: Optional[Path]
    experimental: bool
    cram: bool
    write_index: bool  # CLI flag: True if --write-index provided
    exclude_uncalibrated_reads: bool  # CLI flag: True if -x provided
    progress: bool
    # None means use config or default
    flank: Optional[int] = None
    seed: Optional[int] = None
    fold_coverage: Optional[float] = None
    window_size: Optional[int] = None
    min_mapq: Optional[int] = None
    reference: Optional[Path] = None
    threads: Optional[int] = None


def apply_options(cfg: Config, opts: CalibrateOptions) -> Config:
    """Overlay command line values on ``cfg`` and validate the result."""
    cal = cfg.calibration
    cal.flank = pick(opts.flank, cal.flank)
    cal.seed = pick(opts.seed, cal.seed)
    cal.fold_coverage = pick(opts.fold_coverage, cal.fold_coverage)
    cal.window_size = pick(opts.window_size, cal.window_size)
    cal.min_mapq = pick(opts.min_mapq, cal.min_mapq)
    if opts.write_index:
        cal.write_index = True
    if opts.exclude_uncalibrated_reads:
        cal.exclude_uncalibrated_reads = True
    cfg.reference = pick(opts.reference, cfg.reference)
    cfg.threads = pick(opts.threads, cfg.threads)
    cfg.validate()

    if opts.experimental and opts.sample_bed is None:
        raise ConfigurationError("--experimental requires sample regions (-S/--sample-bed)")
    if opts.cram and cfg.reference is None:
        raise ConfigurationError("--cram requires a reference (-T/--reference)")
    if opts.summary_report is not None and opts.summary_report.exists():
        raise ConfigurationError(f"Summary report already exists: {opts.summary_report}")
    return cfg


def build_mode(
    cfg: Config,
    regions: list[Region],
    sample_regions: Optional[list[Region]],
    experimental: bool,
) -> tuple[CalibrationMode, list[Region]]:
    """Choose the calibration mode and the target regions it operates on."""
    cal = cfg.calibration
    if experimental:
        # Profile matching trims targets and samples itself
        mode = SampleProfile(
            sample_regions=tuple(sample_regions),
            flank=cal.flank,
            window_size=cal.window_size,
            min_mapq=cal.min_mapq,
            seed=cal.seed,
        )
        return mode, regions
    if sample_regions is not None:
        return SampleMeanCoverage(sample_regions=tuple(sample_regions), seed=cal.seed), regions
    return FixedCoverage(fold_coverage=cal.fold_coverage, seed=cal.seed), trim_regions(regions, cal.flank)


def measure_calibrated(
    path: Path, results: list[CalibrationResult], cfg: Config
) -> None:
    """Fill in ``calibrated_coverage`` from the indexed output file."""
    with AlignmentSource(path, reference=cfg.reference, threads=cfg.threads) as output:
        for result in results:
            result.calibrated_coverage = coverage_for_region(output, result.region).mean() or 0.0


def execute_calibration(opts: CalibrateOptions, cfg: Config, logger: logging.Logger) -> None:
    """Run calibration end to end: regions, mode, output, index, summary."""
    cfg = apply_options(cfg, opts)
    cal = cfg.calibration

    regions = load_regions(opts.bed)
    logger.info(LogTemplates.FILE_LOADED.format(count=len(regions), path=opts.bed))
    sample_regions = None
    if opts.sample_bed is not None:
        sample_regions = load_regions(opts.sample_bed)
        logger.info(LogTemplates.FILE_LOADED.format(count=len(sample_regions), path=opts.sample_bed))
        if not opts.experimental and cal.flank:
            logger.info("Sample mean calibration uses whole regions; --flank is ignored")

    mode, targets = build_mode(cfg, regions, sample_regions, opts.experimental)
    logger.debug(f"Calibration mode: {mode}")

    with AlignmentSource(opts.input_file, reference=cfg.reference, threads=cfg.threads) as source:
        writer = open_writer(
            opts.output, source, cram=opts.cram, reference=cfg.reference, threads=cfg.threads
        )
        try:
            with writer:
                results = run_calibration(
                    source,
                    writer,
                    targets,
                    mode,
                    exclude_uncalibrated_reads=cal.exclude_uncalibrated_reads,
                    progress=opts.progress or cfg.runtime.enable_progress,
                )
        except BaseException:
            if opts.output is not None:
                opts.output.unlink(missing_ok=True)
                logger.debug(f"Removed partial output {opts.output}")
            raise

    if opts.output is None:
        if cal.write_index:
            logger.warning("--write-index ignored when writing to standard output")
    else:
        logger.info(LogTemplates.FILE_CREATED.format(path=opts.output))
        # Measuring calibrated coverage needs random access to the output
        if cal.write_index or opts.summary_report is not None:
            build_index(opts.output)
        if opts.summary_report is not None:
            measure_calibrated(opts.output, results, cfg)

    if opts.summary_report is not None:
        write_calibration_summary(results, opts.summary_report)
        logger.info(LogTemplates.FILE_CREATED.format(path=opts.summary_report))


@click.command()
@click.option(
    "-b",
    "--bed",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Target (sequin) regions to calibrate",
)
@click.option(
    "-S",
    "--sample-bed",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Sample regions, matched to target regions by name",
)
@click.option(
    "--flank",
    type=click.IntRange(min=0),
    default=None,
    help="Bases trimmed from both ends of target regions [default: 500]",
)
@click.option("-s", "--seed", type=click.IntRange(min=0), default=None, help="Random seed [default: 5678]")
@click.option(
    "-f",
    "--fold-coverage",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Target fold coverage when no sample regions are given [default: 40]",
)
@click.option(
    "-w",
    "--window-size",
    type=click.IntRange(min=1),
    default=None,
    help="Window size for --experimental profile matching [default: 100]",
)
@click.option(
    "-q",
    "--min-MQ",
    "min_mapq",
    type=click.IntRange(0, 255),
    default=None,
    help="Minimum mapping quality of counted read starts (--experimental) [default: 10]",
)
@click.option("--write-index", is_flag=True, help="Index the output file (requires -o)")
@click.option(
    "-x",
    "--exclude-uncalibrated-reads",
    is_flag=True,
    help="Drop reads whose mate is not on a calibrated contig",
)
@click.option(
    "--summary-report",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write a per-region coverage summary CSV; must not already exist",
)
@click.option(
    "--experimental",
    is_flag=True,
    help="Match the windowed read-start profile of the sample regions (requires -S)",
)
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Output BAM/CRAM [default: standard output]",
)
@click.option("-C", "--cram", is_flag=True, help="Write CRAM instead of BAM (requires -T)")
@common_options
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def calibrate(
    bed: Path,
    sample_bed: Optional[Path],
    flank: Optional[int],
    seed: Optional[int],
    fold_coverage: Optional[float],
    window_size: Optional[int],
    min_mapq: Optional[int],
    write_index: bool,
    exclude_uncalibrated_reads: bool,
    summary_report: Optional[Path],
    experimental: bool,
    output: Optional[Path],
    cram: bool,
    reference: Optional[Path],
    config: Optional[Path],
    threads: Optional[int],
    progress: bool,
    verbose: int,
    log_file: Optional[Path],
    input_file: Path,
) -> None:
    """Downsample sequin regions of INPUT to a target coverage."""
    try:
        cfg = resolve_config(config, verbose, log_file)
    except SequintoolsError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(exit_code_for(exc))
    logger = get_logger("cli")

    try:
        opts = CalibrateOptions(
            input_file=input_file,
            bed=bed,
            sample_bed=sample_bed,
            output=output,
            summary_report=summary_report,
            experimental=experimental,
            cram=cram,
            write_index=write_index,
            exclude_uncalibrated_reads=exclude_uncalibrated_reads,
            progress=progress,
            flank=flank,
            seed=seed,
            fold_coverage=fold_coverage,
            window_size=window_size,
            min_mapq=min_mapq,
            reference=reference,
            threads=threads,
        )
        execute_calibration(opts, cfg, logger)

    except KeyboardInterrupt as exc:
        logger.info("Calibration interrupted by user")
        sys.exit(exit_code_for(exc))
    except (SequintoolsError, OSError) as exc:
        logger.error(f"Calibration failed: {exc}")
        sys.exit(exit_code_for(exc))
