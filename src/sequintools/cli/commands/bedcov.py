"""`bedcov` subcommand implementation."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import click

from sequintools.cli.common_options import common_options, parse_thresholds, pick, resolve_config
from sequintools.cli.exit_codes import exit_code_for
from sequintools.exceptions import SequintoolsError
from sequintools.modules.coverage import calculate_coverage
from sequintools.modules.report import write_coverage_report
from sequintools.region import load_regions
from sequintools.utils.logging import LogTemplates, get_logger


@click.command()
@click.option(
    "-Q",
    "--min-MQ",
    "min_mapq",
    type=click.IntRange(0, 255),
    default=None,
    help="Skip alignments with mapping quality below this [default: 0]",
)
@click.option(
    "-f",
    "--flank",
    type=click.IntRange(min=0),
    default=None,
    help="Bases omitted from both ends of each region [default: 0]",
)
@click.option(
    "-d",
    "--max-depth",
    type=click.IntRange(min=0),
    default=None,
    help="Maximum pileup depth, 0 for no limit [default: 8000]",
)
@click.option(
    "-t",
    "--thresholds",
    callback=parse_thresholds,
    default=None,
    help="Comma-separated depths; adds a pct_gt_<N> column for each",
)
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the report here instead of standard output",
)
@common_options
@click.argument("bed", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("bam", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def bedcov(
    min_mapq: Optional[int],
    flank: Optional[int],
    max_depth: Optional[int],
    thresholds: Optional[list[int]],
    output: Optional[Path],
    reference: Optional[Path],
    config: Optional[Path],
    threads: Optional[int],
    progress: bool,
    verbose: int,
    log_file: Optional[Path],
    bed: Path,
    bam: Path,
) -> None:
    """Report per-region depth statistics of BAM over the regions in BED."""
    try:
        cfg = resolve_config(config, verbose, log_file)
    except SequintoolsError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(exit_code_for(exc))
    logger = get_logger("cli")

    try:
        cov = cfg.coverage
        cov.min_mapq = pick(min_mapq, cov.min_mapq)
        cov.flank = pick(flank, cov.flank)
        cov.max_depth = pick(max_depth, cov.max_depth)
        cov.thresholds = pick(thresholds, cov.thresholds)
        cfg.reference = pick(reference, cfg.reference)
        cfg.threads = pick(threads, cfg.threads)
        cfg.validate()

        regions = load_regions(bed)
        logger.info(LogTemplates.FILE_LOADED.format(count=len(regions), path=bed))

        results = calculate_coverage(
            bam,
            regions,
            min_mapq=cov.min_mapq,
            flank=cov.flank,
            max_depth=cov.max_depth,
            reference=cfg.reference,
            threads=cfg.threads,
            progress=progress or cfg.runtime.enable_progress,
        )
        for result in results:
            logger.debug(
                LogTemplates.REGION_DEPTH.format(
                    name=result.region.name, region=result.region, mean=result.mean()
                )
            )

        if output is None:
            write_coverage_report(results, sys.stdout, thresholds=cov.thresholds)
        else:
            write_coverage_report(results, output, thresholds=cov.thresholds)
            logger.info(LogTemplates.FILE_CREATED.format(path=output))

    except KeyboardInterrupt as exc:
        logger.info("Interrupted by user")
        sys.exit(exit_code_for(exc))
    except (SequintoolsError, OSError) as exc:
        logger.error(f"bedcov failed: {exc}")
        sys.exit(exit_code_for(exc))
