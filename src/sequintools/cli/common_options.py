"""Shared Click options for sequintools CLI commands.

This module defines reusable Click option decorators so that ``bedcov`` and
``calibrate`` spell common options the same way, plus the logging/config
resolution both commands perform before doing any work.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional, TypeVar

import click

from sequintools.config import Config, load_config
from sequintools.utils.logging import LEVELS, level_from_verbosity, setup_logging

F = TypeVar("F", bound=Callable[..., None])


def reference_option(func: F) -> F:
    """Reference FASTA option (CRAM input/output)."""
    return click.option(
        "-T",
        "--reference",
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        default=None,
        help="Reference sequence FASTA file. Used when input or output is CRAM.",
    )(func)


def config_option(func: F) -> F:
    """Configuration file option."""
    return click.option(
        "-c",
        "--config",
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        help="Configuration file (YAML)",
    )(func)


def threads_option(func: F) -> F:
    """Threads option."""
    return click.option(
        "--threads",
        type=click.IntRange(min=1),
        default=None,
        help="Number of threads [default: 1]",
    )(func)


def progress_option(func: F) -> F:
    """Progress bar option."""
    return click.option(
        "--progress",
        is_flag=True,
        help="Show a progress bar on stderr",
    )(func)


def verbose_option(func: F) -> F:
    """Verbosity option (unified: use -v/--verbose everywhere)."""
    return click.option(
        "-v",
        "--verbose",
        count=True,
        help="Increase log verbosity (-v for INFO, -vv for DEBUG)",
    )(func)


def log_file_option(hidden: bool = False) -> Callable[[F], F]:
    """Log file option (unified name: --log-file)."""
    def decorator(func: F) -> F:
        return click.option(
            "--log-file",
            type=click.Path(dir_okay=False, path_type=Path),
            help="Path for log file output",
            hidden=hidden,
        )(func)
    return decorator


def common_options(func: F) -> F:
    """Apply the options shared by every data command.

    Usage:
        @click.command()
        @common_options
        def my_command(reference, config, threads, progress, verbose, log_file, ...):
            pass
    """
    # Apply options in reverse order (Click applies them bottom-up)
    decorators = [
        reference_option,
        config_option,
        threads_option,
        progress_option,
        verbose_option,
        log_file_option(),
    ]
    for decorator in reversed(decorators):
        func = decorator(func)
    return func


def parse_thresholds(
    _ctx: click.Context, _param: click.Parameter, value: Optional[str]
) -> Optional[list[int]]:
    """Click callback turning ``"10,20,30"`` into ``[10, 20, 30]``."""
    if value is None:
        return None
    try:
        thresholds = [int(v) for v in value.split(",") if v.strip()]
    except ValueError:
        raise click.BadParameter(f"expected comma-separated integers, got {value!r}")
    if any(t < 0 for t in thresholds):
        raise click.BadParameter("thresholds must be >= 0")
    return thresholds


def resolve_config(
    config_path: Optional[Path],
    verbose: int,
    log_file: Optional[Path],
) -> Config:
    """Load the config file (if any) and configure logging.

    CLI flags (-v, --log-file) take precedence over the config file's runtime
    section.
    """
    cfg = load_config(config_path) if config_path else Config()

    if verbose:
        level = level_from_verbosity(verbose)
    else:
        level = LEVELS.get(str(cfg.runtime.log_level).upper(), logging.WARNING)
    setup_logging(level=level, log_file=log_file or cfg.runtime.log_file)
    return cfg


def pick(cli_value, config_value):
    """CLI value when given, else the config value."""
    return config_value if cli_value is None else cli_value
