"""Click application entrypoint for sequintools."""

from __future__ import annotations

import signal
import sys
from types import FrameType
from typing import Optional

import click

from sequintools import __version__
from sequintools.cli.commands.bedcov import bedcov
from sequintools.cli.commands.calibrate import calibrate
from sequintools.cli.commands.config import init_config
from sequintools.cli.commands.validate import validate
from sequintools.cli.exit_codes import EXIT_ERROR, EXIT_SIGINT, EXIT_SUCCESS


def _handle_signal(signum: int, frame: Optional[FrameType]) -> None:
    """Handle interrupt signals for graceful shutdown."""
    sig_name = "SIGINT" if signum == signal.SIGINT else "SIGTERM"
    click.echo(f"\n{sig_name} received, shutting down...", err=True)
    # Raise KeyboardInterrupt to propagate through the call stack
    raise KeyboardInterrupt(f"{sig_name} received")


def _print_version(ctx: click.Context, _param: click.Parameter, value: bool) -> None:
    if value and not ctx.resilient_parsing:
        click.echo(f"sequintools {__version__}")
        ctx.exit()


@click.group(context_settings=dict(help_option_names=["-h", "--help"]))
# Version option (use -V to avoid conflict with -v/--verbose)
@click.option(
    "-V",
    "--version",
    is_flag=True,
    is_eager=True,
    expose_value=False,
    callback=_print_version,
    help="Show the version and exit.",
)
def cli() -> None:
    """sequintools: coverage reporting and calibration of sequin spike-ins."""


cli.add_command(bedcov)
cli.add_command(calibrate)
cli.add_command(init_config)
cli.add_command(validate)


def main(argv: list[str] | None = None) -> int:
    """Main entry point with signal handling."""
    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    try:
        cli(argv)
        return EXIT_SUCCESS
    except KeyboardInterrupt:
        return EXIT_SIGINT
    except SystemExit as exc:
        # Preserve explicit exit codes from subcommands
        if exc.code is None:
            return EXIT_SUCCESS
        return exc.code if isinstance(exc.code, int) else EXIT_ERROR
    except Exception as exc:
        click.echo(f"Error: {exc}", err=True)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
