"""Installation validation command."""

from __future__ import annotations

import sys

import click

from sequintools import __version__
from sequintools.cli.exit_codes import EXIT_ERROR
from sequintools.utils.validators import validate_installation


@click.command()
@click.option("--full", is_flag=True, help="Also check pysam indexing support and package imports")
def validate(full: bool) -> None:
    """Validate sequintools installation and dependencies."""
    click.echo("Validating sequintools installation...")

    issues = validate_installation(full_check=full)
    if issues:
        click.echo("✗ Issues found:")
        for issue in issues:
            click.echo(f"  - {issue}")
        sys.exit(EXIT_ERROR)

    click.echo("✓ All checks passed!")
    click.echo(f"  sequintools version: {__version__}")
