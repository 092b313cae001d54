"""Command line interface for sequintools."""

from sequintools.cli.main import cli, main

__all__ = ["cli", "main"]
