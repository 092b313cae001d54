"""sequintools: calibrate and report coverage of sequin decoy regions."""

from sequintools.__version__ import __version__

__all__ = ["__version__"]
