"""Version information for sequintools."""

__version__ = "0.5.4"
__author__ = "Sequins Bioinformatics"
__license__ = "Apache-2.0"
__description__ = "Coverage calibration and reporting for sequencing data with sequins added"
