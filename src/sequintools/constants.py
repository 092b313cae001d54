"""Unified constants for sequintools.

This module centralizes values shared by the coverage and calibration
modules and the CLI defaults.
"""

# ================== SAM Flags ==================
FLAG_UNMAPPED: int = 0x4
FLAG_SECONDARY: int = 0x100
FLAG_QCFAIL: int = 0x200
FLAG_DUPLICATE: int = 0x400
FLAG_SUPPLEMENTARY: int = 0x800

# 0xF04: UNMAP, SECONDARY, QCFAIL, DUP, SUPPLEMENTARY
DEPTH_EXCLUDE_FLAGS: int = (
    FLAG_UNMAPPED | FLAG_SECONDARY | FLAG_QCFAIL | FLAG_DUPLICATE | FLAG_SUPPLEMENTARY
)

# htslib stores pileup depth as a signed 32-bit int
PILEUP_MAX_DEPTH: int = 2**31 - 1


# ================== bedcov Defaults ==================
BEDCOV_MIN_MAPQ: int = 0
BEDCOV_FLANK: int = 0
BEDCOV_MAX_DEPTH: int = 8_000


# ================== calibrate Defaults ==================
CALIBRATE_FLANK: int = 500
CALIBRATE_SEED: int = 5678
CALIBRATE_FOLD_COVERAGE: int = 40
CALIBRATE_WINDOW_SIZE: int = 100
CALIBRATE_MIN_MAPQ: int = 10


# ================== Output Constants ==================
# Default decimal precision for floating point values in output
OUTPUT_DECIMAL_PRECISION: int = 2
