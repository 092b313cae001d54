"""Resource files and configuration templates."""


def get_default_config() -> str:
    """Return default configuration YAML content."""
    return """# sequintools Configuration File
# Command line options take precedence over values in this file.

# Reference FASTA, required for CRAM input or output
reference: ~

# Runtime settings
runtime:
  log_level: "WARNING"
  log_file: ~
  enable_progress: false

# Performance settings
performance:
  threads: 1

# bedcov defaults
coverage:
  min_mapq: 0
  flank: 0
  max_depth: 8000
  thresholds: []

# calibrate defaults
calibration:
  flank: 500
  seed: 5678
  fold_coverage: 40
  window_size: 100
  min_mapq: 10
  exclude_uncalibrated_reads: false
  write_index: false
"""
