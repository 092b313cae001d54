"""Integration tests for sequintools.

These tests drive the CLI end to end on small BAM files written with pysam.

Run with: pytest tests/integration/ -v
"""
