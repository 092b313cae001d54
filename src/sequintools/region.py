"""Genomic regions and BED region-list loading.

A :class:`Region` is a named, half-open, 0-based interval on a contig. Regions
are loaded once from a BED file and never modified afterwards; flank trimming
returns a new region.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Iterable, Union

from sequintools.exceptions import FileFormatError, RegionError


@dataclass(frozen=True)
class Region:
    """A named interval ``[beg, end)`` on ``contig``."""

    contig: str
    beg: int
    end: int
    name: str

    def __str__(self) -> str:
        return f"{self.contig}:{self.beg}-{self.end}"

    def __len__(self) -> int:
        return max(self.end - self.beg, 0)

    def trim(self, flank: int) -> "Region":
        """Return a copy with ``flank`` bases removed from both ends.

        Raises:
            RegionError: If ``flank`` is negative or nothing would remain.
        """
        if flank < 0:
            raise RegionError(
                f"Flank must not be negative (flank = {flank}) for region "
                f"{self.name} {self}",
                region=self,
            )
        beg = self.beg + flank
        end = self.end - flank
        if beg >= end:
            raise RegionError(
                f"Region start >= end after applying flank of {flank} for region "
                f"{self.name} {self}",
                region=self,
            )
        if flank == 0:
            return self
        return replace(self, beg=beg, end=end)


def trim_regions(regions: Iterable[Region], flank: int) -> list[Region]:
    """Trim every region by ``flank``; fails on the first region that cannot be trimmed."""
    return [region.trim(flank) for region in regions]


def parse_regions(lines: Iterable[str]) -> list[Region]:
    """Parse BED rows into regions.

    Each row needs at least four whitespace-separated columns: contig,
    0-based begin, end and name. Blank lines, ``#`` comments and
    ``track``/``browser`` header lines are skipped.

    Raises:
        FileFormatError: On a row with too few columns or non-integer or
            negative bounds.
    """
    regions: list[Region] = []
    for lineno, line in enumerate(lines, start=1):
        stripped = line.strip()
        if not stripped or stripped.startswith(("#", "track", "browser")):
            continue
        bits = stripped.split()
        if len(bits) < 4:
            raise FileFormatError(
                f"Incorrect number of columns detected, expected >= 4 found "
                f"{len(bits)} (line = {lineno})"
            )
        contig, beg_str, end_str, name = bits[:4]
        beg = _coordinate(beg_str, "Beg", lineno)
        end = _coordinate(end_str, "End", lineno)
        regions.append(Region(contig=contig, beg=beg, end=end, name=name))
    return regions


def _coordinate(text: str, column: str, lineno: int) -> int:
    try:
        value = int(text)
    except ValueError:
        raise FileFormatError(
            f"{column} column is not an integer: is {text} (line = {lineno})"
        ) from None
    if value < 0:
        raise FileFormatError(
            f"{column} column is negative: is {text} (line = {lineno})"
        )
    return value


def load_regions(path: Union[str, Path]) -> list[Region]:
    """Load regions from a BED file on disk."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"BED file not found: {path}")
    with open(path, "r", encoding="utf-8") as handle:
        return parse_regions(handle)


def regions_by_name(regions: Iterable[Region]) -> dict[str, Region]:
    """Index regions by name; later duplicates replace earlier ones."""
    return {region.name: region for region in regions}


def contigs_of(regions: Iterable[Region]) -> set[str]:
    """Return the unique set of contig names used by ``regions``."""
    return {region.contig for region in regions}
