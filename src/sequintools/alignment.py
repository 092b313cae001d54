"""Indexed alignment access through pysam.

The coverage and calibration modules only talk to :class:`AlignmentSource`
and to the writer returned by :func:`open_writer`; all BAM/CRAM decoding,
decompression threads and index handling stay inside pysam.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterator, Optional, Union

import pysam

from sequintools.exceptions import AlignmentSourceError, EncodingError
from sequintools.utils.logging import get_logger

logger = get_logger("alignment")

PathLike = Union[str, Path]


def _read_mode(path: Path) -> str:
    return "rc" if path.suffix.lower() == ".cram" else "rb"


class AlignmentSource:
    """Random-access reader over an indexed BAM or CRAM file.

    Handles are not shareable between threads or processes; parallel callers
    open one source each.
    """

    def __init__(
        self,
        path: PathLike,
        reference: Optional[PathLike] = None,
        threads: int = 1,
    ) -> None:
        self.path = Path(path)
        if not self.path.exists():
            raise AlignmentSourceError(f"Alignment file not found: {self.path}", path=self.path)
        kwargs = {"threads": max(int(threads), 1)}
        if reference is not None:
            kwargs["reference_filename"] = str(reference)
        try:
            self._handle = pysam.AlignmentFile(str(self.path), _read_mode(self.path), **kwargs)
        except UnicodeDecodeError as e:
            raise EncodingError(f"Header of {self.path} is not valid UTF-8: {e}") from e
        except (OSError, ValueError) as e:
            raise AlignmentSourceError(
                f"Unable to open alignment file {self.path}: {e}", path=self.path
            ) from e

    def __enter__(self) -> "AlignmentSource":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self._handle.close()

    @property
    def handle(self) -> pysam.AlignmentFile:
        """The underlying pysam handle (used as a template for writers)."""
        return self._handle

    @property
    def header(self) -> pysam.AlignmentHeader:
        return self._handle.header

    @property
    def contigs(self) -> list[tuple[str, int]]:
        """``(name, length)`` for every reference sequence in header order."""
        return list(zip(self._handle.references, self._handle.lengths))

    def tid(self, contig: str) -> int:
        """Return the reference id of ``contig``, or -1 when it is absent."""
        return self._handle.get_tid(contig)

    def fetch(self, contig: str, beg: Optional[int] = None, end: Optional[int] = None) -> Iterator[pysam.AlignedSegment]:
        """Iterate records overlapping ``contig:[beg, end)``."""
        try:
            return self._handle.fetch(contig, beg, end)
        except ValueError as e:
            raise AlignmentSourceError(
                f"Unable to fetch {contig}:{beg}-{end} from {self.path}: {e}", path=self.path
            ) from e

    def fetch_all(self) -> Iterator[pysam.AlignedSegment]:
        """Iterate every record in file order, unmapped reads included."""
        return self._handle.fetch(until_eof=True, multiple_iterators=True)

    def pileup(self, contig: str, beg: int, end: int, max_depth: int) -> Iterator[pysam.PileupColumn]:
        """Unfiltered pileup columns truncated to ``contig:[beg, end)``.

        Flag and mapping-quality filters are applied by the caller so the
        pileup and CIGAR-walk depth paths share one exclusion policy.
        """
        try:
            return self._handle.pileup(
                contig,
                beg,
                end,
                truncate=True,
                stepper="nofilter",
                max_depth=max_depth,
                min_base_quality=0,
                ignore_overlaps=False,
                ignore_orphans=False,
            )
        except ValueError as e:
            raise AlignmentSourceError(
                f"Unable to pileup {contig}:{beg}-{end} from {self.path}: {e}", path=self.path
            ) from e


def query_name(record: pysam.AlignedSegment) -> str:
    """Return the record's query name, failing on names pysam cannot decode."""
    try:
        return record.query_name
    except UnicodeDecodeError as e:
        raise EncodingError(f"Query name is not valid UTF-8: {e}") from e


def open_writer(
    path: Optional[PathLike],
    template: AlignmentSource,
    cram: bool = False,
    reference: Optional[PathLike] = None,
    threads: int = 1,
) -> pysam.AlignmentFile:
    """Open a BAM (or CRAM) writer sharing ``template``'s header.

    ``path=None`` streams to standard output.
    """
    mode = "wc" if cram else "wb"
    target = "-" if path is None else str(path)
    kwargs = {"template": template.handle, "threads": max(int(threads), 1)}
    if reference is not None:
        kwargs["reference_filename"] = str(reference)
    try:
        return pysam.AlignmentFile(target, mode, **kwargs)
    except (OSError, ValueError) as e:
        raise AlignmentSourceError(f"Unable to open output {target}: {e}", path=path) from e


def build_index(path: PathLike) -> Path:
    """Build a BAI/CRAI index next to ``path``; the writer must be closed first."""
    path = Path(path)
    try:
        pysam.index(str(path))
    except pysam.SamtoolsError as e:
        raise AlignmentSourceError(f"Unable to index {path}: {e}", path=path) from e
    suffix = ".crai" if path.suffix.lower() == ".cram" else ".bai"
    index_path = path.with_name(path.name + suffix)
    logger.info(f"Wrote index {index_path}")
    return index_path
