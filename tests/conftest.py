"""Pytest configuration for sequintools tests."""

import logging
import sys
from pathlib import Path
from types import SimpleNamespace

import pysam
import pytest

# Add src directory to Python path
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

# chr1 plays the sample genome, chrQ the sequin decoy chromosome
DEFAULT_CONTIGS = [("chr1", 5000), ("chrQ", 5000)]

READ_LENGTH = 100

FLAG_PAIRED = 0x1
FLAG_PROPER_PAIR = 0x2
FLAG_REVERSE = 0x10
FLAG_MATE_REVERSE = 0x20
FLAG_READ1 = 0x40
FLAG_READ2 = 0x80


@pytest.fixture(autouse=True)
def reset_logging_after_test():
    """Reset sequintools logger state after each test.

    This prevents test pollution from tests that call setup_logging(),
    which sets propagate=False and breaks caplog in subsequent tests.
    """
    yield
    app_logger = logging.getLogger("sequintools")
    for handler in list(app_logger.handlers):
        app_logger.removeHandler(handler)
        handler.close()
    app_logger.setLevel(logging.NOTSET)
    app_logger.propagate = True


def _query_length(cigar):
    # M, I, S, =, X consume query bases
    return sum(length for op, length in cigar if op in (0, 1, 4, 7, 8))


def _segment(header, contig_ids, spec):
    cigar = spec.get("cigar") or [(0, spec.get("length", READ_LENGTH))]
    length = _query_length(cigar)
    seg = pysam.AlignedSegment(header)
    seg.query_name = spec["name"]
    seg.query_sequence = "A" * length
    seg.query_qualities = pysam.qualitystring_to_array("I" * length)
    seg.flag = spec.get("flag", 0)
    seg.reference_id = contig_ids[spec["contig"]]
    seg.reference_start = spec["pos"]
    seg.mapping_quality = spec.get("mapq", 60)
    seg.cigartuples = cigar
    mate_contig = spec.get("mate_contig")
    if mate_contig is not None:
        seg.next_reference_id = contig_ids[mate_contig]
        seg.next_reference_start = spec["mate_pos"]
    else:
        seg.next_reference_id = -1
        seg.next_reference_start = -1
    return seg


def read_pair(name, contig, pos, mate_pos, mate_contig=None, mapq=60, extra_flags=0):
    """Two record specs for a properly paired read; ``mate_contig`` defaults to ``contig``."""
    mate_contig = mate_contig or contig
    base = FLAG_PAIRED | FLAG_PROPER_PAIR | extra_flags
    return [
        {
            "name": name,
            "contig": contig,
            "pos": pos,
            "mate_contig": mate_contig,
            "mate_pos": mate_pos,
            "mapq": mapq,
            "flag": base | FLAG_READ1 | FLAG_MATE_REVERSE,
        },
        {
            "name": name,
            "contig": mate_contig,
            "pos": mate_pos,
            "mate_contig": contig,
            "mate_pos": pos,
            "mapq": mapq,
            "flag": base | FLAG_READ2 | FLAG_REVERSE,
        },
    ]


def uniform_pairs(prefix, contig, beg, n_pairs, n_starts=5, step=READ_LENGTH):
    """Pairs tiling ``n_starts`` read starts from ``beg`` so every base gets equal depth.

    Pair ``i`` has read 1 at start ``i % n_starts`` and read 2 two starts
    further on, so each start receives ``2 * n_pairs / n_starts`` reads.
    """
    specs = []
    for i in range(n_pairs):
        pos = beg + (i % n_starts) * step
        mate_pos = beg + ((i + 2) % n_starts) * step
        specs.extend(read_pair(f"{prefix}{i:04d}", contig, pos, mate_pos))
    return specs


def write_bam(path, records, contigs=DEFAULT_CONTIGS):
    """Write ``records`` (dict specs) as a coordinate-sorted, indexed BAM."""
    header = {
        "HD": {"VN": "1.6", "SO": "coordinate"},
        "SQ": [{"SN": name, "LN": length} for name, length in contigs],
    }
    contig_ids = {name: i for i, (name, _) in enumerate(contigs)}
    ordered = sorted(records, key=lambda r: (contig_ids[r["contig"]], r["pos"], r["name"]))
    with pysam.AlignmentFile(str(path), "wb", header=header) as out:
        for spec in ordered:
            out.write(_segment(out.header, contig_ids, spec))
    pysam.index(str(path))
    return Path(path)


def write_bed(path, rows):
    """Write ``(contig, beg, end, name)`` rows as a BED file."""
    lines = [f"{contig}\t{beg}\t{end}\t{name}\n" for contig, beg, end, name in rows]
    Path(path).write_text("".join(lines))
    return Path(path)


def read_records(path):
    """All records of a BAM file in file order."""
    with pysam.AlignmentFile(str(path), "rb", check_sq=False) as bam:
        return list(bam.fetch(until_eof=True))


@pytest.fixture
def make_bam(tmp_path):
    """Factory: ``make_bam(records, name="input.bam", contigs=DEFAULT_CONTIGS)``."""

    def factory(records, name="input.bam", contigs=DEFAULT_CONTIGS):
        return write_bam(tmp_path / name, records, contigs=contigs)

    return factory


@pytest.fixture
def make_bed(tmp_path):
    """Factory: ``make_bed(rows, name="regions.bed")``."""

    def factory(rows, name="regions.bed"):
        return write_bed(tmp_path / name, rows)

    return factory


@pytest.fixture
def sequin_bam(make_bam):
    """chrQ seq1 [0, 500) at uniform depth 40 (100 pairs); chr1 sample1 [0, 500) at depth 10."""
    records = uniform_pairs("q", "chrQ", 0, 100)
    records += uniform_pairs("s", "chr1", 0, 25)
    # A pair well outside every region, on the sample genome
    records += read_pair("bg0001", "chr1", 3000, 3200)
    return make_bam(records)


@pytest.fixture
def reads():
    """Record-spec builders and a reader for checking output files."""
    return SimpleNamespace(
        pair=read_pair,
        uniform=uniform_pairs,
        load=read_records,
    )
