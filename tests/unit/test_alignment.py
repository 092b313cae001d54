"""Tests for pysam-backed alignment access."""

from pathlib import Path
import sys

import pytest

ROOT = Path(__file__).resolve().parents[2]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from sequintools.alignment import AlignmentSource, build_index, open_writer
from sequintools.exceptions import AlignmentSourceError


class TestAlignmentSource:
    """Test cases for AlignmentSource."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(AlignmentSourceError) as exc_info:
            AlignmentSource(tmp_path / "missing.bam")
        assert exc_info.value.path == tmp_path / "missing.bam"

    def test_not_an_alignment_file(self, tmp_path):
        bogus = tmp_path / "bogus.bam"
        bogus.write_text("not a bam file\n")
        with pytest.raises(AlignmentSourceError, match="Unable to open"):
            AlignmentSource(bogus)

    def test_header_lookup(self, sequin_bam):
        with AlignmentSource(sequin_bam) as source:
            assert source.contigs == [("chr1", 5000), ("chrQ", 5000)]
            assert source.tid("chrQ") == 1
            assert source.tid("chrZ") == -1

    def test_fetch_region(self, sequin_bam):
        with AlignmentSource(sequin_bam) as source:
            names = {r.query_name for r in source.fetch("chr1", 2900, 3400)}
        assert names == {"bg0001"}

    def test_fetch_all_includes_every_record(self, sequin_bam):
        with AlignmentSource(sequin_bam) as source:
            assert sum(1 for _ in source.fetch_all()) == 200 + 50 + 2

    def test_fetch_unknown_contig(self, sequin_bam):
        with AlignmentSource(sequin_bam) as source:
            with pytest.raises(AlignmentSourceError):
                list(source.fetch("chrZ", 0, 10))


class TestWriter:
    """Test cases for open_writer and build_index."""

    def test_copy_and_index(self, sequin_bam, tmp_path, reads):
        out = tmp_path / "copy.bam"
        with AlignmentSource(sequin_bam) as source:
            with open_writer(out, source) as writer:
                for record in source.fetch("chrQ", 0, 500):
                    writer.write(record)
        index = build_index(out)
        assert index == tmp_path / "copy.bam.bai"
        assert index.exists()
        with AlignmentSource(out) as copy:
            assert sum(1 for _ in copy.fetch("chrQ", 0, 500)) == 200
        assert len(reads.load(out)) == 200

    def test_index_failure(self, tmp_path):
        bogus = tmp_path / "bogus.bam"
        bogus.write_text("not a bam file\n")
        with pytest.raises(AlignmentSourceError, match="Unable to index"):
            build_index(bogus)
