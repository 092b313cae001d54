"""End-to-end tests of bedcov and calibrate."""

from __future__ import annotations

import csv
from collections import Counter
from pathlib import Path

import pysam
import pytest
from click.testing import CliRunner

from sequintools.cli import cli
from sequintools.cli.exit_codes import EXIT_ERROR

pytestmark = pytest.mark.integration


def _read_csv(path: Path) -> list[dict[str, str]]:
    with open(path, newline="", encoding="utf-8") as handle:
        return list(csv.DictReader(handle))


def _pairs_complete(records) -> bool:
    counts = Counter(r.query_name for r in records)
    return all(count == 2 for count in counts.values())


@pytest.fixture
def beds(make_bed):
    return {
        "sequins": make_bed([("chrQ", 0, 500, "seq1")], name="sequins.bed"),
        "sample": make_bed([("chr1", 0, 500, "seq1")], name="sample.bed"),
    }


def test_bedcov_report_file(sequin_bam, make_bed, tmp_path) -> None:
    bed = make_bed(
        [
            ("chrQ", 0, 500, "seq1"),
            ("chr1", 0, 500, "sample1"),
            ("chr1", 4000, 4500, "empty"),
        ]
    )
    out = tmp_path / "coverage.csv"
    result = CliRunner().invoke(
        cli, ["bedcov", "-t", "10,20", "-f", "50", "-o", str(out), str(bed), str(sequin_bam)]
    )
    assert result.exit_code == 0, result.output
    assert out.read_text().splitlines() == [
        "name,chrom,beg,end,min,max,mean,std,cv,pct_gt_10,pct_gt_20",
        "seq1,chrQ,0,500,40,40,40.00,0.00,0.00,1.00,1.00",
        "sample1,chr1,0,500,10,10,10.00,0.00,0.00,1.00,0.00",
        "empty,chr1,4000,4500,0,0,0.00,0.00,0.00,0.00,0.00",
    ]


def test_bedcov_min_mapq(make_bam, make_bed, reads, tmp_path) -> None:
    records = reads.pair("hi", "chrQ", 0, 0, mapq=60) + reads.pair("lo", "chrQ", 0, 0, mapq=5)
    bam = make_bam(records)
    bed = make_bed([("chrQ", 0, 100, "seq1")])
    out = tmp_path / "coverage.csv"
    result = CliRunner().invoke(cli, ["bedcov", "-Q", "10", "-o", str(out), str(bed), str(bam)])
    assert result.exit_code == 0, result.output
    assert out.read_text().splitlines()[1] == "seq1,chrQ,0,100,2,2,2.00,0.00,0.00"


def test_calibrate_fixed_coverage(sequin_bam, beds, tmp_path) -> None:
    out = tmp_path / "calibrated.bam"
    summary = tmp_path / "summary.csv"
    result = CliRunner().invoke(
        cli,
        [
            "calibrate",
            "-b", str(beds["sequins"]),
            "--flank", "0",
            "-f", "20",
            "--summary-report", str(summary),
            "--write-index",
            "-o", str(out),
            str(sequin_bam),
        ],
    )
    assert result.exit_code == 0, result.output
    assert Path(str(out) + ".bai").exists()

    records = list(pysam.AlignmentFile(str(out), "rb").fetch(until_eof=True))
    assert _pairs_complete(records)
    on_chrq = [r for r in records if r.reference_name == "chrQ"]
    assert 50 <= len(on_chrq) <= 150

    rows = _read_csv(summary)
    assert len(rows) == 1
    row = rows[0]
    assert (row["name"], row["chrom"], row["start"], row["end"]) == ("seq1", "chrQ", "0", "500")
    assert row["uncalibrated_coverage"] == "40.00"
    assert row["target_coverage"] == "20.00"
    assert 10.0 <= float(row["calibrated_coverage"]) <= 30.0


def test_calibrate_sample_mean(sequin_bam, beds, tmp_path) -> None:
    out = tmp_path / "calibrated.bam"
    summary = tmp_path / "summary.csv"
    result = CliRunner().invoke(
        cli,
        [
            "calibrate",
            "-b", str(beds["sequins"]),
            "-S", str(beds["sample"]),
            "--summary-report", str(summary),
            "-o", str(out),
            str(sequin_bam),
        ],
    )
    assert result.exit_code == 0, result.output
    row = _read_csv(summary)[0]
    assert row["target_coverage"] == "10.00"
    assert float(row["calibrated_coverage"]) < 40.0


def test_calibrate_experimental(sequin_bam, beds, tmp_path) -> None:
    out = tmp_path / "calibrated.bam"
    result = CliRunner().invoke(
        cli,
        [
            "calibrate",
            "-b", str(beds["sequins"]),
            "-S", str(beds["sample"]),
            "--experimental",
            "--flank", "0",
            "-o", str(out),
            str(sequin_bam),
        ],
    )
    assert result.exit_code == 0, result.output
    records = list(pysam.AlignmentFile(str(out), "rb").fetch(until_eof=True))
    on_chrq = [r for r in records if r.reference_name == "chrQ"]
    assert _pairs_complete(on_chrq)
    # Each sample window holds 10 read starts, so at most 5 per target window
    assert 0 < len(on_chrq) <= 2 * 5 * 5


def test_calibrate_is_reproducible(sequin_bam, beds, tmp_path) -> None:
    names = []
    for label in ("a", "b"):
        out = tmp_path / f"{label}.bam"
        result = CliRunner().invoke(
            cli,
            ["calibrate", "-b", str(beds["sequins"]), "--flank", "0", "-f", "20", "-s", "11",
             "-o", str(out), str(sequin_bam)],
        )
        assert result.exit_code == 0, result.output
        names.append([r.query_name for r in pysam.AlignmentFile(str(out), "rb").fetch(until_eof=True)])
    assert names[0] == names[1]


def test_calibrate_upsampling_fails_without_output(sequin_bam, beds, tmp_path) -> None:
    out = tmp_path / "calibrated.bam"
    result = CliRunner().invoke(
        cli,
        ["calibrate", "-b", str(beds["sequins"]), "--flank", "0", "-f", "80", "-o", str(out),
         str(sequin_bam)],
    )
    assert result.exit_code == EXIT_ERROR
    assert not out.exists()


def test_calibrate_default_flank_consumes_region(sequin_bam, beds, tmp_path) -> None:
    """The 500 bp default flank leaves nothing of a 500 bp region."""
    result = CliRunner().invoke(
        cli,
        ["calibrate", "-b", str(beds["sequins"]), "-f", "20", "-o", str(tmp_path / "out.bam"),
         str(sequin_bam)],
    )
    assert result.exit_code == EXIT_ERROR
