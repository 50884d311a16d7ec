import pytest
from monomerpy import cli

PATTERN = "ACGT" * 42 + "AC"


def test_parser_defaults():
    args = cli.build_parser().parse_args(["regions"])
    assert args.infile == "-"
    assert args.sizes == [170, 340, 42]
    assert args.diff == 0.02
    assert args.dst == 100_000
    assert args.min_len == 30_000


def test_parser_alignment_type_exclusive():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(
            ["monomers", "-p", "a.paf", "-m", "m.tsv", "--alignment-type", "S", "--all-alignments"]
        )


def test_cli_monomers_then_regions(tmp_path):
    table = tmp_path / "monomers.tsv"
    table.write_text(f"motifA\t100\t270\t170\t5.0\t0.9\t0.01\t900\t1.1\t{PATTERN}\n")
    paf = tmp_path / "aln.paf"
    paf.write_text(
        "query\t5000\t50\t250\t+\tmotifA\t1000\t100\t300\t200\t200\t60\ttp:A:P\tcg:Z:200=\n"
        "query\t5000\t280\t480\t+\tmotifA\t1000\t100\t300\t200\t200\t60\ttp:A:P\tcg:Z:200=\n"
    )
    interim = tmp_path / "interim.bed"
    final = tmp_path / "final.bed"

    # Call main() directly, so that the argparse will parse this list
    rc = cli.main(["monomers", "-p", str(paf), "-m", str(table), "-o", str(interim), "-s", "170"])
    assert rc == 0
    assert len(interim.read_text().splitlines()) == 2

    rc = cli.main([
        "regions", "-i", str(interim), "-o", str(final),
        "-s", "170", "--dst", "100", "--min-len", "300",
    ])
    assert rc == 0
    assert final.read_text().splitlines() == [
        f"query\t50\t480\t{PATTERN}\t0\t+\t50\t480\t0,0,0"
    ]


def test_cli_reports_parse_error(tmp_path, capsys):
    table = tmp_path / "monomers.tsv"
    table.write_text(f"motifA\t100\t270\t170\t5.0\t0.9\t0.01\t900\t1.1\t{PATTERN}\n")
    paf = tmp_path / "aln.paf"
    paf.write_text("query\t5000\t50\t250\t+\tmotifA\t1000\t100\t300\t200\t200\t60\ttp:A:P\tcg:Z:200M\n")

    rc = cli.main(["monomers", "-p", str(paf), "-m", str(table), "-o", str(tmp_path / "o.bed")])
    assert rc == 1
    assert "[ERROR]" in capsys.readouterr().err


def test_cli_missing_input(tmp_path, capsys):
    rc = cli.main(["regions", "-i", str(tmp_path / "missing.bed")])
    assert rc == 1
    assert "[ERROR]" in capsys.readouterr().err
