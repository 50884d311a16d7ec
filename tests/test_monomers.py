import pytest

from monomerpy.errors import MissingDataError, ParseError
from monomerpy.intervals import PeriodToleranceIndex
from monomerpy.monomerClasses import AlignmentRecord, TaggedInterval
from monomerpy.monomers import classify_record, find_monomers, read_trf_monomers

PATTERN_170 = "ACGT" * 42 + "AC"
PATTERN_42 = "TTAGGG" * 7


def trf_row(motif, st, end, period, pattern, chrom=None):
    cols = [motif, str(st), str(end), str(period), "5.0", "0.9", "0.01", "900", "1.1", pattern]
    if chrom is not None:
        cols.insert(0, chrom)
    return "\t".join(cols) + "\n"


def write_table(path, rows):
    path.write_text("".join(rows))
    return path


def make_record(**kw):
    fields = dict(
        query_name="query",
        query_length=10_000,
        query_start=50,
        query_end=250,
        strand="+",
        target_name="motifA",
        target_length=1_000,
        target_start=100,
        target_end=300,
        n_matches=200,
        block_length=200,
        mapq=60,
        cigar="cg:Z:200=",
        aln_type="P",
        divergence=None,
    )
    fields.update(kw)
    return AlignmentRecord(**fields)


@pytest.fixture
def annotations(tmp_path):
    return read_trf_monomers(write_table(tmp_path / "monomers.tsv", [
        trf_row("motifA", 100, 270, 170, PATTERN_170),
    ]))


def test_read_trf_monomers(tmp_path):
    table = write_table(tmp_path / "monomers.tsv", [
        "# comment\n",
        trf_row("motifA", 100, 270, 170, PATTERN_170),
        trf_row("motifA", 300, 342, 42, PATTERN_42),
        trf_row("motifB", 0, 42, 42, PATTERN_42),
        "motifC\t0\t10\n",  # wrong column count
        "\n",
    ])
    index = read_trf_monomers(table)

    assert len(index) == 3
    assert index.motifs == ["motifA", "motifB"]
    assert index.skipped_rows == 1

    hits = index.overlapping("motifA", 250, 310)
    assert sorted(m.period for m in hits) == [42, 170]
    assert hits[0].copy_num == 5.0
    assert index.overlapping("motifA", 270, 300) == []
    assert index.overlapping("motifC", 0, 10) == []
    assert index.overlapping("", 0, 10) == []


def test_read_trf_monomers_bad_number(tmp_path):
    table = write_table(tmp_path / "monomers.tsv", [
        trf_row("motifA", 100, 270, "x170", PATTERN_170),
    ])
    with pytest.raises(ParseError):
        read_trf_monomers(table)


def test_read_trf_monomers_chrom_scoped(tmp_path):
    table = write_table(tmp_path / "monomers.tsv", [
        trf_row("motifA", 100, 270, 170, PATTERN_170, chrom="chr1"),
    ])
    index = read_trf_monomers(table)

    assert index.has_query("chr1")
    assert not index.has_query("chr2")
    assert len(index.overlapping("motifA", 0, 1000, chrom="chr1")) == 1
    assert index.overlapping("motifA", 0, 1000, chrom="chr2") == []


def test_classify_decomposed(annotations):
    periods = PeriodToleranceIndex([170], 0.02)
    tagged = classify_record(make_record(), annotations, periods)
    assert tagged == [TaggedInterval("query", 50, 250, {PATTERN_170: None}, "+")]


def test_classify_period_out_of_range(annotations):
    periods = PeriodToleranceIndex([200], 0.02)
    assert classify_record(make_record(), annotations, periods) == []


def test_classify_explicit_min_aln_len(annotations):
    # Threshold defaults to the smallest period; 200= is long enough for both
    periods = PeriodToleranceIndex([170], 0.02)
    rec = make_record()
    assert classify_record(rec, annotations, periods, min_aln_len=10)
    assert classify_record(rec, annotations, periods, min_aln_len=200) == []


def test_classify_monomer_longer_than_query_span(tmp_path):
    index = read_trf_monomers(write_table(tmp_path / "monomers.tsv", [
        trf_row("motifA", 100, 270, 170, PATTERN_170),
    ]))
    periods = PeriodToleranceIndex([170, 42], 0.02)
    rec = make_record(cigar="100=", query_end=150, target_end=200, block_length=100)
    assert classify_record(rec, index, periods) == []


def test_classify_skips_missing(annotations):
    periods = PeriodToleranceIndex([170], 0.02)
    assert classify_record(make_record(cigar=None), annotations, periods) == []
    assert classify_record(make_record(target_name="motifZ"), annotations, periods) == []


def test_classify_skips_unknown_query(tmp_path):
    index = read_trf_monomers(write_table(tmp_path / "monomers.tsv", [
        trf_row("motifA", 100, 270, 170, PATTERN_170, chrom="chr1"),
    ]))
    periods = PeriodToleranceIndex([170], 0.02)
    assert classify_record(make_record(query_name="chr2"), index, periods) == []
    assert classify_record(make_record(query_name="chr1"), index, periods)


def test_classify_whole_block(annotations):
    periods = PeriodToleranceIndex([170, 200], 0.02)
    rec = make_record(target_length=200, target_start=0, target_end=200, divergence=0.01)
    tagged = classify_record(rec, annotations, periods)

    assert len(tagged) == 1
    assert (tagged[0].chrom, tagged[0].start, tagged[0].end) == ("query", 50, 250)
    # Block length 200 is itself a valid period
    assert list(tagged[0].labels) == [PATTERN_170, "."]


def test_classify_whole_block_divergence_too_high(annotations):
    periods = PeriodToleranceIndex([170, 200], 0.02)
    rec = make_record(target_length=200, target_start=0, target_end=200, divergence=0.2)
    tagged = classify_record(rec, annotations, periods)

    # Falls back to per cigar op tagging: no sentinel label
    assert [list(t.labels) for t in tagged] == [[PATTERN_170]]


def test_classify_whole_block_sentinel_only(tmp_path):
    index = read_trf_monomers(write_table(tmp_path / "monomers.tsv", [
        trf_row("motifA", 0, 42, 42, PATTERN_42),
    ]))
    periods = PeriodToleranceIndex([200], 0.02)
    rec = make_record(target_length=200, target_start=0, target_end=200)
    tagged = classify_record(rec, index, periods)
    assert [list(t.labels) for t in tagged] == [["."]]


def write_paf(path, lines):
    path.write_text("".join("\t".join(str(c) for c in cols) + "\n" for cols in lines))
    return path


def paf_cols(tp="P", cg="200="):
    return ["query", 1000, 50, 250, "+", "motifA", 1000, 100, 300, 200, 200, 60, f"tp:A:{tp}", f"cg:Z:{cg}"]


def test_find_monomers_end_to_end(tmp_path):
    table = write_table(tmp_path / "monomers.tsv", [trf_row("motifA", 100, 270, 170, PATTERN_170)])
    paf = write_paf(tmp_path / "aln.paf", [paf_cols()])
    out = tmp_path / "out" / "monomers.bed"

    rc = find_monomers(paf, table, out, sizes=[170], diff=0.02, min_aln_len=10)

    assert rc == 0
    assert out.read_text().splitlines() == [
        f"query\t50\t250\t{PATTERN_170}\t0\t+\t50\t250\t0,0,0"
    ]


def test_find_monomers_no_matching_period(tmp_path):
    table = write_table(tmp_path / "monomers.tsv", [trf_row("motifA", 100, 270, 170, PATTERN_170)])
    paf = write_paf(tmp_path / "aln.paf", [paf_cols()])
    out = tmp_path / "monomers.bed"

    assert find_monomers(paf, table, out, sizes=[200], min_aln_len=10) == 0
    assert out.read_text() == ""


def test_find_monomers_alignment_type_filter(tmp_path):
    table = write_table(tmp_path / "monomers.tsv", [trf_row("motifA", 100, 270, 170, PATTERN_170)])
    paf = write_paf(tmp_path / "aln.paf", [paf_cols(tp="S")])
    out = tmp_path / "monomers.bed"

    find_monomers(paf, table, out, sizes=[170])
    assert out.read_text() == ""

    find_monomers(paf, table, out, sizes=[170], aln_type=None)
    assert len(out.read_text().splitlines()) == 1


def test_find_monomers_merged(tmp_path):
    table = write_table(tmp_path / "monomers.tsv", [trf_row("motifA", 0, 1000, 170, PATTERN_170)])
    second = ["query", 1000, 300, 500, "+", "motifA", 1000, 100, 300, 200, 200, 60, "tp:A:P", "cg:Z:200="]
    paf = write_paf(tmp_path / "aln.paf", [second, paf_cols()])
    out = tmp_path / "regions.bed"

    find_monomers(paf, table, out, sizes=[170], merge_dst=100, min_len=10)
    assert out.read_text().splitlines() == [
        f"query\t50\t500\t{PATTERN_170}\t0\t+\t50\t500\t0,0,0"
    ]


def test_find_monomers_empty_table(tmp_path):
    table = write_table(tmp_path / "monomers.tsv", ["only\tthree\tcols\n"])
    paf = write_paf(tmp_path / "aln.paf", [paf_cols()])
    with pytest.raises(MissingDataError):
        find_monomers(paf, table, tmp_path / "out.bed", sizes=[170])


def test_find_monomers_bad_cigar(tmp_path):
    table = write_table(tmp_path / "monomers.tsv", [trf_row("motifA", 100, 270, 170, PATTERN_170)])
    paf = write_paf(tmp_path / "aln.paf", [paf_cols(cg="200M")])
    with pytest.raises(ParseError):
        find_monomers(paf, table, tmp_path / "out.bed", sizes=[170])


def test_read_trf_monomers_mixed_layouts(tmp_path):
    # Motif-wide rows still apply to a chrom that has its own rows
    table = write_table(tmp_path / "monomers.tsv", [
        trf_row("motifA", 100, 270, 170, PATTERN_170, chrom="chr1"),
        trf_row("motifA", 300, 342, 42, PATTERN_42),
    ])
    index = read_trf_monomers(table)

    assert index.has_query("chr1")
    assert index.has_query("chr2")
    assert sorted(m.period for m in index.overlapping("motifA", 0, 1000, chrom="chr1")) == [42, 170]
    assert [m.period for m in index.overlapping("motifA", 0, 1000, chrom="chr2")] == [42]
    assert [m.period for m in index.overlapping("motifA", 0, 1000)] == [42]


def test_classify_mixed_layouts(tmp_path):
    index = read_trf_monomers(write_table(tmp_path / "monomers.tsv", [
        trf_row("motifA", 100, 270, 170, PATTERN_170, chrom="chr1"),
        trf_row("motifA", 120, 162, 42, PATTERN_42),
    ]))
    periods = PeriodToleranceIndex([170, 42], 0.02)
    tagged = classify_record(make_record(query_name="chr1"), index, periods)
    assert [list(t.labels) for t in tagged] == [[PATTERN_170, PATTERN_42]]


def test_classify_whole_block_rejects_bad_cigar(annotations):
    periods = PeriodToleranceIndex([170], 0.02)
    rec = make_record(target_length=200, target_start=0, target_end=200, cigar="cg:Z:200M")
    with pytest.raises(ParseError):
        classify_record(rec, annotations, periods)


def test_classify_skipped_record_rejects_bad_cigar(annotations):
    periods = PeriodToleranceIndex([170], 0.02)
    with pytest.raises(ParseError):
        classify_record(make_record(target_name="motifZ", cigar="cg:Z:20Q"), annotations, periods)


def test_find_monomers_bad_cigar_on_unindexed_motif(tmp_path):
    table = write_table(tmp_path / "monomers.tsv", [trf_row("motifA", 100, 270, 170, PATTERN_170)])
    cols = paf_cols(cg="20Q")
    cols[5] = "motifZ"
    paf = write_paf(tmp_path / "aln.paf", [cols])
    with pytest.raises(ParseError):
        find_monomers(paf, table, tmp_path / "out.bed", sizes=[170])
