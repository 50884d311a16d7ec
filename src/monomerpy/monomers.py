from __future__ import annotations
from pathlib import Path
from collections import Counter
from typing import Dict, Iterable, List, Optional, Set, Tuple
import logging
import os
import sys
import psutil

from .bedio import LineWriter, _open_text_auto
from .cigar import get_aligned_paired_itvs, record_ops
from .errors import MissingDataError, ParseError
from .intervals import IntervalIndex, PeriodToleranceIndex
from .monomerClasses import AlignmentRecord, Interval, MonomerAnnotation, TaggedInterval
from .paf import read_paf
from .regions import merge_regions

# TRF monomer table columns:
# [chrom,] motif, st, end, period, copyNum, fracMatch, fracGap, score, entropy, pattern
# chrom is only present in the 11 column layout.
N_MOTIF_COLS = 10
N_CHROM_MOTIF_COLS = 11


def _get_memory_usage():
    process = psutil.Process(os.getpid())
    return process.memory_info().rss / 1024 / 1024 # Current memory usage in MB


def _make_logger(level: str) -> logging.Logger:
    lvl = getattr(logging, level.upper(), logging.INFO)
    logger = logging.getLogger("monomerpy.monomers")
    if not logger.handlers:
        handler = logging.StreamHandler()
        fmt = logging.Formatter("[%(asctime)s] [%(levelname)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
        handler.setFormatter(fmt)
        logger.addHandler(handler)
    logger.setLevel(lvl)
    return logger


class AnnotationIndex:
    """
    TRF monomers per srf motif, each motif held in its own IntervalIndex over
    the motif's local coordinates.

    Rows from the 11 column layout are additionally scoped to the assembly
    chromosome (PAF query) they were called on.
    """

    def __init__(self):
        self._trees: Dict[Tuple[Optional[str], str], IntervalIndex] = {}
        self._chroms: Set[str] = set()
        self._has_unscoped = False
        self.skipped_rows = 0

    def __len__(self) -> int:
        return sum(len(t) for t in self._trees.values())

    @property
    def motifs(self) -> List[str]:
        return sorted({motif for _chrom, motif in self._trees})

    def add(self, start: int, end: int, monomer: MonomerAnnotation) -> None:
        key = (monomer.chrom, monomer.motif)
        tree = self._trees.get(key)
        if tree is None:
            tree = self._trees[key] = IntervalIndex()
        tree.insert(Interval(start, end, monomer))
        if monomer.chrom is not None:
            self._chroms.add(monomer.chrom)
        else:
            self._has_unscoped = True

    def has_query(self, name: str) -> bool:
        """Whether any monomers apply to alignments of query (assembly contig) 'name'."""
        return self._has_unscoped or name in self._chroms

    def has_motif(self, motif: str, chrom: Optional[str] = None) -> bool:
        return (chrom, motif) in self._trees or (None, motif) in self._trees

    def overlapping(
        self,
        motif: str,
        start: int,
        end: int,
        chrom: Optional[str] = None,
    ) -> List[MonomerAnnotation]:
        """
        Monomers on motif overlapping [start, end). Both the chrom-specific
        (11 column) and motif-wide (10 column) rows apply.
        """
        out: List[MonomerAnnotation] = []
        keys = [(None, motif)] if chrom is None else [(chrom, motif), (None, motif)]
        for key in keys:
            tree = self._trees.get(key)
            if tree is not None:
                out.extend(tree.values(start, end))
        return out

    def all_for_motif(self, motif: str) -> List[MonomerAnnotation]:
        out: List[MonomerAnnotation] = []
        for (_chrom, m), tree in self._trees.items():
            if m == motif:
                out.extend(itv.val for itv in tree)
        return out


def read_trf_monomers(
    path: str | Path,
    logger: logging.Logger | None = None,
) -> AnnotationIndex:
    """
    Load a TRF monomer table (run on srf motifs) into an AnnotationIndex.

    Rows with an unexpected number of columns are skipped. Rows with
    non-numeric coordinates, period or copy number raise ParseError.
    """
    index = AnnotationIndex()

    with _open_text_auto(path) as fh:
        for line_num, line in enumerate(fh, 1):
            if not line.strip() or line.startswith("#"):
                continue
            cols = line.rstrip("\r\n").split("\t")
            if len(cols) == N_CHROM_MOTIF_COLS:
                chrom, motif, st, end, period, copy_num = cols[:6]
            elif len(cols) == N_MOTIF_COLS:
                chrom = None
                motif, st, end, period, copy_num = cols[:5]
            else:
                index.skipped_rows += 1
                continue
            pattern = cols[-1]

            try:
                monomer = MonomerAnnotation(
                    motif=motif,
                    pattern=pattern,
                    period=int(period),
                    copy_num=float(copy_num),
                    chrom=chrom,
                )
                start = int(st)
                stop = int(end)
            except ValueError as e:
                raise ParseError(f"{path} line {line_num}: {e}") from e

            index.add(start, stop, monomer)

    if logger:
        logger.info(f"Monomers loaded: {len(index)} monomers on {len(index.motifs)} motifs")
        if index.skipped_rows:
            logger.debug(f"Skipped {index.skipped_rows} rows with unexpected column counts")
    return index


def _labels(monomers: Iterable[MonomerAnnotation]) -> Dict[str, None]:
    return dict.fromkeys(m.pattern for m in monomers)


def is_whole_block(
    rec: AlignmentRecord,
    *,
    max_aln_len_diff: float,
    max_divergence: float,
) -> bool:
    """Alignment spans (nearly) its entire motif at low divergence."""
    len_diff = abs(rec.block_length - rec.target_length)
    if not len_diff < max_aln_len_diff * rec.target_length:
        return False
    return rec.divergence is None or rec.divergence < max_divergence


def skip_reason(rec: AlignmentRecord, annotations: AnnotationIndex) -> Optional[str]:
    """Why a record cannot contribute any regions, or None if it can."""
    if rec.cigar is None:
        return "no_cigar"
    if not annotations.has_query(rec.query_name):
        return "no_query"
    if not annotations.has_motif(rec.target_name, rec.query_name):
        return "no_motif"
    return None


def classify_record(
    rec: AlignmentRecord,
    annotations: AnnotationIndex,
    periods: PeriodToleranceIndex,
    *,
    max_aln_len_diff: float = 0.02,
    max_divergence: float = 0.05,
    min_aln_len: int | None = None,
) -> List[TaggedInterval]:
    """
    Tag query regions of one alignment with the monomers of valid period
    found on the aligned part of the motif.

    Whole-block alignments are tagged over their full query span. Otherwise
    each cigar op longer than min_aln_len (default: smallest period) on both
    query and target is tagged separately.
    """
    # A malformed cigar is fatal even if the record would be skipped
    if rec.cigar is not None:
        record_ops(rec)
    if skip_reason(rec, annotations) is not None:
        return []

    if is_whole_block(rec, max_aln_len_diff=max_aln_len_diff, max_divergence=max_divergence):
        ovl = annotations.overlapping(rec.target_name, 0, rec.target_length, rec.query_name)
        labels = _labels(m for m in ovl if periods.is_valid_period(m.period))
        # Alignment itself is about one monomer long
        if periods.is_valid_period(rec.block_length):
            labels["."] = None
        if not labels:
            return []
        return [TaggedInterval(rec.query_name, rec.query_start, rec.query_end, labels, rec.strand)]

    threshold = periods.min_period if min_aln_len is None else min_aln_len
    tagged: List[TaggedInterval] = []
    for pair in get_aligned_paired_itvs(rec, threshold):
        q_len = len(pair.query)
        ovl = annotations.overlapping(rec.target_name, pair.target.start, pair.target.stop, rec.query_name)
        labels = _labels(
            m for m in ovl
            if periods.is_valid_period(m.period) and m.period <= q_len
        )
        if not labels:
            continue
        tagged.append(TaggedInterval(rec.query_name, pair.query.start, pair.query.stop, labels, rec.strand))
    return tagged


def find_monomers(
    paf_path: str | Path,
    monomers_path: str | Path,
    out_path: str | Path | None = None,
    *,
    sizes: Iterable[int] = (170, 340, 42),
    diff: float = 0.02,
    max_aln_len_diff: float = 0.02,
    max_divergence: float = 0.05,
    min_aln_len: int | None = None,
    aln_type: str | None = "P",
    merge_dst: int | None = None,
    min_len: int = 30_000,
    log_level: str = "INFO",
) -> int:
    """
    Write BED9 regions of the assembly (PAF query) tagged with monomers of
    the requested periods. With merge_dst, tagged regions are clustered
    before writing (see regions.merge_regions).
    """
    logger = _make_logger(log_level)
    sizes = list(sizes)
    logger.info(
        f"Using config: paf={paf_path}, monomers={monomers_path}, outfile={out_path or 'stdout'}, "
        f"sizes={sizes}, diff={diff}, max_aln_len_diff={max_aln_len_diff}, "
        f"max_divergence={max_divergence}, min_aln_len={min_aln_len}, "
        f"alignment_type={aln_type or 'all'}, merge_dst={merge_dst}, min_len={min_len}"
    )
    logger.debug(f"Python version: {sys.version}")
    logger.debug(f"Starting memory: {_get_memory_usage():.1f} MB")

    periods = PeriodToleranceIndex(sizes, diff)
    logger.info(f"Using monomer periodicity range: {periods}")

    annotations = read_trf_monomers(monomers_path, logger=logger)
    if not len(annotations):
        raise MissingDataError(f"No monomers found in {monomers_path}.")
    logger.debug(f"Memory after loading monomers: {_get_memory_usage():.1f} MB")

    # Records are classified in query start order
    records = [
        rec for rec in read_paf(paf_path)
        if aln_type is None or rec.aln_type == aln_type
    ]
    records.sort(key=lambda r: r.query_start)
    logger.info(f"{len(records):,} alignment(s) to classify")

    outcomes: Counter = Counter()
    progress_every = 100000
    tagged: List[TaggedInterval] = []
    with LineWriter(out_path, logger=logger) as writer:
        for n, rec in enumerate(records, 1):
            if n % progress_every == 0:
                logger.info(f"Processed {n:,} alignments... (Memory: {_get_memory_usage():.1f} MB)")

            if rec.cigar is not None:
                record_ops(rec)
            reason = skip_reason(rec, annotations)
            if reason is not None:
                outcomes[reason] += 1
                continue
            if is_whole_block(rec, max_aln_len_diff=max_aln_len_diff, max_divergence=max_divergence):
                outcomes["whole_block"] += 1
            else:
                outcomes["decomposed"] += 1

            itvs = classify_record(
                rec,
                annotations,
                periods,
                max_aln_len_diff=max_aln_len_diff,
                max_divergence=max_divergence,
                min_aln_len=min_aln_len,
            )
            if merge_dst is not None:
                tagged.extend(itvs)
                continue
            writer.write_all(itvs)
            if writer.closed_by_reader:
                logger.debug("Output closed by reader; stopping.")
                break

        if merge_dst is not None:
            logger.info(f"Merging {len(tagged):,} tagged intervals within {merge_dst} bp")
            writer.write_all(merge_regions(tagged, periods, dst=merge_dst, min_len=min_len))

    logger.info(f"Wrote {writer.written:,} regions to {out_path or 'stdout'}")
    logger.debug(
        "Alignments by outcome: "
        + ", ".join(
            f"{k}={outcomes[k]}"
            for k in ("no_cigar", "no_query", "no_motif", "whole_block", "decomposed")
        )
        + f", skipped_rows={annotations.skipped_rows}"
    )
    logger.debug(f"Final memory usage: {_get_memory_usage():.1f} MB")
    return 0
