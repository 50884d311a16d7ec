from __future__ import annotations
from collections import deque
from pathlib import Path
from typing import Deque, Dict, Iterable, List
import logging

from .bedio import LineWriter, read_bed_intervals
from .intervals import PeriodToleranceIndex
from .monomerClasses import TaggedInterval


def _make_logger(level: str) -> logging.Logger:
    lvl = getattr(logging, level.upper(), logging.INFO)
    logger = logging.getLogger("monomerpy.regions")
    # Configure once
    if not logger.handlers:
        handler = logging.StreamHandler()
        fmt = logging.Formatter("[%(asctime)s] [%(levelname)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
        handler.setFormatter(fmt)
        logger.addHandler(handler)
    logger.setLevel(lvl)
    return logger


def _valid_labels(labels: Dict[str, None], periods: PeriodToleranceIndex) -> Dict[str, None]:
    # Monomer pattern length stands in for its period
    return {lbl: None for lbl in labels if periods.is_valid_period(len(lbl))}


def merge_regions(
    intervals: Iterable[TaggedInterval],
    periods: PeriodToleranceIndex,
    *,
    dst: int,
    min_len: int,
) -> List[TaggedInterval]:
    """
    Greedily merge tagged intervals on the same chromosome that are at most
    dst bp apart, left to right.

    A merged interval goes back to the front of the queue so it can absorb the
    next one too. Finished regions keep only labels of valid period length and
    are dropped if not longer than min_len or left without labels.

    NOTE: the final interval is always emitted (labels filtered, but no length
    or empty-label check).
    """
    queue: Deque[TaggedInterval] = deque(sorted(intervals, key=lambda i: (i.chrom, i.start)))
    regions: List[TaggedInterval] = []

    while queue:
        itv = queue.popleft()
        if not queue:
            itv.labels = _valid_labels(itv.labels, periods)
            regions.append(itv)
            break

        nxt = queue.popleft()
        gap = max(nxt.start - itv.end, 0)
        if gap <= dst and itv.chrom == nxt.chrom:
            labels = dict(itv.labels)
            labels.update(nxt.labels)
            strand = itv.strand if itv.strand == nxt.strand else "."
            queue.appendleft(TaggedInterval(itv.chrom, itv.start, nxt.end, labels, strand))
            continue

        itv.labels = _valid_labels(itv.labels, periods)
        if len(itv) > min_len and itv.labels:
            regions.append(itv)
        queue.appendleft(nxt)

    return regions


def find_regions(
    in_path: str | Path,
    out_path: str | Path | None = None,
    *,
    sizes: Iterable[int] = (170, 340, 42),
    diff: float = 0.02,
    dst: int = 100_000,
    min_len: int = 30_000,
    log_level: str = "INFO",
) -> int:
    """Merge BED9 monomer regions from 'monomers' into larger regions."""
    logger = _make_logger(log_level)
    sizes = list(sizes)
    logger.info(
        f"Using config: infile={in_path}, outfile={out_path or 'stdout'}, sizes={sizes}, "
        f"diff={diff}, dst={dst}, min_len={min_len}"
    )
    periods = PeriodToleranceIndex(sizes, diff)
    logger.info(f"Using monomer periodicity range: {periods}")

    intervals = read_bed_intervals(in_path)
    logger.info(f"Read {len(intervals):,} intervals from {in_path}")

    regions = merge_regions(intervals, periods, dst=dst, min_len=min_len)
    with LineWriter(out_path, logger=logger) as writer:
        writer.write_all(regions)

    logger.info(f"Wrote {writer.written:,} regions to {out_path or 'stdout'}")
    return 0
