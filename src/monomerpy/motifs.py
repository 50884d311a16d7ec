from __future__ import annotations
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Tuple
import logging
import sys

from .bedio import LineWriter, open_input
from .errors import MissingDataError
from .intervals import PeriodToleranceIndex
from .monomers import AnnotationIndex, read_trf_monomers


def _make_logger(level: str) -> logging.Logger:
    lvl = getattr(logging, level.upper(), logging.INFO)
    logger = logging.getLogger("monomerpy.motifs")
    if not logger.handlers:
        handler = logging.StreamHandler()
        fmt = logging.Formatter("[%(asctime)s] [%(levelname)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
        handler.setFormatter(fmt)
        logger.addHandler(handler)
    logger.setLevel(lvl)
    return logger


def _record_name(header: str) -> str:
    # '>motif#circ1-170 extra words' -> 'motif#circ1-170'
    parts = header[1:].split(None, 1)
    return parts[0] if parts else ""


def read_fasta(path: str | Path) -> Iterator[Tuple[str, List[str]]]:
    """
    Yield (name, lines) per FASTA record, where lines are the header followed
    by the sequence lines exactly as they appear in the file.
    """
    fh = open_input(path)
    name: Optional[str] = None
    lines: List[str] = []
    try:
        for raw in fh:
            line = raw.rstrip("\r\n")
            if line.startswith(">"):
                if name is not None:
                    yield name, lines
                name = _record_name(line)
                lines = [line]
            elif name is not None:
                lines.append(line)
        if name is not None:
            yield name, lines
    finally:
        if fh is not sys.stdin:
            fh.close()


def motif_has_valid_monomer(
    motif: str,
    annotations: AnnotationIndex,
    periods: PeriodToleranceIndex,
) -> bool:
    return any(periods.is_valid_period(m.period) for m in annotations.all_for_motif(motif))


def filter_motifs(
    fasta_path: str | Path,
    monomers_path: str | Path,
    out_path: str | Path | None = None,
    *,
    sizes: Iterable[int] = (170, 340, 42),
    diff: float = 0.02,
    log_level: str = "INFO",
) -> int:
    """
    Keep only srf motifs that carry at least one TRF monomer of a requested
    period. Records are written in input order, unchanged.
    """
    logger = _make_logger(log_level)
    sizes = list(sizes)
    logger.info(
        f"Using config: fasta={fasta_path}, monomers={monomers_path}, "
        f"outfile={out_path or 'stdout'}, sizes={sizes}, diff={diff}"
    )
    periods = PeriodToleranceIndex(sizes, diff)
    logger.info(f"Using monomer periodicity range: {periods}")

    annotations = read_trf_monomers(monomers_path, logger=logger)
    if not len(annotations):
        raise MissingDataError(f"No monomers found in {monomers_path}.")

    n_total = 0
    n_kept = 0
    with LineWriter(out_path, logger=logger) as writer:
        for name, lines in read_fasta(fasta_path):
            n_total += 1
            if not motif_has_valid_monomer(name, annotations, periods):
                logger.debug(f"Dropping motif {name}: no monomer of a requested period")
                continue
            n_kept += 1
            for line in lines:
                writer.write_line(line)
            if writer.closed_by_reader:
                break

    logger.info(f"Kept {n_kept}/{n_total} motifs")
    return 0
