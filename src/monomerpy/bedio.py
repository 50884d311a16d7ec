from __future__ import annotations
from pathlib import Path
import gzip
import logging
import os
import sys
from typing import Iterable, List, TextIO

from .errors import ParseError
from .monomerClasses import TaggedInterval


def _open_text_auto(path: str | Path, mode: str = "rt") -> TextIO:
    p = Path(path)
    if p.suffix.lower() == ".gz":
        return gzip.open(p, mode, encoding="utf-8", errors="replace")
    return open(p, mode, encoding="utf-8", errors="replace")


def open_input(path: str | Path) -> TextIO:
    """Open a plain or gzipped text file; '-' reads stdin."""
    if str(path) == "-":
        return sys.stdin
    return _open_text_auto(path, "rt")


def format_bed9(itv: TaggedInterval) -> str:
    labels = ",".join(itv.labels)
    return (
        f"{itv.chrom}\t{itv.start}\t{itv.end}\t{labels}\t0\t"
        f"{itv.strand}\t{itv.start}\t{itv.end}\t0,0,0"
    )


def read_bed_intervals(path: str | Path) -> List[TaggedInterval]:
    """
    Read BED9 lines produced by 'monomers' back into tagged intervals.
    Column 4 holds comma-delimited monomer labels.
    """
    intervals: List[TaggedInterval] = []
    fh = open_input(path)
    try:
        for line_num, raw in enumerate(fh, 1):
            if not raw.strip() or raw.startswith(("#", "track", "browser")):
                continue
            cols = raw.rstrip("\n").split("\t")
            if len(cols) < 4:
                raise ParseError(f"{path} line {line_num}: expected at least 4 columns, got {len(cols)}.")
            chrom, start_s, end_s, labels_s = cols[:4]
            try:
                start = int(start_s)
                end = int(end_s)
            except ValueError as e:
                raise ParseError(f"{path} line {line_num}: invalid coordinates ({start_s!r}, {end_s!r}).") from e
            strand = cols[5] if len(cols) > 5 else "."
            labels = dict.fromkeys(lbl for lbl in labels_s.split(",") if lbl)
            intervals.append(TaggedInterval(chrom, start, end, labels, strand))
    finally:
        if fh is not sys.stdin:
            fh.close()
    return intervals


class LineWriter:
    """
    Line writer that stops quietly when the reader goes away (e.g. '| head').
    Other write errors are logged and the run carries on.
    """

    def __init__(self, out_path: str | Path | None = None, logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger("monomerpy")
        self.out_path = out_path
        if out_path is None or str(out_path) == "-":
            self._fh: TextIO = sys.stdout
        else:
            outp = Path(out_path)
            outp.parent.mkdir(parents=True, exist_ok=True)
            self._fh = open(outp, "wt", encoding="utf-8")
        self.closed_by_reader = False
        self.written = 0

    def __enter__(self) -> "LineWriter":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _on_broken_pipe(self) -> None:
        self.closed_by_reader = True
        # Python flushes stdout at exit; point it at devnull so that doesn't raise again
        if self._fh is sys.stdout:
            devnull = os.open(os.devnull, os.O_WRONLY)
            os.dup2(devnull, sys.stdout.fileno())

    def write_line(self, line: str) -> bool:
        if self.closed_by_reader:
            return False
        try:
            self._fh.write(line + "\n")
        except BrokenPipeError:
            self._on_broken_pipe()
            return False
        except OSError as e:
            self.logger.error(f"Write failed ({self.out_path or 'stdout'}): {e}")
            return False
        self.written += 1
        return True

    def write(self, itv: TaggedInterval) -> bool:
        return self.write_line(format_bed9(itv))

    def write_all(self, intervals: Iterable[TaggedInterval]) -> int:
        n = 0
        for itv in intervals:
            if self.closed_by_reader:
                break
            if self.write(itv):
                n += 1
        return n

    def close(self) -> None:
        try:
            self._fh.flush()
        except BrokenPipeError:
            self._on_broken_pipe()
        except OSError as e:
            self.logger.error(f"Flush failed ({self.out_path or 'stdout'}): {e}")
        if self._fh is not sys.stdout:
            self._fh.close()
