from __future__ import annotations
from pathlib import Path
import sys
from typing import Dict, Iterator, List, Optional

from .bedio import open_input
from .errors import ParseError
from .monomerClasses import AlignmentRecord

# Columns 1-12 of PAF; optional SAM-like TAG:TYPE:VALUE fields follow.
PAF_COLS = (
    "query_name",
    "query_length",
    "query_start",
    "query_end",
    "strand",
    "target_name",
    "target_length",
    "target_start",
    "target_end",
    "n_matches",
    "block_length",
    "mapq",
)
_INT_COLS = {1, 2, 3, 6, 7, 8, 9, 10, 11}


def _parse_tags(fields: List[str]) -> Dict[str, str]:
    tags: Dict[str, str] = {}
    for f in fields:
        # Keep the full 'cg:Z:...' string for the cigar so it can be parsed as-is
        if f.count(":") < 2:
            continue
        tag, _typ, value = f.split(":", 2)
        tags[tag] = f if tag == "cg" else value
    return tags


def parse_paf_line(line: str, line_num: int = 0) -> AlignmentRecord:
    cols = line.split("\t")
    if len(cols) < len(PAF_COLS):
        raise ParseError(f"PAF line {line_num}: expected at least 12 columns, got {len(cols)}.")

    values: List = []
    for i, v in enumerate(cols[:len(PAF_COLS)]):
        if i in _INT_COLS:
            try:
                values.append(int(v))
            except ValueError as e:
                raise ParseError(f"PAF line {line_num}: invalid {PAF_COLS[i]} ({v!r}).") from e
        else:
            values.append(v)
    rec = AlignmentRecord(*values)

    tags = _parse_tags(cols[len(PAF_COLS):])
    rec.cigar = tags.get("cg")
    rec.aln_type = tags.get("tp")
    div: Optional[str] = tags.get("dv", tags.get("de"))
    if div is not None:
        try:
            rec.divergence = float(div)
        except ValueError as e:
            raise ParseError(f"PAF line {line_num}: invalid divergence ({div!r}).") from e
    return rec


def read_paf(path: str | Path) -> Iterator[AlignmentRecord]:
    """Stream alignment records from a (optionally gzipped) PAF file or '-' for stdin."""
    fh = open_input(path)
    try:
        for line_num, raw in enumerate(fh, 1):
            line = raw.rstrip("\r\n")
            if not line:
                continue
            yield parse_paf_line(line, line_num)
    finally:
        if fh is not sys.stdin:
            fh.close()
