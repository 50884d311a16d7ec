from __future__ import annotations

from itertools import groupby
from typing import Dict, List, Tuple

from .errors import ParseError
from .monomerClasses import AlignmentRecord, Interval, IntervalPair, OpKind, Operation

CIGAR_TAG_PREFIX = "cg:Z:"
# Op lengths are unsigned 32-bit
MAX_OP_LENGTH = 2**32 - 1

_DIGIT = "digit"
_OP_BY_CHAR = {kind.value: kind for kind in OpKind}

# (query advance, target advance) per unit of operation length
_ADVANCE: Dict[OpKind, Tuple[int, int]] = {
    OpKind.MATCH: (1, 1),
    OpKind.MISMATCH: (1, 1),
    OpKind.INSERTION: (1, 0),
    OpKind.SOFTCLIP: (1, 0),
    OpKind.PAD: (1, 0),
    OpKind.DELETION: (0, 1),
    OpKind.SKIP: (0, 1),
}


def _char_class(ch: str) -> str:
    if "0" <= ch <= "9":
        return _DIGIT
    if ch == "M":
        raise ParseError("Ambiguous cigar op 'M'. Use extended cigar (e.g. minimap2 --eqx).")
    if ch not in _OP_BY_CHAR:
        raise ParseError(f"Invalid cigar token ({ch!r}).")
    return ch


def parse_cigar(cg: str) -> List[Operation]:
    """
    Decode an extended cigar string, optionally prefixed with 'cg:Z:'.

    The string is split into runs of digits and runs of operation letters,
    which must strictly alternate as (length, op) pairs.

    Raises
    ------
    ParseError
        On unknown characters, the ambiguous 'M' op, runs that do not pair up
        or lengths that overflow 32 bits.
    """
    if cg.startswith(CIGAR_TAG_PREFIX):
        cg = cg[len(CIGAR_TAG_PREFIX):]

    groups = [(cls, "".join(chars)) for cls, chars in groupby(cg, key=_char_class)]
    if len(groups) % 2 != 0:
        raise ParseError(f"Unpaired cigar token ({groups[-1][1]!r}) in {cg!r}.")

    ops: List[Operation] = []
    for (tk, num_s), (ntk, op_s) in zip(groups[::2], groups[1::2]):
        if tk != _DIGIT or ntk == _DIGIT or len(op_s) != 1:
            raise ParseError(f"Invalid cigar op ({num_s!r}, {op_s!r}) in {cg!r}.")
        num = int(num_s)
        if num > MAX_OP_LENGTH:
            raise ParseError(f"Invalid cigar length ({num_s!r}).")
        ops.append(Operation(_OP_BY_CHAR[op_s], num))
    return ops


def record_ops(rec: AlignmentRecord) -> List[Operation]:
    """Decoded cigar of a record, cached on the record."""
    if rec.ops is None:
        if rec.cigar is None:
            raise ParseError(f"Record {rec.query_name}:{rec.query_start}-{rec.query_end} has no cigar.")
        rec.ops = parse_cigar(rec.cigar)
    return rec.ops


def get_aligned_paired_itvs(rec: AlignmentRecord, min_length: int) -> List[IntervalPair]:
    """
    Get intervals from query that align to target where both the query and
    target spans are strictly longer than min_length.
    """
    qpos = rec.query_start
    tpos = rec.target_start
    paired_itvs: List[IntervalPair] = []
    for op in record_ops(rec):
        if op.kind is OpKind.HARDCLIP:
            continue
        q_unit, t_unit = _ADVANCE[op.kind]
        q_adj = q_unit * op.length
        t_adj = t_unit * op.length

        if q_adj > min_length and t_adj > min_length:
            paired_itvs.append(
                IntervalPair(
                    query=Interval(qpos, qpos + q_adj),
                    target=Interval(tpos, tpos + t_adj),
                )
            )
        qpos += q_adj
        tpos += t_adj

    return paired_itvs
