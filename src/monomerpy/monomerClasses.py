from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


# Extended cigar operations (minimap2 --eqx). 'M' is intentionally absent.
class OpKind(Enum):
    MATCH = "="
    MISMATCH = "X"
    INSERTION = "I"
    DELETION = "D"
    SOFTCLIP = "S"
    HARDCLIP = "H"
    PAD = "P"
    SKIP = "N"


@dataclass(frozen=True)
class Operation:
    kind: OpKind
    length: int

    def __str__(self) -> str:
        return f"{self.length}{self.kind.value}"


@dataclass
class AlignmentRecord:
    """One PAF line. Coordinates are 0-based, half-open."""
    query_name: str
    query_length: int
    query_start: int
    query_end: int
    strand: str
    target_name: str
    target_length: int
    target_start: int
    target_end: int
    n_matches: int
    block_length: int
    mapq: int
    cigar: Optional[str] = None
    aln_type: Optional[str] = None
    divergence: Optional[float] = None
    # Decoded cigar, filled in on first use
    ops: Optional[List[Operation]] = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class Interval:
    start: int
    stop: int
    val: Any = None

    def __len__(self) -> int:
        return self.stop - self.start


# (query interval, target interval) from one cigar operation
@dataclass(frozen=True)
class IntervalPair:
    query: Interval
    target: Interval


@dataclass(frozen=True)
class MonomerAnnotation:
    """TRF monomer reported on a srf motif."""
    motif: str
    pattern: str
    period: int
    copy_num: float
    chrom: Optional[str] = None


@dataclass
class TaggedInterval:
    chrom: str
    start: int
    end: int
    # Ordered set of monomer labels
    labels: Dict[str, None] = field(default_factory=dict)
    strand: str = "."

    def __len__(self) -> int:
        return self.end - self.start
