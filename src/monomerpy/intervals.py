from __future__ import annotations

from bisect import bisect_left
from typing import Any, Iterable, List, Optional

from .errors import MissingDataError
from .monomerClasses import Interval


class IntervalIndex:
    """
    Half-open intervals kept sorted by start.

    Overlap queries bisect on start and only look back as far as the longest
    stored interval, so a query costs O(log n + k) for typical inputs.
    """

    def __init__(self, intervals: Optional[Iterable[Interval]] = None):
        self._intervals: List[Interval] = []
        self._starts: List[int] = []
        self._max_len = 0
        self._dirty = False
        for itv in intervals or ():
            self.insert(itv)

    def __len__(self) -> int:
        return len(self._intervals)

    def __iter__(self):
        self._ensure_sorted()
        return iter(self._intervals)

    @property
    def intervals(self) -> List[Interval]:
        self._ensure_sorted()
        return list(self._intervals)

    def insert(self, itv: Interval) -> None:
        self._intervals.append(itv)
        self._max_len = max(self._max_len, itv.stop - itv.start)
        self._dirty = True

    def _ensure_sorted(self) -> None:
        if self._dirty:
            self._intervals.sort(key=lambda i: (i.start, i.stop))
            self._starts = [i.start for i in self._intervals]
            self._dirty = False

    def query_overlap(self, start: int, stop: int) -> List[Interval]:
        """All intervals intersecting [start, stop)."""
        self._ensure_sorted()
        out: List[Interval] = []
        i = bisect_left(self._starts, start - self._max_len)
        while i < len(self._intervals):
            itv = self._intervals[i]
            if itv.start >= stop:
                break
            if itv.stop > start:
                out.append(itv)
            i += 1
        return out

    def query_point(self, pos: int) -> List[Interval]:
        return self.query_overlap(pos, pos + 1)

    def values(self, start: int, stop: int) -> List[Any]:
        return [itv.val for itv in self.query_overlap(start, stop)]


class PeriodToleranceIndex:
    """
    Windows of allowed monomer periods.

    Each period p becomes [int(p - p*diff), int(p + p*diff) + 1).
    ex. diff=0.02 and p=170 allows 166 through 173.
    """

    def __init__(self, periods: Iterable[int], diff: float):
        self.periods = sorted(set(periods))
        if not self.periods:
            raise MissingDataError("No monomer periods provided.")
        self.diff = diff
        self._index = IntervalIndex()
        for period in self.periods:
            allowed_diff = period * diff
            self._index.insert(
                Interval(int(period - allowed_diff), int(period + allowed_diff) + 1, period)
            )

    @property
    def min_period(self) -> int:
        return self.periods[0]

    @property
    def windows(self) -> List[Interval]:
        return self._index.intervals

    def is_valid_period(self, value: int) -> bool:
        return bool(self._index.query_point(value))

    def __repr__(self) -> str:
        ranges = ", ".join(f"{w.val}: [{w.start}, {w.stop})" for w in self.windows)
        return f"PeriodToleranceIndex({ranges})"
