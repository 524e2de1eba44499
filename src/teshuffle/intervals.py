"""
Interval indexes for overlap queries.

``RegionIndex`` merges a region set (gaps, blacklists, inclusion windows) and
answers "how many bases of [start, end) are covered". ``FeatureIndex`` keeps
individual features (the reference set) and returns the overlapping ones.
``PlacedIntervals`` tracks features placed so far in a round, for the
no-overlap constraint.
"""

import bisect
import logging
from collections import defaultdict
from typing import Dict, Generic, Iterable, Iterator, List, Tuple, TypeVar

import numpy as np

from teshuffle.models import GenomicInterval

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=GenomicInterval)


class RegionIndex:
    """Merged, sorted regions per chromosome."""

    def __init__(self, regions: Iterable[GenomicInterval]):
        by_chrom: Dict[str, List[Tuple[int, int]]] = defaultdict(list)
        for region in regions:
            if region.end > region.start:
                by_chrom[region.chrom].append((region.start, region.end))

        self._starts: Dict[str, np.ndarray] = {}
        self._ends: Dict[str, np.ndarray] = {}
        for chrom, spans in by_chrom.items():
            spans.sort()
            merged = [list(spans[0])]
            for start, end in spans[1:]:
                if start <= merged[-1][1]:
                    merged[-1][1] = max(merged[-1][1], end)
                else:
                    merged.append([start, end])
            arr = np.array(merged, dtype=np.int64)
            self._starts[chrom] = arr[:, 0]
            self._ends[chrom] = arr[:, 1]

    def __contains__(self, chrom: str) -> bool:
        return chrom in self._starts

    def __len__(self) -> int:
        return sum(len(s) for s in self._starts.values())

    def spans(self, chrom: str) -> Tuple[np.ndarray, np.ndarray]:
        """Starts and ends of the merged regions on a chromosome."""
        empty = np.empty(0, dtype=np.int64)
        return self._starts.get(chrom, empty), self._ends.get(chrom, empty)

    def covered(self, chrom: str, start: int, end: int) -> int:
        """Number of bases of [start, end) inside the regions."""
        if chrom not in self._starts:
            return 0
        starts, ends = self._starts[chrom], self._ends[chrom]
        lo = np.searchsorted(ends, start, side="right")
        hi = np.searchsorted(starts, end, side="left")
        if hi <= lo:
            return 0
        overlap = np.minimum(ends[lo:hi], end) - np.maximum(starts[lo:hi], start)
        return int(overlap.clip(min=0).sum())


class FeatureIndex(Generic[T]):
    """
    Non-overlapping features per chromosome, sorted by start.

    Because features do not overlap, ends are sorted too and a query is two
    binary searches.
    """

    def __init__(self, features: Iterable[T]):
        by_chrom: Dict[str, List[T]] = defaultdict(list)
        for feature in features:
            by_chrom[feature.chrom].append(feature)

        self._features: Dict[str, List[T]] = {}
        self._starts: Dict[str, np.ndarray] = {}
        self._ends: Dict[str, np.ndarray] = {}
        for chrom, items in by_chrom.items():
            items.sort(key=lambda f: (f.start, f.end))
            starts = np.array([f.start for f in items], dtype=np.int64)
            ends = np.array([f.end for f in items], dtype=np.int64)
            if len(items) > 1 and np.any(starts[1:] < ends[:-1]):
                logger.warning(
                    f"Overlapping features on {chrom}: overlapping inputs are not "
                    "supported, some overlaps may be missed"
                )
            self._features[chrom] = items
            self._starts[chrom] = starts
            self._ends[chrom] = ends

    def __len__(self) -> int:
        return sum(len(f) for f in self._features.values())

    def query(self, chrom: str, start: int, end: int) -> Iterator[Tuple[T, int]]:
        """Yield (feature, overlap length) for features overlapping [start, end)."""
        if chrom not in self._features:
            return
        lo = int(np.searchsorted(self._ends[chrom], start, side="right"))
        hi = int(np.searchsorted(self._starts[chrom], end, side="left"))
        items = self._features[chrom]
        for idx in range(lo, hi):
            feature = items[idx]
            overlap = min(end, feature.end) - max(start, feature.start)
            if overlap > 0:
                yield feature, overlap


class PlacedIntervals:
    """Intervals placed so far in one round; answers overlap checks."""

    def __init__(self):
        self._starts: Dict[str, List[int]] = defaultdict(list)
        self._ends: Dict[str, List[int]] = defaultdict(list)

    def overlaps(self, chrom: str, start: int, end: int) -> bool:
        starts, ends = self._starts[chrom], self._ends[chrom]
        idx = bisect.bisect_left(starts, start)
        if idx < len(starts) and starts[idx] < end:
            return True
        return idx > 0 and ends[idx - 1] > start

    def add(self, chrom: str, start: int, end: int) -> None:
        starts, ends = self._starts[chrom], self._ends[chrom]
        idx = bisect.bisect_left(starts, start)
        starts.insert(idx, start)
        ends.insert(idx, end)
