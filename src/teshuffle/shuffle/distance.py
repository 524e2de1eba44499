"""Random placement keeping the distance to the closest TSS (shuffle type ``tss``)."""

import logging
from collections import defaultdict
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np

from teshuffle.models import Adjustment, RepeatElement, ShuffleResult, Tss
from teshuffle.shuffle.base import MIN_START, ShuffleStrategy
from teshuffle.utils.config import DEFAULT_RANDOM_SEED
from teshuffle.utils.validation import ConfigurationError

logger = logging.getLogger(__name__)


def _tss_by_chrom(tss: Iterable[Tss]) -> Dict[str, Tuple[np.ndarray, np.ndarray]]:
    """Sorted TSS positions and strands (True for minus) per chromosome."""
    by_chrom = defaultdict(list)
    for site in tss:
        by_chrom[site.chrom].append((site.position, site.strand == "-"))
    table = {}
    for chrom, sites in by_chrom.items():
        sites.sort()
        table[chrom] = (
            np.array([p for p, _ in sites], dtype=np.int64),
            np.array([m for _, m in sites], dtype=bool),
        )
    return table


def signed_tss_distance(element: RepeatElement, position: int, minus: bool) -> int:
    """
    Distance of an element to a TSS, in the TSS orientation.

    Measured from the TSS to the element edge that faces it in transcription
    direction: the start on plus strand, the end on minus strand. Negative
    means upstream.
    """
    if minus:
        return position - element.end
    return element.start - position


def _gap(element: RepeatElement, position: int) -> int:
    if element.start <= position < element.end:
        return 0
    if position < element.start:
        return element.start - position
    return position - element.end + 1


def closest_tss_distances(
    elements: List[RepeatElement],
    tss_table: Dict[str, Tuple[np.ndarray, np.ndarray]],
) -> List[RepeatElement]:
    """Copy of the elements with ``tss_distance`` set (None without TSS on the chromosome)."""
    annotated = []
    for element in elements:
        if element.chrom not in tss_table:
            annotated.append(replace(element, tss_distance=None))
            continue
        positions, minus = tss_table[element.chrom]
        idx = int(np.searchsorted(positions, element.start))
        candidates = [i for i in (idx - 1, idx) if 0 <= i < len(positions)]
        best = min(candidates, key=lambda i: (_gap(element, int(positions[i])), i))
        distance = signed_tss_distance(element, int(positions[best]), bool(minus[best]))
        annotated.append(replace(element, tss_distance=distance))
    return annotated


class DistancePreserving(ShuffleStrategy):
    """
    Move every repeat next to a random TSS of its chromosome, at the distance
    it has to its real closest TSS.

    TSS are permuted among the repeats of a chromosome, or sampled with
    replacement when there are fewer TSS than repeats. A repeat that would
    start before the sequence start is clamped (reason ``clamped``); repeats
    on chromosomes without TSS are dropped every round and left out of the
    analysis.

    Args:
        elements: Real repeat elements
        tss: Unique TSS of the annotation
        seed: Run seed
    """

    def __init__(
        self,
        elements: Iterable[RepeatElement],
        tss: Iterable[Tss],
        seed: Optional[int] = DEFAULT_RANDOM_SEED,
    ):
        super().__init__(elements, seed)
        self._tss = _tss_by_chrom(tss)
        if not self._tss:
            raise ConfigurationError("Distance-preserving shuffle requires TSS (none loaded)")

        self.elements = closest_tss_distances(self.elements, self._tss)
        self._by_chrom: Dict[str, List[int]] = defaultdict(list)
        self._orphans: List[RepeatElement] = []
        for idx, element in enumerate(self.elements):
            if element.tss_distance is None:
                self._orphans.append(element)
            else:
                self._by_chrom[element.chrom].append(idx)

        if self._orphans:
            chroms = sorted({e.chrom for e in self._orphans})
            logger.warning(
                f"{len(self._orphans)} repeats on {len(chroms)} chromosomes without TSS "
                f"(e.g. {chroms[0]}) are left out of the analysis"
            )

    @property
    def name(self) -> str:
        return "tss"

    def can_place(self, element: RepeatElement) -> bool:
        return element.chrom in self._tss

    def generate(self, round_index: int) -> ShuffleResult:
        rng = self.rng(round_index)
        placed: List[RepeatElement] = []
        adjusted: List[Adjustment] = []

        for chrom in sorted(self._by_chrom):
            indices = self._by_chrom[chrom]
            positions, minus = self._tss[chrom]
            if len(positions) >= len(indices):
                anchors = rng.permutation(len(positions))[: len(indices)]
            else:
                anchors = rng.integers(0, len(positions), size=len(indices))

            for idx, anchor in zip(indices, anchors):
                element = self.elements[idx]
                position = int(positions[anchor])
                if minus[anchor]:
                    start = position - element.tss_distance - element.length
                else:
                    start = position + element.tss_distance
                if start < MIN_START:
                    adjusted.append(Adjustment(element.element_id, "clamped", start, MIN_START))
                    start = MIN_START
                placed.append(element.moved(start))

        if adjusted:
            logger.debug(f"Round {round_index}: {len(adjusted)} repeats clamped at sequence start")
        return ShuffleResult(elements=placed, dropped=list(self._orphans), adjusted=adjusted)
