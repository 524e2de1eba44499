"""Reassignment of repeats among the observed repeat positions (shuffle type ``rm``)."""

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional

from teshuffle.models import Adjustment, RepeatElement, ShuffleResult
from teshuffle.shuffle.base import MIN_START, ShuffleStrategy
from teshuffle.utils.config import DEFAULT_RANDOM_SEED
from teshuffle.utils.validation import check_bounds

logger = logging.getLogger(__name__)


class PositionPool(ShuffleStrategy):
    """
    Permute repeats among the positions of the repeats of the same chromosome.

    Every position of the pool is used exactly once per round. A repeat keeps
    its own length and starts where the repeat it replaces started; when that
    would run past a sequence end it is shifted back inside (reason ``shifted``).

    Args:
        elements: Real repeat elements, which also form the position pool
        seed: Run seed
        chrom_sizes: Optional chromosome lengths, to keep repeats inside
    """

    def __init__(
        self,
        elements: Iterable[RepeatElement],
        seed: Optional[int] = DEFAULT_RANDOM_SEED,
        chrom_sizes: Optional[Dict[str, int]] = None,
    ):
        super().__init__(elements, seed)
        self.chrom_sizes = chrom_sizes or {}
        if not self.chrom_sizes:
            logger.warning(
                "No chromosome lengths given: repeats may be placed past chromosome ends"
            )
        check_bounds(self.elements, self.chrom_sizes, "repeats")

        self._pool: Dict[str, List[int]] = defaultdict(list)
        for idx, element in enumerate(self.elements):
            self._pool[element.chrom].append(idx)

    @property
    def name(self) -> str:
        return "rm"

    def _fit(self, element: RepeatElement, start: int) -> int:
        """Shift [start, start + length) inside the chromosome."""
        end = start + element.length
        chrom_len = self.chrom_sizes.get(element.chrom)
        if chrom_len is not None and end > chrom_len:
            start -= end - chrom_len
        return max(start, MIN_START)

    def generate(self, round_index: int) -> ShuffleResult:
        rng = self.rng(round_index)
        placed: List[Optional[RepeatElement]] = [None] * len(self.elements)
        adjusted: List[Adjustment] = []

        for chrom in sorted(self._pool):
            indices = self._pool[chrom]
            order = rng.permutation(len(indices))
            for idx, target in zip(indices, order):
                element = self.elements[idx]
                start = self.elements[indices[target]].start
                fitted = self._fit(element, start)
                if fitted != start:
                    adjusted.append(Adjustment(element.element_id, "shifted", start, fitted))
                placed[idx] = element.moved(fitted)

        if adjusted:
            logger.debug(f"Round {round_index}: {len(adjusted)} repeats shifted at sequence ends")
        return ShuffleResult(elements=placed, adjusted=adjusted)
