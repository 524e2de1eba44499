"""Aggregation of per-round counts into per-path distributions."""

import logging
from typing import Dict, List, Optional

from teshuffle.overlap import OBSERVED_ROUND, RoundCounts
from teshuffle.taxonomy import TaxonomyPath

logger = logging.getLogger(__name__)


class BootstrapAggregator:
    """
    Collect the observed round and the N bootstrap rounds.

    Rounds are stored by index, so the order in which they are folded (or
    merged from several partial aggregators) does not change the result.

    Args:
        n_rounds: Number of bootstrap rounds N (0 is valid)
    """

    def __init__(self, n_rounds: int):
        if n_rounds < 0:
            raise ValueError(f"Number of bootstrap rounds must be >= 0, got {n_rounds}")
        self.n_rounds = n_rounds
        self.observed: Optional[RoundCounts] = None
        self._rounds: Dict[int, RoundCounts] = {}

    def fold(self, counts: RoundCounts) -> None:
        """Record a round; round 0 is the observed one."""
        index = counts.round_index
        if index == OBSERVED_ROUND:
            if self.observed is not None:
                raise ValueError("Observed round already recorded")
            self.observed = counts
            return
        if not 1 <= index <= self.n_rounds:
            raise ValueError(f"Round {index} outside 1..{self.n_rounds}")
        if index in self._rounds:
            raise ValueError(f"Round {index} already recorded")
        self._rounds[index] = counts

    def merge(self, other: "BootstrapAggregator") -> "BootstrapAggregator":
        """Add the rounds of another aggregator of the same run to this one."""
        if other.n_rounds != self.n_rounds:
            raise ValueError(
                f"Cannot merge aggregators of {self.n_rounds} and {other.n_rounds} rounds"
            )
        if other.observed is not None:
            self.fold(other.observed)
        for counts in other._rounds.values():
            self.fold(counts)
        return self

    @property
    def n_folded(self) -> int:
        return len(self._rounds)

    @property
    def complete(self) -> bool:
        return self.observed is not None and self.n_folded == self.n_rounds

    def distributions(self) -> Dict[TaxonomyPath, List[int]]:
        """
        Bootstrap values per path, ordered by round index.

        Every path seen in the observed round or in any bootstrap round gets
        one value per folded round, 0 where the round had no hit.
        """
        paths = set()
        if self.observed is not None:
            paths.update(self.observed)
        for counts in self._rounds.values():
            paths.update(counts)

        if not self._rounds:
            return {}
        ordered = [self._rounds[i] for i in sorted(self._rounds)]
        return {path: [counts.get(path) for counts in ordered] for path in paths}
