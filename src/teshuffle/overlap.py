"""
Overlap counting for one round.

A reference feature hit by several fragments (or several copies) of the same
repeat counts once for each taxonomy level: hits are deduplicated on
(feature, path) within a round.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, NamedTuple, Sequence, Set, Tuple

from teshuffle.backend import IntervalBackend
from teshuffle.models import ReferenceFeature, RepeatElement
from teshuffle.taxonomy import GRANULARITIES, NON_AGE_GRANULARITIES, TaxonomyPath, element_paths
from teshuffle.utils.config import DEFAULT_MIN_OVERLAP

logger = logging.getLogger(__name__)

OBSERVED_ROUND = 0


def round_id(round_index: int) -> str:
    """Label of a round in the detail files."""
    return "no_boot" if round_index == OBSERVED_ROUND else f"boot.{round_index}"


class DetailRecord(NamedTuple):
    """One line of a per-round detail file."""
    round: str
    rclass: str
    family: str
    name: str
    hits: int
    total_features: int
    unhit: int
    total_hits: int


@dataclass
class RoundCounts:
    """Number of distinct reference features hit, per taxonomy path, in one round."""
    round_index: int
    counts: Dict[TaxonomyPath, int] = field(default_factory=dict)

    @property
    def round_id(self) -> str:
        return round_id(self.round_index)

    @property
    def total_hits(self) -> int:
        return self.counts.get(TaxonomyPath.total(), 0)

    def get(self, path: TaxonomyPath) -> int:
        return self.counts.get(path, 0)

    def __len__(self) -> int:
        return len(self.counts)

    def __iter__(self) -> Iterator[TaxonomyPath]:
        return iter(self.counts)

    def detail_records(self, n_features: int) -> Dict[str, List[DetailRecord]]:
        """
        Rows of the detail files, one list per granularity stream.

        Each stream also carries the coarser rows above it: class rows
        (the grand total included) appear in the Rclass, Rfam and Rname
        streams, family rows in the Rfam and Rname streams.

        Args:
            n_features: Number of reference features loaded

        Returns:
            Mapping stream name (Rclass, Rfam, Rname, age1, age2) -> rows
        """
        streams: Dict[str, List[DetailRecord]] = {g: [] for g in GRANULARITIES}
        total = self.total_hits
        for path in sorted(self.counts, key=TaxonomyPath.sort_key):
            hits = self.counts[path]
            rclass, family, name = path.labels()
            record = DetailRecord(
                self.round_id, rclass, family, name, hits, n_features, n_features - hits, total
            )
            if path.is_age:
                streams[path.granularity].append(record)
                continue
            level = NON_AGE_GRANULARITIES.index(path.granularity)
            for granularity in NON_AGE_GRANULARITIES[level:]:
                streams[granularity].append(record)
        return streams


class OverlapCounter:
    """
    Count reference features hit by repeats, per taxonomy path.

    Args:
        backend: Interval backend used to enumerate overlapping pairs
        min_overlap: Minimum overlap length in bases for a pair to count
    """

    def __init__(self, backend: IntervalBackend, min_overlap: int = DEFAULT_MIN_OVERLAP):
        if min_overlap < 0:
            raise ValueError(f"min_overlap must be >= 0, got {min_overlap}")
        self.backend = backend
        self.min_overlap = min_overlap

    def count(
        self,
        candidates: Sequence[RepeatElement],
        references: Sequence[ReferenceFeature],
        round_index: int,
    ) -> RoundCounts:
        """
        Count one round.

        Args:
            candidates: Repeat elements of the round (real or shuffled)
            references: Reference features
            round_index: 0 for the observed round, 1..N for bootstraps

        Returns:
            RoundCounts of the round
        """
        hits = self.backend.intersect(candidates, references, self.min_overlap)

        seen: Set[Tuple[str, TaxonomyPath]] = set()
        counts: Counter = Counter()
        for hit in hits:
            for path in element_paths(hit.element):
                key = (hit.feature.key, path)
                if key in seen:
                    continue
                seen.add(key)
                counts[path] += 1

        logger.debug(
            f"{round_id(round_index)}: {len(hits)} overlaps, "
            f"{counts.get(TaxonomyPath.total(), 0)} features hit"
        )
        return RoundCounts(round_index, dict(counts))
