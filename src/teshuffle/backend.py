"""
Interval arithmetic backends.

The analysis needs two interval operations: random placement of elements
under constraints, and overlap of placed elements with the reference
features. Both sit behind ``IntervalBackend`` so that the in-memory
implementation and the bedtools one are interchangeable.
"""

import logging
import subprocess
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, NamedTuple, Optional, Sequence

import numpy as np
import pandas as pd

from teshuffle.intervals import FeatureIndex, PlacedIntervals, RegionIndex
from teshuffle.models import GenomicInterval, ReferenceFeature, RepeatElement, ShuffleResult
from teshuffle.utils.config import DEFAULT_EXCLUSION_OVERLAP, DEFAULT_MAX_TRIES
from teshuffle.utils.io import save_bed
from teshuffle.utils.subprocess_utils import require_tools, run_command

logger = logging.getLogger(__name__)


class BackendError(RuntimeError):
    """An interval operation failed (external tool error, unreadable output)."""


class Hit(NamedTuple):
    """One element / feature overlap."""
    element: RepeatElement
    feature: ReferenceFeature
    overlap: int


@dataclass
class ShuffleConstraints:
    """
    Where random placement may put elements.

    Args:
        chrom_sizes: Chromosome lengths; elements stay on their chromosome
        exclude: Regions an element may overlap by at most
            ``exclusion_overlap`` of its length (assembly gaps, ...)
        include: If set, elements are placed entirely inside these regions
        exclusion_overlap: Tolerated fraction of an element in excluded regions
        max_tries: Placement attempts per element before it is dropped
        no_overlaps: Placed elements may not overlap each other
    """
    chrom_sizes: Dict[str, int]
    exclude: List[GenomicInterval] = field(default_factory=list)
    include: Optional[List[GenomicInterval]] = None
    exclusion_overlap: float = DEFAULT_EXCLUSION_OVERLAP
    max_tries: int = DEFAULT_MAX_TRIES
    no_overlaps: bool = False
    exclude_index: RegionIndex = field(init=False, repr=False)
    include_index: Optional[RegionIndex] = field(init=False, repr=False)

    def __post_init__(self):
        self.exclude_index = RegionIndex(self.exclude)
        self.include_index = RegionIndex(self.include) if self.include else None


class IntervalBackend(ABC):
    """Random placement and overlap of intervals."""

    name = "base"

    @abstractmethod
    def shuffle(
        self,
        elements: Sequence[RepeatElement],
        constraints: ShuffleConstraints,
        seed: int,
    ) -> ShuffleResult:
        """
        Place every element at a random position on its own chromosome.

        Elements that cannot be placed are reported in ``dropped``.
        """

    @abstractmethod
    def intersect(
        self,
        elements: Sequence[RepeatElement],
        features: Sequence[ReferenceFeature],
        min_overlap: int,
    ) -> List[Hit]:
        """Every (element, feature) pair overlapping by at least ``min_overlap`` bases."""


class InMemoryBackend(IntervalBackend):
    """Pure numpy implementation, no external tools."""

    name = "memory"

    def __init__(self):
        self._feature_index: Optional[FeatureIndex] = None
        self._indexed: Optional[Sequence[ReferenceFeature]] = None

    def shuffle(
        self,
        elements: Sequence[RepeatElement],
        constraints: ShuffleConstraints,
        seed: int,
    ) -> ShuffleResult:
        rng = np.random.default_rng(seed)
        placed = PlacedIntervals() if constraints.no_overlaps else None

        moved: List[RepeatElement] = []
        dropped: List[RepeatElement] = []
        for element in elements:
            start = self._place(element, constraints, rng, placed)
            if start is None:
                dropped.append(element)
                continue
            moved.append(element.moved(start))
            if placed is not None:
                placed.add(element.chrom, start, start + element.length)

        if dropped:
            logger.debug(f"{len(dropped)} elements could not be placed")
        return ShuffleResult(elements=moved, dropped=dropped)

    @staticmethod
    def _place(
        element: RepeatElement,
        constraints: ShuffleConstraints,
        rng: np.random.Generator,
        placed: Optional[PlacedIntervals],
    ) -> Optional[int]:
        """Random start satisfying the constraints, or None after max_tries."""
        chrom, length = element.chrom, element.length
        chrom_len = constraints.chrom_sizes.get(chrom)
        if chrom_len is None or length > chrom_len:
            return None

        if constraints.include_index is not None:
            starts, ends = constraints.include_index.spans(chrom)
            room = ends - starts - length
            fits = room >= 0
            if not fits.any():
                return None
            starts, room = starts[fits], room[fits]
            # windows weighted by the number of possible starts
            weights = (room + 1) / float((room + 1).sum())

        tolerated = constraints.exclusion_overlap * length
        for _ in range(constraints.max_tries):
            if constraints.include_index is not None:
                idx = rng.choice(len(starts), p=weights)
                start = int(starts[idx] + rng.integers(0, room[idx], endpoint=True))
            else:
                start = int(rng.integers(0, chrom_len - length, endpoint=True))
            end = start + length

            if constraints.exclude_index.covered(chrom, start, end) > tolerated:
                continue
            if placed is not None and placed.overlaps(chrom, start, end):
                continue
            return start
        return None

    def intersect(
        self,
        elements: Sequence[RepeatElement],
        features: Sequence[ReferenceFeature],
        min_overlap: int,
    ) -> List[Hit]:
        # the reference set is the same for every round, index it once
        if self._indexed is not features:
            self._feature_index = FeatureIndex(features)
            self._indexed = features

        hits = []
        for element in elements:
            for feature, overlap in self._feature_index.query(
                element.chrom, element.start, element.end
            ):
                if overlap >= min_overlap:
                    hits.append(Hit(element, feature, overlap))
        return hits


class BedtoolsBackend(IntervalBackend):
    """
    bedtools shuffle / intersect on temporary BED files.

    Each call works in its own temporary directory, so concurrent rounds
    never share files. Elements and features are matched back through the
    BED name column.
    """

    name = "bedtools"

    def __init__(self, timeout: Optional[int] = None):
        require_tools(["bedtools"])
        self.timeout = timeout

    def _run(self, cmd: List[str], stdout_path: Path) -> None:
        try:
            run_command(cmd, stdout_path=stdout_path, timeout=self.timeout)
        except (OSError, subprocess.CalledProcessError, subprocess.TimeoutExpired) as e:
            raise BackendError(f"bedtools {cmd[1]} failed: {e}") from e

    @staticmethod
    def _read_output(path: Path) -> pd.DataFrame:
        try:
            return pd.read_csv(path, sep="\t", header=None, dtype=str, keep_default_na=False)
        except pd.errors.EmptyDataError:
            return pd.DataFrame()
        except pd.errors.ParserError as e:
            raise BackendError(f"Unreadable bedtools output {path}: {e}") from e

    def shuffle(
        self,
        elements: Sequence[RepeatElement],
        constraints: ShuffleConstraints,
        seed: int,
    ) -> ShuffleResult:
        by_id = {e.element_id: e for e in elements}

        with tempfile.TemporaryDirectory(prefix="teshuffle_") as tmp:
            tmp = Path(tmp)
            genome_file = tmp / "genome.txt"
            pd.DataFrame(list(constraints.chrom_sizes.items())).to_csv(
                genome_file, sep="\t", index=False, header=False
            )
            input_bed = save_bed(elements, tmp / "elements.bed")
            excl_bed = save_bed(constraints.exclude, tmp / "exclude.bed")
            output_bed = tmp / "shuffled.bed"

            cmd = [
                "bedtools", "shuffle",
                "-i", input_bed,
                "-g", genome_file,
                "-excl", excl_bed,
                "-f", constraints.exclusion_overlap,
                "-chrom",
                "-maxTries", constraints.max_tries,
                "-seed", seed,
            ]
            if constraints.include:
                cmd += ["-incl", save_bed(constraints.include, tmp / "include.bed")]
            if constraints.no_overlaps:
                cmd.append("-noOverlapping")

            self._run(cmd, output_bed)
            df = self._read_output(output_bed)

        moved = []
        for row in df.itertuples(index=False):
            element = by_id.get(str(row[3]))
            if element is None:
                raise BackendError(f"bedtools shuffle returned an unknown element: {row[3]}")
            moved.append(element.moved(int(row[1]), int(row[2])))

        # bedtools skips elements it could not place
        seen = {e.element_id for e in moved}
        dropped = [e for e in elements if e.element_id not in seen]
        return ShuffleResult(elements=moved, dropped=dropped)

    def intersect(
        self,
        elements: Sequence[RepeatElement],
        features: Sequence[ReferenceFeature],
        min_overlap: int,
    ) -> List[Hit]:
        by_id = {e.element_id: e for e in elements}
        by_key = {f.key: f for f in features}

        with tempfile.TemporaryDirectory(prefix="teshuffle_") as tmp:
            tmp = Path(tmp)
            a_bed = save_bed(elements, tmp / "elements.bed")
            b_bed = save_bed(features, tmp / "features.bed")
            output = tmp / "intersect.tsv"
            self._run(["bedtools", "intersect", "-a", a_bed, "-b", b_bed, "-wo"], output)
            df = self._read_output(output)

        hits = []
        # BED6 -a, BED6 -b, overlap length
        for row in df.itertuples(index=False):
            overlap = int(row[12])
            if overlap < min_overlap:
                continue
            try:
                hits.append(Hit(by_id[str(row[3])], by_key[str(row[9])], overlap))
            except KeyError as e:
                raise BackendError(f"bedtools intersect returned an unknown name: {e}") from e
        return hits


BACKENDS = {
    "memory": InMemoryBackend,
    "bedtools": BedtoolsBackend,
}


def get_backend(name: str = "memory") -> IntervalBackend:
    """Create a backend by name."""
    if name not in BACKENDS:
        raise ValueError(f"Unknown backend: {name}. Available: {list(BACKENDS.keys())}")
    return BACKENDS[name]()
