"""
Core data structures.

Coordinates are 0-based, half-open (BED convention). Records are immutable;
shuffling produces copies with new coordinates and the same identity.
"""

from dataclasses import dataclass, field, replace
from typing import List, Optional


@dataclass(frozen=True)
class GenomicInterval:
    """A genomic interval [start, end) on one chromosome."""
    chrom: str
    start: int
    end: int
    strand: Optional[str] = None

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(
                f"Invalid interval {self.chrom}:{self.start}-{self.end} (start > end)"
            )

    @property
    def length(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class ReferenceFeature(GenomicInterval):
    """A feature of the fixed reference set (e.g. a ChIP-seq peak)."""
    feature_id: str = ""

    @property
    def key(self) -> str:
        return self.feature_id or f"{self.chrom}:{self.start}-{self.end}"


@dataclass(frozen=True)
class RepeatElement(GenomicInterval):
    """
    One repeat fragment (a RepeatMasker line).

    ``age1`` / ``age2`` are the two age-category schemes (lineage and
    age category); ``tss_distance`` is the signed distance to the closest
    TSS, set once on the real positions.
    """
    element_id: str = ""
    name: str = ""
    rclass: str = ""
    family: str = ""
    age1: Optional[str] = None
    age2: Optional[str] = None
    tss_distance: Optional[int] = None

    def moved(self, start: int, end: Optional[int] = None) -> "RepeatElement":
        """Copy of this element at a new position, same length unless ``end`` is given."""
        if end is None:
            end = start + self.length
        return replace(self, start=start, end=end)


@dataclass(frozen=True)
class Tss:
    """A transcription start site (single base)."""
    chrom: str
    position: int
    strand: str = "+"
    transcript_id: Optional[str] = None


@dataclass(frozen=True)
class Adjustment:
    """An element whose placement was changed at a sequence boundary."""
    element_id: str
    reason: str  # "shifted" (position pool) or "clamped" (distance to TSS)
    requested_start: int
    start: int


@dataclass
class ShuffleResult:
    """One randomized round: placed elements plus what could not be honored."""
    elements: List[RepeatElement]
    dropped: List[RepeatElement] = field(default_factory=list)
    adjusted: List[Adjustment] = field(default_factory=list)
