"""Free random placement of repeats on their chromosome (shuffle type ``bed``)."""

import logging
from typing import Iterable, Optional

from teshuffle.backend import IntervalBackend, ShuffleConstraints
from teshuffle.models import RepeatElement, ShuffleResult
from teshuffle.shuffle.base import ShuffleStrategy, round_seed
from teshuffle.utils.config import DEFAULT_RANDOM_SEED
from teshuffle.utils.validation import ConfigurationError, missing_chromosomes

logger = logging.getLogger(__name__)


class RandomPlacement(ShuffleStrategy):
    """
    Uniform random start on the element's own chromosome.

    Placement itself is done by the interval backend, under the exclusion,
    inclusion and no-overlap constraints.
    """

    def __init__(
        self,
        elements: Iterable[RepeatElement],
        constraints: ShuffleConstraints,
        backend: IntervalBackend,
        seed: Optional[int] = DEFAULT_RANDOM_SEED,
    ):
        super().__init__(elements, seed)
        if not constraints.chrom_sizes:
            raise ConfigurationError("Random placement requires a chromosome length table")
        if not constraints.exclude:
            raise ConfigurationError(
                "Random placement requires exclusion regions (at least the assembly gaps)"
            )
        missing = missing_chromosomes(self.elements, constraints.chrom_sizes)
        if missing:
            logger.warning(
                f"{len(missing)} chromosomes have no length "
                f"(e.g. {missing[0]}); their repeats are left out of the analysis"
            )
        self.constraints = constraints
        self.backend = backend

    @property
    def name(self) -> str:
        return "bed"

    def can_place(self, element: RepeatElement) -> bool:
        chrom_len = self.constraints.chrom_sizes.get(element.chrom)
        return chrom_len is not None and element.length <= chrom_len

    def generate(self, round_index: int) -> ShuffleResult:
        return self.backend.shuffle(
            self.elements, self.constraints, round_seed(self.seed, round_index)
        )
