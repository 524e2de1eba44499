"""
Shuffle strategy base class.

A strategy turns the real repeat set into one randomized set per round.
Rounds are independent: round ``i`` draws from a generator seeded with
``(seed, i)`` and strategies keep no state between rounds.
"""

import logging
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

import numpy as np

from teshuffle.models import RepeatElement, ShuffleResult
from teshuffle.utils.config import DEFAULT_RANDOM_SEED

logger = logging.getLogger(__name__)

# lowest start a moved repeat may get
MIN_START = 1


class PlacementError(RuntimeError):
    """An element could not be placed and the run was set to abort."""


def rng_for_round(seed: int, round_index: int) -> np.random.Generator:
    """Independent generator of one round."""
    return np.random.default_rng([seed, round_index])


def round_seed(seed: int, round_index: int) -> int:
    """Integer seed of one round, for tools that take a plain seed."""
    return int(rng_for_round(seed, round_index).integers(1, 2**31 - 1))


class ShuffleStrategy(ABC):
    """
    Base class of the randomization strategies.

    Args:
        elements: Real repeat elements (already filtered)
        seed: Run seed; drawn from OS entropy when None
    """

    def __init__(self, elements: Iterable[RepeatElement], seed: Optional[int] = DEFAULT_RANDOM_SEED):
        self.elements: List[RepeatElement] = list(elements)
        if seed is None:
            seed = int(np.random.SeedSequence().entropy)
            logger.info(f"No seed given, using {seed}")
        self.seed = seed

    @property
    @abstractmethod
    def name(self) -> str:
        """Strategy name (bed, rm, tss)."""

    @abstractmethod
    def generate(self, round_index: int) -> ShuffleResult:
        """
        Produce the randomized element set of one round.

        Args:
            round_index: Bootstrap round (1..N)

        Returns:
            ShuffleResult with placed, dropped and adjusted elements
        """

    def can_place(self, element: RepeatElement) -> bool:
        """
        False for elements this strategy can never move (dropped every round).

        The round driver leaves such elements out of the observed round and
        of the genome-wide totals.
        """
        return True

    def rng(self, round_index: int) -> np.random.Generator:
        return rng_for_round(self.seed, round_index)
