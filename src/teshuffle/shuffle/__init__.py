"""
Shuffle strategies.

- bed: free random placement on the same chromosome (RandomPlacement)
- rm:  permutation among the observed repeat positions (PositionPool)
- tss: random TSS, same distance to it as the real closest TSS (DistancePreserving)
"""

from teshuffle.shuffle.base import PlacementError, ShuffleStrategy, rng_for_round, round_seed
from teshuffle.shuffle.distance import DistancePreserving
from teshuffle.shuffle.position_pool import PositionPool
from teshuffle.shuffle.random_placement import RandomPlacement

STRATEGIES = {
    "bed": RandomPlacement,
    "rm": PositionPool,
    "tss": DistancePreserving,
}


def get_strategy(name: str, elements, **kwargs) -> ShuffleStrategy:
    """
    Create a shuffle strategy by name.

    Args:
        name: Shuffle type (bed, rm, tss)
        elements: Real repeat elements
        **kwargs: Passed to the strategy (seed, constraints, backend, tss, chrom_sizes)

    Returns:
        Strategy instance
    """
    if name not in STRATEGIES:
        raise ValueError(f"Unknown shuffle type: {name}. Available: {list(STRATEGIES.keys())}")
    return STRATEGIES[name](elements, **kwargs)


__all__ = [
    "DistancePreserving",
    "PlacementError",
    "PositionPool",
    "RandomPlacement",
    "ShuffleStrategy",
    "STRATEGIES",
    "get_strategy",
    "rng_for_round",
    "round_seed",
]
