"""Input validation utilities for teShuffle."""

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from teshuffle.models import GenomicInterval

logger = logging.getLogger(__name__)


class ConfigurationError(ValueError):
    """Missing or invalid input, detected before any round runs."""


def validate_file_exists(filepath: Optional[str], description: str = "File") -> None:
    """
    Validate that a file exists.

    Args:
        filepath: Path to check
        description: Description for error message

    Raises:
        ConfigurationError: If the path is unset or doesn't exist
    """
    if not filepath:
        raise ConfigurationError(f"{description} is required")
    if not Path(filepath).exists():
        raise ConfigurationError(f"{description} not found: {filepath}")


def require_valid(problems: List[str]) -> None:
    """Raise a ConfigurationError listing every problem, if any."""
    if problems:
        raise ConfigurationError("Invalid configuration:\n  - " + "\n  - ".join(problems))


def check_bounds(
    intervals: Iterable[GenomicInterval],
    chrom_sizes: Optional[Dict[str, int]],
    description: str = "intervals",
) -> List[GenomicInterval]:
    """
    Find intervals that run past their chromosome end.

    Chromosomes absent from the table are not checked.

    Returns:
        Offending intervals (logged as a warning)
    """
    if not chrom_sizes:
        return []
    bad = [
        iv for iv in intervals
        if iv.chrom in chrom_sizes and iv.end > chrom_sizes[iv.chrom]
    ]
    if bad:
        first = bad[0]
        logger.warning(
            f"{len(bad)} {description} end past their chromosome length "
            f"(e.g. {first.chrom}:{first.start}-{first.end}, "
            f"length {chrom_sizes[first.chrom]})"
        )
    return bad


def missing_chromosomes(
    intervals: Iterable[GenomicInterval],
    chrom_sizes: Dict[str, int],
) -> List[str]:
    """Chromosomes used by the intervals but absent from the length table."""
    return sorted({iv.chrom for iv in intervals} - set(chrom_sizes))
