"""Filtering of repeat elements before shuffling and counting."""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from teshuffle.models import RepeatElement

logger = logging.getLogger(__name__)

LOW_COMPLEXITY_CLASSES = {"low_complexity", "simple_repeat"}
NON_TE_CLASSES = {
    "nonte",
    "low_complexity",
    "simple_repeat",
    "satellite",
    "snrna",
    "srprna",
    "rrna",
    "trna",
    "scrna",
    "rna",
}

NON_TE_MODES = ("all", "no_low", "no_nonTE", "none")
FILTER_FIELDS = ("name", "class", "family")


@dataclass(frozen=True)
class TEFilter:
    """
    Keep only repeats whose name, class or family matches a value.

    Matching is case-insensitive, exact unless ``contains`` is set.
    """
    field: str
    value: str
    contains: bool = False

    def __post_init__(self):
        if self.field not in FILTER_FIELDS:
            raise ValueError(
                f"Unknown filter field: {self.field}. Available: {list(FILTER_FIELDS)}"
            )
        if not self.value:
            raise ValueError("Filter value must not be empty")

    @classmethod
    def parse(cls, text: str, contains: bool = False) -> "TEFilter":
        """Build from the ``field,value`` command-line form (e.g. ``class,DNA``)."""
        if "," not in text:
            raise ValueError(f"Filter should be <field,value>, got: {text}")
        field, value = text.split(",", 1)
        return cls(field.strip().lower(), value.strip(), contains)

    def matches(self, element: RepeatElement) -> bool:
        target = {
            "name": element.name,
            "class": element.rclass,
            "family": element.family,
        }[self.field].lower()
        value = self.value.lower()
        return value in target if self.contains else value == target


def keep_non_te(element: RepeatElement, mode: str = "no_low") -> bool:
    """
    Non-TE behaviour.

    - all: keep everything
    - no_low: drop Low_complexity and Simple_repeat
    - no_nonTE: drop class nonTE
    - none: drop every non-TE class (satellites, small RNAs, ...)
    """
    rclass = element.rclass.lower()
    if mode == "all":
        return True
    if mode == "no_low":
        return rclass not in LOW_COMPLEXITY_CLASSES
    if mode == "no_nonTE":
        return rclass != "nonte"
    if mode == "none":
        return rclass not in NON_TE_CLASSES
    raise ValueError(f"Unknown non-TE mode: {mode}. Available: {list(NON_TE_MODES)}")


def filter_repeats(
    elements: Iterable[RepeatElement],
    te_filter: Optional[TEFilter] = None,
    non_te: str = "no_low",
) -> List[RepeatElement]:
    """
    Apply the non-TE behaviour and the optional TE filter.

    Args:
        elements: Repeat elements
        te_filter: Optional name/class/family filter
        non_te: Non-TE behaviour (all, no_low, no_nonTE, none)

    Returns:
        Elements that pass both filters
    """
    elements = list(elements)
    kept = [
        e for e in elements
        if keep_non_te(e, non_te) and (te_filter is None or te_filter.matches(e))
    ]
    removed = len(elements) - len(kept)
    if removed > 0:
        logger.info(f"Filtered {removed} repeats ({len(kept)} kept)")
    return kept
