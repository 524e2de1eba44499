"""
Repeat taxonomy: class / family / name, plus two age-category schemes.

Every count in the analysis is keyed by a ``TaxonomyPath``. Aggregates
("all classes", "all families of a class", ...) use the ``Aggregate.TOTAL``
sentinel instead of a string, so a repeat really named "tot" cannot collide
with an aggregate row.
"""

import logging
from collections import Counter
from dataclasses import replace
from enum import Enum
from typing import Dict, Iterable, List, NamedTuple, Optional, Tuple, Union

from teshuffle.models import RepeatElement

logger = logging.getLogger(__name__)


class Aggregate(Enum):
    """Sentinel path components."""
    TOTAL = "tot"
    AGE = "age"

    def __str__(self) -> str:
        return self.value


TOTAL = Aggregate.TOTAL
AGE = Aggregate.AGE

# Age schemes: cat.1 = lineage, cat.2 = age category
AGE_SCHEMES = ("cat.1", "cat.2")

Component = Union[str, Aggregate]


class TaxonomyPath(NamedTuple):
    """
    Key of a taxonomy node.

    ``(class, family, name)`` with ``TOTAL`` standing for "all" at a level,
    or ``(AGE, scheme, category)`` for the age classification.
    """
    rclass: Component
    family: Component
    name: Component

    @classmethod
    def total(cls) -> "TaxonomyPath":
        return cls(TOTAL, TOTAL, TOTAL)

    @classmethod
    def of_class(cls, rclass: str) -> "TaxonomyPath":
        return cls(rclass, TOTAL, TOTAL)

    @classmethod
    def of_family(cls, rclass: str, family: str) -> "TaxonomyPath":
        return cls(rclass, family, TOTAL)

    @classmethod
    def of_name(cls, rclass: str, family: str, name: str) -> "TaxonomyPath":
        return cls(rclass, family, name)

    @classmethod
    def age(cls, scheme: str, category: Component = TOTAL) -> "TaxonomyPath":
        if scheme not in AGE_SCHEMES:
            raise ValueError(f"Unknown age scheme: {scheme}. Available: {list(AGE_SCHEMES)}")
        return cls(AGE, scheme, category)

    @property
    def is_age(self) -> bool:
        return self.rclass is AGE

    @property
    def granularity(self) -> str:
        """Detail stream this path is reported in: Rclass, Rfam, Rname, age1 or age2."""
        if self.is_age:
            return "age1" if self.family == "cat.1" else "age2"
        if self.name is not TOTAL:
            return "Rname"
        if self.family is not TOTAL:
            return "Rfam"
        return "Rclass"

    def labels(self) -> Tuple[str, str, str]:
        return str(self.rclass), str(self.family), str(self.name)

    def sort_key(self) -> Tuple:
        # aggregates first, age paths last
        return (self.is_age,) + tuple(
            (0, "") if isinstance(part, Aggregate) else (1, part) for part in self
        )


NON_AGE_GRANULARITIES = ("Rclass", "Rfam", "Rname")
GRANULARITIES = NON_AGE_GRANULARITIES + ("age1", "age2")


def parse_class_family(class_family: str) -> Tuple[str, str]:
    """
    Split a RepeatMasker ``class/family`` field.

    ``SINE/Alu`` -> (SINE, Alu). A field without family (``DNA``,
    ``Simple_repeat``) uses the class as family.
    """
    class_family = class_family.strip()
    if not class_family:
        raise ValueError("Empty repeat class/family field")
    if "/" in class_family:
        rclass, family = class_family.split("/", 1)
        return rclass, family or rclass
    return class_family, class_family


def element_paths(element: RepeatElement) -> List[TaxonomyPath]:
    """All taxonomy paths an element contributes to, from the grand total down."""
    paths = [
        TaxonomyPath.total(),
        TaxonomyPath.of_class(element.rclass),
        TaxonomyPath.of_family(element.rclass, element.family),
        TaxonomyPath.of_name(element.rclass, element.family, element.name),
    ]
    if element.age1 is not None:
        paths.append(TaxonomyPath.age("cat.1"))
        paths.append(TaxonomyPath.age("cat.1", element.age1))
        # the cat.2 total mirrors the cat.1 total
        paths.append(TaxonomyPath.age("cat.2"))
        if element.age2:
            paths.append(TaxonomyPath.age("cat.2", element.age2))
    return paths


def attach_ages(
    elements: Iterable[RepeatElement],
    ages: Dict[str, Tuple[str, Optional[str]]],
) -> List[RepeatElement]:
    """
    Copy age categories onto elements by repeat name.

    Args:
        elements: Repeat elements
        ages: Mapping name -> (lineage, age_category or None)

    Returns:
        New list of elements; names absent from ``ages`` are left unchanged
    """
    annotated = []
    missing = set()
    for element in elements:
        if element.name in ages:
            lineage, category = ages[element.name]
            element = replace(element, age1=lineage, age2=category or None)
        else:
            missing.add(element.name)
        annotated.append(element)
    if ages and missing:
        logger.debug(f"{len(missing)} repeat names have no age data")
    return annotated


def count_elements(elements: Iterable[RepeatElement]) -> Dict[TaxonomyPath, int]:
    """
    Genome-wide number of elements per taxonomy path.

    These are the trial counts of the binomial test.
    """
    totals: Counter = Counter()
    for element in elements:
        for path in element_paths(element):
            totals[path] += 1
    return dict(totals)
