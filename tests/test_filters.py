"""Tests for repeat filtering."""

import pytest

from teshuffle.filters import TEFilter, filter_repeats, keep_non_te
from teshuffle.models import RepeatElement


def _repeat(name, rclass, family=None, start=0):
    return RepeatElement(
        chrom="chr1", start=start, end=start + 100, element_id=f"{name}_{start}",
        name=name, rclass=rclass, family=family or rclass,
    )


REPEATS = [
    _repeat("AluY", "SINE", "Alu", 0),
    _repeat("L1HS", "LINE", "L1", 200),
    _repeat("Charlie1", "DNA", "hAT-Charlie", 400),
    _repeat("(CA)n", "Simple_repeat", start=600),
    _repeat("GA-rich", "Low_complexity", start=800),
    _repeat("ALR/Alpha", "Satellite", "centr", 1000),
    _repeat("U6", "snRNA", start=1200),
]


class TestTEFilter:
    """Tests for the name/class/family filter."""

    def test_parse(self):
        te_filter = TEFilter.parse("class,DNA")
        assert te_filter.field == "class"
        assert te_filter.value == "DNA"
        assert not te_filter.contains

    def test_parse_invalid(self):
        with pytest.raises(ValueError):
            TEFilter.parse("DNA")
        with pytest.raises(ValueError):
            TEFilter.parse("order,DNA")

    def test_exact_is_case_insensitive(self):
        te_filter = TEFilter("class", "dna")
        assert te_filter.matches(REPEATS[2])
        assert not te_filter.matches(REPEATS[0])

    def test_contains(self):
        te_filter = TEFilter("family", "charlie", contains=True)
        assert te_filter.matches(REPEATS[2])
        assert not TEFilter("family", "charlie").matches(REPEATS[2])

    def test_name(self):
        assert TEFilter("name", "AluY").matches(REPEATS[0])


class TestNonTE:
    """Tests for the non-TE behaviour."""

    def test_all(self):
        assert all(keep_non_te(r, "all") for r in REPEATS)

    def test_no_low(self):
        kept = [r.name for r in REPEATS if keep_non_te(r, "no_low")]
        assert "(CA)n" not in kept
        assert "GA-rich" not in kept
        assert "ALR/Alpha" in kept

    def test_none(self):
        kept = [r.name for r in REPEATS if keep_non_te(r, "none")]
        assert kept == ["AluY", "L1HS", "Charlie1"]

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            keep_non_te(REPEATS[0], "some")


class TestFilterRepeats:
    """Tests for the combined filter."""

    def test_default_drops_low_complexity(self):
        assert len(filter_repeats(REPEATS)) == 5

    def test_class_filter(self):
        kept = filter_repeats(REPEATS, TEFilter.parse("class,DNA"), "all")
        assert [r.name for r in kept] == ["Charlie1"]
