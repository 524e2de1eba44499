"""Tests for deduplicated overlap counting."""

import pytest

from teshuffle.backend import InMemoryBackend
from teshuffle.models import ReferenceFeature, RepeatElement
from teshuffle.overlap import OverlapCounter, RoundCounts, round_id
from teshuffle.taxonomy import TaxonomyPath


def _repeat(start, end, name="AluY", rclass="SINE", family="Alu", element_id=None, **kwargs):
    return RepeatElement(
        chrom="chr1", start=start, end=end, element_id=element_id or f"{name}_{start}",
        name=name, rclass=rclass, family=family, **kwargs,
    )


FEATURES = [
    ReferenceFeature("chr1", 100, 200, feature_id="peak1"),
    ReferenceFeature("chr1", 1000, 1200, feature_id="peak2"),
]


@pytest.fixture
def counter():
    return OverlapCounter(InMemoryBackend(), min_overlap=10)


class TestDedup:
    """A feature counts once per taxonomy node and round."""

    def test_fragments_of_one_repeat(self, counter):
        fragments = [_repeat(100, 130), _repeat(140, 170), _repeat(180, 200)]
        counts = counter.count(fragments, FEATURES, 0)
        assert counts.get(TaxonomyPath.total()) == 1
        assert counts.get(TaxonomyPath.of_class("SINE")) == 1
        assert counts.get(TaxonomyPath.of_family("SINE", "Alu")) == 1
        assert counts.get(TaxonomyPath.of_name("SINE", "Alu", "AluY")) == 1

    def test_two_names_same_family(self, counter):
        repeats = [_repeat(100, 130, "AluY"), _repeat(150, 190, "AluSx")]
        counts = counter.count(repeats, FEATURES, 0)
        assert counts.get(TaxonomyPath.of_family("SINE", "Alu")) == 1
        assert counts.get(TaxonomyPath.of_name("SINE", "Alu", "AluY")) == 1
        assert counts.get(TaxonomyPath.of_name("SINE", "Alu", "AluSx")) == 1

    def test_feature_counts_for_several_classes(self, counter):
        repeats = [_repeat(100, 130), _repeat(150, 190, "L1HS", "LINE", "L1")]
        counts = counter.count(repeats, FEATURES, 0)
        assert counts.get(TaxonomyPath.total()) == 1
        assert counts.get(TaxonomyPath.of_class("SINE")) == 1
        assert counts.get(TaxonomyPath.of_class("LINE")) == 1

    def test_separate_features(self, counter):
        repeats = [_repeat(100, 130), _repeat(1000, 1100)]
        counts = counter.count(repeats, FEATURES, 0)
        assert counts.get(TaxonomyPath.of_name("SINE", "Alu", "AluY")) == 2


class TestThreshold:
    """The minimum overlap is inclusive."""

    def test_exact_threshold_counts(self, counter):
        counts = counter.count([_repeat(190, 300)], FEATURES, 0)
        assert counts.get(TaxonomyPath.total()) == 1

    def test_one_below_threshold(self, counter):
        counts = counter.count([_repeat(191, 300)], FEATURES, 0)
        assert counts.get(TaxonomyPath.total()) == 0
        assert len(counts) == 0

    def test_negative_threshold(self):
        with pytest.raises(ValueError):
            OverlapCounter(InMemoryBackend(), min_overlap=-1)


class TestAgeCounts:
    """Age categories are counted next to the taxonomy."""

    def test_age_paths(self, counter):
        repeats = [
            _repeat(100, 130, age1="Primate", age2="young"),
            _repeat(150, 190, "L1PA2", "LINE", "L1", age1="Primate"),
            _repeat(1000, 1100, "MIR", "SINE", "MIR", age1="Mammalia", age2="ancient"),
        ]
        counts = counter.count(repeats, FEATURES, 0)
        assert counts.get(TaxonomyPath.age("cat.1")) == 2
        assert counts.get(TaxonomyPath.age("cat.1", "Primate")) == 1
        assert counts.get(TaxonomyPath.age("cat.1", "Mammalia")) == 1
        assert counts.get(TaxonomyPath.age("cat.2")) == 2
        assert counts.get(TaxonomyPath.age("cat.2", "young")) == 1
        assert counts.get(TaxonomyPath.age("cat.2", "ancient")) == 1


class TestDetailRecords:
    """Tests for the per-round detail rows."""

    def test_round_ids(self):
        assert round_id(0) == "no_boot"
        assert round_id(12) == "boot.12"

    def test_streams(self):
        counts = RoundCounts(3, {
            TaxonomyPath.total(): 4,
            TaxonomyPath.of_class("SINE"): 3,
            TaxonomyPath.of_family("SINE", "Alu"): 3,
            TaxonomyPath.of_name("SINE", "Alu", "AluY"): 2,
            TaxonomyPath.age("cat.1", "Primate"): 1,
        })
        streams = counts.detail_records(n_features=10)

        rclass = streams["Rclass"]
        assert [(r.rclass, r.family, r.name) for r in rclass] == [("tot", "tot", "tot"), ("SINE", "tot", "tot")]
        sine = rclass[1]
        assert sine.round == "boot.3"
        assert (sine.hits, sine.total_features, sine.unhit, sine.total_hits) == (3, 10, 7, 4)

        assert [(r.rclass, r.family, r.name) for r in streams["Rfam"]] == [
            ("tot", "tot", "tot"), ("SINE", "tot", "tot"), ("SINE", "Alu", "tot"),
        ]
        assert [(r.rclass, r.family, r.name) for r in streams["Rname"]] == [
            ("tot", "tot", "tot"), ("SINE", "tot", "tot"),
            ("SINE", "Alu", "tot"), ("SINE", "Alu", "AluY"),
        ]
        assert [(r.rclass, r.family, r.name) for r in streams["age1"]] == [("age", "cat.1", "Primate")]
        assert streams["age2"] == []
