"""Tests for bootstrap aggregation."""

import pytest

from teshuffle.bootstrap import BootstrapAggregator
from teshuffle.overlap import RoundCounts
from teshuffle.taxonomy import TaxonomyPath

TOTAL = TaxonomyPath.total()
SINE = TaxonomyPath.of_class("SINE")
LINE = TaxonomyPath.of_class("LINE")
DNA = TaxonomyPath.of_class("DNA")


def _rounds():
    return [
        RoundCounts(1, {TOTAL: 3, SINE: 3}),
        RoundCounts(2, {TOTAL: 1, LINE: 1}),
        RoundCounts(3, {}),
        RoundCounts(4, {TOTAL: 2, SINE: 1, LINE: 1}),
    ]


class TestDistributions:
    """Tests for per-path distributions."""

    def test_zero_padding(self):
        aggregator = BootstrapAggregator(4)
        aggregator.fold(RoundCounts(0, {TOTAL: 1, DNA: 1}))
        for counts in _rounds():
            aggregator.fold(counts)

        distributions = aggregator.distributions()
        assert distributions[TOTAL] == [3, 1, 0, 2]
        assert distributions[SINE] == [3, 0, 0, 1]
        assert distributions[LINE] == [0, 1, 0, 1]
        # observed only
        assert distributions[DNA] == [0, 0, 0, 0]
        assert all(len(values) == 4 for values in distributions.values())

    def test_fold_order_does_not_matter(self):
        forward = BootstrapAggregator(4)
        backward = BootstrapAggregator(4)
        for counts in _rounds():
            forward.fold(counts)
        for counts in reversed(_rounds()):
            backward.fold(counts)
        assert forward.distributions() == backward.distributions()

    def test_merge(self):
        whole = BootstrapAggregator(4)
        first = BootstrapAggregator(4)
        second = BootstrapAggregator(4)
        whole.fold(RoundCounts(0, {TOTAL: 2}))
        first.fold(RoundCounts(0, {TOTAL: 2}))
        for counts in _rounds():
            whole.fold(counts)
            (first if counts.round_index % 2 else second).fold(counts)

        merged = second.merge(first)
        assert merged.complete
        assert merged.distributions() == whole.distributions()

    def test_no_rounds(self):
        aggregator = BootstrapAggregator(0)
        aggregator.fold(RoundCounts(0, {TOTAL: 1}))
        assert aggregator.complete
        assert aggregator.distributions() == {}


class TestFoldErrors:
    """Rounds are recorded once and must be in range."""

    def test_duplicate_round(self):
        aggregator = BootstrapAggregator(2)
        aggregator.fold(RoundCounts(1, {}))
        with pytest.raises(ValueError):
            aggregator.fold(RoundCounts(1, {}))

    def test_duplicate_observed(self):
        aggregator = BootstrapAggregator(2)
        aggregator.fold(RoundCounts(0, {}))
        with pytest.raises(ValueError):
            aggregator.fold(RoundCounts(0, {}))

    def test_round_out_of_range(self):
        aggregator = BootstrapAggregator(2)
        with pytest.raises(ValueError):
            aggregator.fold(RoundCounts(3, {}))

    def test_negative_rounds(self):
        with pytest.raises(ValueError):
            BootstrapAggregator(-1)

    def test_merge_different_sizes(self):
        with pytest.raises(ValueError):
            BootstrapAggregator(2).merge(BootstrapAggregator(3))
