"""Tests for the permutation and binomial statistics."""

import pytest

from teshuffle.stats import (
    BinomialResult,
    ScipyStatisticsProvider,
    StatisticsEngine,
    StatisticsProvider,
    observed_rank,
    permutation_pvalue,
    significance,
)
from teshuffle.taxonomy import TaxonomyPath

TOTAL = TaxonomyPath.total()
ALUY = TaxonomyPath.of_name("SINE", "Alu", "AluY")
L1HS = TaxonomyPath.of_name("LINE", "L1", "L1HS")


class FakeProvider(StatisticsProvider):
    """Deterministic binomial test that records its calls."""

    def __init__(self):
        self.calls = []

    def binomial_test(self, x, n, p):
        self.calls.append((x, n, p))
        return BinomialResult(estimate=x / n, ci_low=0.0, ci_high=1.0, pvalue=0.0004)


class TestRank:
    """Tests for the observed rank."""

    def test_ties_increase_rank(self):
        assert observed_rank(3, [5, 3, 1, 3]) == 4

    def test_bounds(self):
        values = [2, 4, 6, 8]
        assert observed_rank(0, values) == 1
        assert observed_rank(10, values) == len(values) + 1

    def test_zeros(self):
        assert observed_rank(1, [0, 0, 0, 0]) == 5
        assert observed_rank(0, [0, 0, 0, 0]) == 5


class TestPermutationPvalue:
    """Tests for the two-tailed p-value."""

    def test_high_rank(self):
        assert permutation_pvalue(5, 4) == pytest.approx(0.5)

    def test_low_rank(self):
        assert permutation_pvalue(1, 100) == pytest.approx(0.02)

    def test_midpoint_capped(self):
        assert permutation_pvalue(3, 4) == 1.0
        assert permutation_pvalue(51, 100) == 1.0

    def test_extreme_ranks(self):
        assert permutation_pvalue(101, 100) == pytest.approx(0.02)


class TestSignificance:
    """Tests for significance labels."""

    @pytest.mark.parametrize("pvalue,label", [
        (0.0001, "***"),
        (0.005, "**"),
        (0.03, "*"),
        (0.05, "ns"),
        (1.0, "ns"),
        (None, "na"),
    ])
    def test_labels(self, pvalue, label):
        assert significance(pvalue) == label


class TestStatisticsEngine:
    """Tests for per-path statistics."""

    def test_mean_and_sample_sd(self):
        engine = StatisticsEngine(FakeProvider())
        stats = engine.compute({ALUY: 2}, {ALUY: [1, 2, 3, 4]}, {ALUY: 100}, 4)
        assert stats[ALUY].mean == pytest.approx(2.5)
        assert stats[ALUY].sd == pytest.approx(1.2909944)

    def test_single_round_sd(self):
        stats = StatisticsEngine(FakeProvider()).compute({ALUY: 2}, {ALUY: [3]}, {ALUY: 10}, 1)
        assert stats[ALUY].sd == 0.0

    def test_observed_only_path(self):
        """A path never hit in the bootstraps gets a distribution of zeros."""
        stats = StatisticsEngine(FakeProvider()).compute({ALUY: 1}, {}, {ALUY: 10}, 4)
        assert stats[ALUY].mean == 0
        assert stats[ALUY].sd == 0
        assert stats[ALUY].rank == 5
        assert stats[ALUY].perm_pvalue == pytest.approx(0.5)

    def test_bootstrap_only_path(self):
        stats = StatisticsEngine(FakeProvider()).compute({}, {L1HS: [1, 0, 2, 1]}, {L1HS: 10}, 4)
        assert stats[L1HS].observed == 0
        assert stats[L1HS].rank == 2

    def test_not_available_without_hits(self):
        stats = StatisticsEngine(FakeProvider()).compute({ALUY: 0}, {ALUY: [0, 0, 0]}, {ALUY: 5}, 3)
        assert stats[ALUY].perm_pvalue is None
        assert stats[ALUY].perm_significance == "na"

    def test_binomial_arguments(self):
        provider = FakeProvider()
        stats = StatisticsEngine(provider).compute({ALUY: 3}, {ALUY: [1, 1, 2, 0]}, {ALUY: 40}, 4)
        assert provider.calls == [(3, 40, pytest.approx(1.0 / 40))]
        assert stats[ALUY].n_trials == 40
        assert stats[ALUY].binom_pvalue == 0.0004
        assert stats[ALUY].binom_significance == "***"

    def test_binomial_skipped_without_trials(self):
        provider = FakeProvider()
        stats = StatisticsEngine(provider).compute({ALUY: 3}, {ALUY: [1, 2]}, {}, 2)
        assert provider.calls == []
        assert stats[ALUY].binomial is None
        assert stats[ALUY].binom_significance == "na"

    def test_binomial_skipped_when_observed_exceeds_trials(self):
        provider = FakeProvider()
        StatisticsEngine(provider).compute({ALUY: 5}, {ALUY: [1, 2]}, {ALUY: 3}, 2)
        assert provider.calls == []

    def test_no_rounds(self):
        assert StatisticsEngine(FakeProvider()).compute({ALUY: 1}, {}, {ALUY: 1}, 0) == {}

    def test_wrong_distribution_length(self):
        with pytest.raises(ValueError):
            StatisticsEngine(FakeProvider()).compute({ALUY: 1}, {ALUY: [1, 2]}, {ALUY: 9}, 3)


class TestScipyProvider:
    """Tests for the scipy binomial test."""

    def test_expected_outcome(self):
        result = ScipyStatisticsProvider().binomial_test(5, 10, 0.5)
        assert result.estimate == pytest.approx(0.5)
        assert result.pvalue == pytest.approx(1.0)
        assert result.ci_low < 0.5 < result.ci_high

    def test_enrichment(self):
        result = ScipyStatisticsProvider().binomial_test(30, 100, 0.1)
        assert result.pvalue < 0.001
