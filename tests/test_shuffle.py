"""Tests for the shuffle strategies."""

import pytest

from teshuffle.backend import ShuffleConstraints
from teshuffle.models import GenomicInterval, RepeatElement, ShuffleResult, Tss
from teshuffle.shuffle import (
    DistancePreserving,
    PositionPool,
    RandomPlacement,
    get_strategy,
    rng_for_round,
)
from teshuffle.utils.validation import ConfigurationError


def _repeat(chrom, start, end, element_id, name="AluY"):
    return RepeatElement(
        chrom=chrom, start=start, end=end, element_id=element_id,
        name=name, rclass="SINE", family="Alu",
    )


class RecordingBackend:
    """Backend double that keeps elements in place and records seeds."""

    def __init__(self):
        self.seeds = []

    def shuffle(self, elements, constraints, seed):
        self.seeds.append(seed)
        return ShuffleResult(elements=list(elements))


class TestRoundGenerators:
    """Tests for per-round random generators."""

    def test_reproducible(self):
        assert rng_for_round(42, 3).integers(10**9) == rng_for_round(42, 3).integers(10**9)

    def test_rounds_differ(self):
        assert rng_for_round(42, 3).integers(10**9) != rng_for_round(42, 4).integers(10**9)


class TestPositionPool:
    """Tests for the permutation among repeat positions."""

    def test_bijection(self):
        """Same-length repeats end up exactly on the pool positions, each used once."""
        elements = [_repeat("chr1", 1000 + i * 500, 1100 + i * 500, str(i)) for i in range(30)]
        strategy = PositionPool(elements, seed=1, chrom_sizes={"chr1": 100000})
        for round_index in (1, 2, 3):
            result = strategy.generate(round_index)
            assert sorted(e.start for e in result.elements) == sorted(e.start for e in elements)
            assert not result.adjusted
            assert not result.dropped

    def test_permutes(self):
        elements = [_repeat("chr1", 1000 + i * 500, 1100 + i * 500, str(i)) for i in range(30)]
        result = PositionPool(elements, seed=1).generate(1)
        assert [e.start for e in result.elements] != [e.start for e in elements]

    def test_chromosome_kept(self):
        elements = [_repeat("chr1", 100, 200, "a"), _repeat("chr2", 5000, 5100, "b"),
                    _repeat("chr1", 800, 900, "c"), _repeat("chr2", 9000, 9100, "d")]
        result = PositionPool(elements, seed=3).generate(1)
        chroms = {e.element_id: e.chrom for e in result.elements}
        assert chroms == {"a": "chr1", "b": "chr2", "c": "chr1", "d": "chr2"}

    def test_reproducible(self):
        elements = [_repeat("chr1", i * 300 + 1, i * 300 + 101, str(i)) for i in range(20)]
        first = PositionPool(elements, seed=9).generate(5)
        second = PositionPool(elements, seed=9).generate(5)
        assert first.elements == second.elements

    def test_starts_at_slot_start(self):
        """A repeat takes the start of the slot it receives, with its own length."""
        elements = [_repeat("chr1", 1000, 1100, "short"), _repeat("chr1", 5000, 5400, "long")]
        strategy = PositionPool(elements, seed=6, chrom_sizes={"chr1": 100000})

        swapped = 0
        for round_index in range(1, 21):
            moved = {e.element_id: e for e in strategy.generate(round_index).elements}
            assert {moved["short"].start, moved["long"].start} == {1000, 5000}
            assert moved["short"].length == 100
            assert moved["long"].length == 400
            if moved["short"].start == 5000:
                assert moved["short"].end == 5100
                assert moved["long"].end == 1400
                swapped += 1
        assert 0 < swapped < 20

    def test_boundary_shift(self):
        """Repeats running past a sequence end are shifted inside, length preserved."""
        elements = [
            _repeat("chr1", 10, 20, "small"),
            _repeat("chr1", 1000, 1400, "long"),
            _repeat("chr1", 1450, 1490, "end"),
        ]
        lengths = {e.element_id: e.length for e in elements}
        strategy = PositionPool(elements, seed=2, chrom_sizes={"chr1": 1500})

        shifted = 0
        for round_index in range(1, 51):
            result = strategy.generate(round_index)
            for moved in result.elements:
                assert moved.start >= 1
                assert moved.end <= 1500
                assert moved.length == lengths[moved.element_id]
            for adjustment in result.adjusted:
                assert adjustment.reason == "shifted"
            shifted += len(result.adjusted)
        assert shifted > 0


class TestDistancePreserving:
    """Tests for the distance-to-TSS shuffle."""

    def test_distance_kept_plus_strand(self):
        tss = [Tss("chr1", 1000, "+"), Tss("chr1", 5000, "+")]
        elements = [_repeat("chr1", 1100, 1200, "a")]
        strategy = DistancePreserving(elements, tss, seed=4)
        assert strategy.elements[0].tss_distance == 100
        starts = {strategy.generate(i).elements[0].start for i in range(1, 30)}
        assert starts <= {1100, 5100}
        assert len(starts) == 2

    def test_distance_kept_minus_strand(self):
        tss = [Tss("chr2", 3000, "-")]
        elements = [_repeat("chr2", 2500, 2800, "a")]
        strategy = DistancePreserving(elements, tss, seed=4)
        assert strategy.elements[0].tss_distance == 200
        result = strategy.generate(1)
        assert (result.elements[0].start, result.elements[0].end) == (2500, 2800)

    def test_upstream_is_negative(self):
        strategy = DistancePreserving([_repeat("chr1", 700, 800, "a")], [Tss("chr1", 1000, "+")])
        assert strategy.elements[0].tss_distance == -300

    def test_sampling_with_replacement(self):
        """Fewer TSS than repeats: every repeat is still placed."""
        tss = [Tss("chr1", 10000, "+")]
        elements = [_repeat("chr1", 10000 + d, 10100 + d, str(d)) for d in (50, 500, 5000)]
        result = DistancePreserving(elements, tss, seed=1).generate(1)
        assert sorted(e.start for e in result.elements) == [10050, 10500, 15000]
        assert not result.dropped

    def test_clamped_at_sequence_start(self):
        """A repeat anchored too close to the start is clamped to 1 and reported."""
        tss = [Tss("chr1", 50, "+"), Tss("chr1", 10000, "+")]
        elements = [_repeat("chr1", 8000, 8100, "far"), _repeat("chr1", 60, 160, "near")]
        strategy = DistancePreserving(elements, tss, seed=3)
        assert strategy.elements[0].tss_distance == -2000

        clamped = []
        for round_index in range(1, 51):
            result = strategy.generate(round_index)
            moved = {e.element_id: e for e in result.elements}
            for adjustment in result.adjusted:
                assert adjustment.reason == "clamped"
                assert adjustment.element_id == "far"
                assert adjustment.requested_start == -1950
                assert moved["far"].start == 1
                assert moved["far"].length == 100
                clamped.append(round_index)
        assert clamped

    def test_chromosome_without_tss_dropped(self):
        tss = [Tss("chr1", 1000, "+")]
        elements = [_repeat("chr1", 1100, 1200, "a"), _repeat("chr3", 100, 200, "b")]
        strategy = DistancePreserving(elements, tss, seed=1)
        for round_index in (1, 2):
            result = strategy.generate(round_index)
            assert [e.element_id for e in result.dropped] == ["b"]
            assert [e.element_id for e in result.elements] == ["a"]

    def test_requires_tss(self):
        with pytest.raises(ConfigurationError):
            DistancePreserving([_repeat("chr1", 0, 10, "a")], [])


class TestRandomPlacement:
    """Tests for the free random placement strategy."""

    def test_requires_chrom_sizes(self):
        with pytest.raises(ConfigurationError):
            RandomPlacement([], ShuffleConstraints({}, [GenomicInterval("chr1", 0, 10)]),
                            RecordingBackend())

    def test_requires_exclusion(self):
        with pytest.raises(ConfigurationError):
            RandomPlacement([], ShuffleConstraints({"chr1": 100}), RecordingBackend())

    def test_seed_per_round(self):
        backend = RecordingBackend()
        constraints = ShuffleConstraints({"chr1": 1000}, [GenomicInterval("chr1", 0, 10)])
        strategy = RandomPlacement([_repeat("chr1", 100, 200, "a")], constraints, backend, seed=8)
        strategy.generate(1)
        strategy.generate(2)
        strategy.generate(1)
        assert backend.seeds[0] == backend.seeds[2]
        assert backend.seeds[0] != backend.seeds[1]


class TestGetStrategy:
    """Tests for the strategy registry."""

    def test_by_name(self):
        strategy = get_strategy("rm", [_repeat("chr1", 1, 10, "a")], seed=1)
        assert isinstance(strategy, PositionPool)
        assert strategy.name == "rm"

    def test_unknown(self):
        with pytest.raises(ValueError):
            get_strategy("genome", [])
