"""
TE enrichment analysis by shuffling.

Round 0 counts the real repeats overlapping the reference features; rounds
1..N count shuffled repeats. The bootstrap distributions then give, for
every repeat class, family, name and age category, an expected count and
two significance tests.
"""

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from teshuffle.backend import BackendError, IntervalBackend, ShuffleConstraints, get_backend
from teshuffle.bootstrap import BootstrapAggregator
from teshuffle.filters import TEFilter, filter_repeats
from teshuffle.models import ReferenceFeature, RepeatElement, ShuffleResult
from teshuffle.overlap import OBSERVED_ROUND, OverlapCounter, RoundCounts, round_id
from teshuffle.report import DetailWriter, write_stats_table
from teshuffle.shuffle import PlacementError, ShuffleStrategy, get_strategy
from teshuffle.stats import ExpectedStats, StatisticsEngine
from teshuffle.taxonomy import TaxonomyPath, attach_ages, count_elements
from teshuffle.utils.config import DEFAULT_ROUND_RETRIES, AnalysisConfig, get_genome_sizes
from teshuffle.utils.io import (
    load_chrom_sizes,
    load_features,
    load_regions,
    load_repeats,
    load_te_ages,
    load_tss,
)
from teshuffle.utils.logging_utils import is_progress_round, log_run_header
from teshuffle.utils.validation import (
    ConfigurationError,
    check_bounds,
    require_valid,
    validate_file_exists,
)

logger = logging.getLogger(__name__)


@dataclass
class EnrichmentResult:
    """Everything a run produced."""
    n_features: int
    n_rounds: int
    observed: RoundCounts
    aggregator: BootstrapAggregator
    totals: Dict[TaxonomyPath, int]
    stats: Dict[TaxonomyPath, ExpectedStats] = field(default_factory=dict)
    dropped: Dict[int, int] = field(default_factory=dict)
    adjusted: Dict[int, int] = field(default_factory=dict)

    @property
    def expected_total_hits(self) -> float:
        total = self.stats.get(TaxonomyPath.total())
        return total.mean if total is not None else 0.0


def _with_retries(action: Callable, round_index: int, retries: int):
    """Run a round step, retrying backend failures."""
    for attempt in range(retries + 1):
        try:
            return action()
        except BackendError as e:
            if attempt == retries:
                raise BackendError(
                    f"Round {round_index} failed after {retries + 1} attempts: {e}"
                ) from e
            logger.warning(f"Round {round_index} failed ({e}), retrying")


def _element_key(element: RepeatElement) -> tuple:
    return (element.element_id, element.chrom, element.start, element.end)


def _report_failures(result: ShuffleResult, round_index: int, on_failure: str) -> None:
    if result.dropped:
        if on_failure == "abort":
            first = result.dropped[0]
            raise PlacementError(
                f"Round {round_index}: {len(result.dropped)} repeats could not be placed "
                f"(e.g. {first.element_id} {first.chrom}:{first.start}-{first.end})"
            )
        for element in result.dropped:
            logger.debug(f"Round {round_index}: dropped {element.element_id} ({element.chrom})")
        logger.info(f"Round {round_index}: {len(result.dropped)} repeats could not be placed")
    for adjustment in result.adjusted:
        logger.debug(
            f"Round {round_index}: {adjustment.element_id} {adjustment.reason} "
            f"({adjustment.requested_start} -> {adjustment.start})"
        )


def run_enrichment(
    features: Sequence[ReferenceFeature],
    repeats: Sequence[RepeatElement],
    strategy: ShuffleStrategy,
    counter: OverlapCounter,
    n_rounds: int,
    totals: Optional[Dict[TaxonomyPath, int]] = None,
    engine: Optional[StatisticsEngine] = None,
    on_failure: str = "drop",
    round_retries: int = DEFAULT_ROUND_RETRIES,
    on_round: Optional[Callable[[RoundCounts], None]] = None,
) -> EnrichmentResult:
    """
    Count the observed round and N shuffled rounds, then compute statistics.

    Args:
        features: Reference features (non-overlapping)
        repeats: Real repeat elements, already filtered. Repeats the strategy can
            never place are left out of every round and of the totals
        strategy: Shuffle strategy built on the same repeats
        counter: Overlap counter
        n_rounds: Number of bootstrap rounds N (0: observed counts only)
        totals: Genome-wide element counts per path (default: counted on ``repeats``)
        engine: Statistics engine (default: scipy binomial test)
        on_failure: "drop" unplaceable repeats for the round, or "abort" the run
        round_retries: Retries of a round whose backend call failed
        on_round: Called with the counts of every round, observed first

    Returns:
        EnrichmentResult

    Raises:
        PlacementError: A repeat could not be placed and on_failure is "abort"
        ConfigurationError: The strategy can place none of the repeats
        BackendError: A round still failed after its retries
    """
    if on_failure not in ("drop", "abort"):
        raise ConfigurationError(f"on_failure should be drop or abort, got: {on_failure}")
    if n_rounds < 0:
        raise ConfigurationError(f"Number of bootstrap rounds must be >= 0, got {n_rounds}")
    placeable = [e for e in repeats if strategy.can_place(e)]
    excluded = {_element_key(e) for e in repeats if not strategy.can_place(e)}
    if not placeable:
        raise ConfigurationError(f"None of the {len(repeats)} repeats can be shuffled by {strategy.name}")
    if excluded:
        logger.warning(
            f"{len(excluded)} repeats can never be shuffled by {strategy.name}; "
            f"left out of the observed round and the totals"
        )
    repeats = placeable
    if totals is None:
        totals = count_elements(repeats)
    engine = engine or StatisticsEngine()

    aggregator = BootstrapAggregator(n_rounds)
    observed = _with_retries(
        lambda: counter.count(repeats, features, OBSERVED_ROUND), OBSERVED_ROUND, round_retries
    )
    aggregator.fold(observed)
    if on_round is not None:
        on_round(observed)
    logger.info(
        f"Observed: {observed.total_hits} of {len(features)} features overlap a repeat"
    )

    dropped: Dict[int, int] = {}
    adjusted: Dict[int, int] = {}
    for round_index in range(1, n_rounds + 1):

        def one_round(i=round_index):
            shuffled = strategy.generate(i)
            if excluded:
                shuffled = replace(
                    shuffled,
                    dropped=[e for e in shuffled.dropped if _element_key(e) not in excluded],
                )
            _report_failures(shuffled, i, on_failure)
            return shuffled, counter.count(shuffled.elements, features, i)

        shuffled, counts = _with_retries(one_round, round_index, round_retries)
        dropped[round_index] = len(shuffled.dropped)
        adjusted[round_index] = len(shuffled.adjusted)
        aggregator.fold(counts)
        if on_round is not None:
            on_round(counts)
        if is_progress_round(round_index):
            logger.info(f"{round_id(round_index)} done ({round_index}/{n_rounds})")

    stats = engine.compute(observed.counts, aggregator.distributions(), totals, n_rounds)
    return EnrichmentResult(
        n_features=len(features),
        n_rounds=n_rounds,
        observed=observed,
        aggregator=aggregator,
        totals=totals,
        stats=stats,
        dropped=dropped,
        adjusted=adjusted,
    )


def _validate_inputs(config: AnalysisConfig) -> None:
    """Fail before any round: every problem of the configuration and its files."""
    require_valid(config.validate())
    validate_file_exists(config.features, "Reference features")
    validate_file_exists(config.repeats, "Repeat file")
    if config.shuffle_type == "tss":
        validate_file_exists(config.tss_annotation, "TSS annotation")
    if config.genome_range:
        validate_file_exists(config.genome_range, "Genome range file")
    for path in config.exclude:
        validate_file_exists(path, "Exclusion file")
    for path in config.include:
        validate_file_exists(path, "Inclusion file")
    if config.te_ages:
        validate_file_exists(config.te_ages, "TE age file")


def _load(description: str, loader: Callable, *args):
    try:
        return loader(*args)
    except (FileNotFoundError, ValueError) as e:
        raise ConfigurationError(f"Error while {description}: {e}") from e


def _chrom_sizes(config: AnalysisConfig) -> Optional[Dict[str, int]]:
    if config.genome_range:
        return _load("loading genome range", load_chrom_sizes, config.genome_range)
    if config.assembly:
        try:
            return get_genome_sizes(config.assembly)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
    return None


def build_strategy(
    config: AnalysisConfig,
    repeats: List[RepeatElement],
    backend: IntervalBackend,
    chrom_sizes: Optional[Dict[str, int]],
) -> ShuffleStrategy:
    """Create the strategy of ``config.shuffle_type`` with its inputs."""
    if config.shuffle_type == "bed":
        constraints = ShuffleConstraints(
            chrom_sizes=chrom_sizes or {},
            exclude=_load("loading exclusion regions", load_regions, config.exclude),
            include=_load("loading inclusion regions", load_regions, config.include)
            if config.include else None,
            exclusion_overlap=config.exclusion_overlap,
            max_tries=config.max_tries,
            no_overlaps=config.no_overlaps,
        )
        return get_strategy(
            "bed", repeats, constraints=constraints, backend=backend, seed=config.seed
        )
    if config.shuffle_type == "rm":
        return get_strategy("rm", repeats, seed=config.seed, chrom_sizes=chrom_sizes)
    if config.shuffle_type == "tss":
        tss = _load("loading TSS", load_tss, config.tss_annotation)
        return get_strategy("tss", repeats, tss=tss, seed=config.seed)
    raise ConfigurationError(f"Unknown shuffle type: {config.shuffle_type}")


def output_prefix(config: AnalysisConfig) -> Path:
    """Common path prefix of the output files."""
    name = (
        f"{Path(config.features).stem}.{Path(config.repeats).stem}"
        f".{config.shuffle_type}.{config.n_bootstraps}boot"
    )
    if config.te_filter:
        name += "." + config.te_filter.replace(",", "_")
    return Path(config.output_dir or ".") / name


def run_shuffle_analysis(config: AnalysisConfig) -> EnrichmentResult:
    """
    Run a full analysis from files and write the detail and statistics tables.

    Args:
        config: Run configuration

    Returns:
        EnrichmentResult

    Raises:
        ConfigurationError: Invalid configuration or unreadable input
    """
    _validate_inputs(config)
    log_run_header(logger, **config.to_dict())

    features = _load("loading features", load_features, config.features)
    if not features:
        raise ConfigurationError(f"No features in {config.features}")
    repeats = _load("loading repeats", load_repeats, config.repeats)
    if config.te_ages:
        repeats = attach_ages(repeats, _load("loading TE ages", load_te_ages, config.te_ages))

    try:
        te_filter = TEFilter.parse(config.te_filter, config.filter_contains) if config.te_filter else None
    except ValueError as e:
        raise ConfigurationError(str(e)) from e
    repeats = filter_repeats(repeats, te_filter, config.non_te)
    if not repeats:
        raise ConfigurationError(f"No repeats left in {config.repeats} after filtering")

    chrom_sizes = _chrom_sizes(config)
    if chrom_sizes:
        check_bounds(features, chrom_sizes, "features")
    try:
        backend = get_backend(config.backend)
    except RuntimeError as e:
        raise ConfigurationError(str(e)) from e
    strategy = build_strategy(config, repeats, backend, chrom_sizes)
    counter = OverlapCounter(backend, config.min_overlap)

    prefix = output_prefix(config)
    logger.info(f"Writing results to {prefix}.*")
    with DetailWriter(prefix, len(features)) as details:
        result = run_enrichment(
            features,
            repeats,
            strategy,
            counter,
            config.n_bootstraps,
            on_failure=config.on_failure,
            round_retries=config.round_retries,
            on_round=details.write,
        )

    if config.n_bootstraps > 0:
        write_stats_table(result, f"{prefix}.stats.tsv", config)
    n_dropped = sum(result.dropped.values())
    if n_dropped:
        logger.info(f"{n_dropped} placements dropped over {config.n_bootstraps} rounds")
    logger.info("Analysis complete")
    return result
