"""
Statistics on the bootstrap distributions.

Two tests per taxonomy path:

- two-tailed permutation test: rank of the observed count among the
  bootstrap counts
- binomial test: observed count against the genome-wide number of elements
  of the path, with the bootstrap mean as expected number of successes
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Mapping, NamedTuple, Optional, Sequence

import numpy as np
from scipy import stats

from teshuffle.taxonomy import TaxonomyPath
from teshuffle.utils.config import NOT_AVAILABLE, NOT_SIGNIFICANT, SIGNIFICANCE_LEVELS

logger = logging.getLogger(__name__)


class BinomialResult(NamedTuple):
    """Outcome of a binomial test."""
    estimate: float
    ci_low: float
    ci_high: float
    pvalue: float


class StatisticsProvider(ABC):
    """Source of the binomial test."""

    @abstractmethod
    def binomial_test(self, x: int, n: int, p: float) -> BinomialResult:
        """Two-sided test of ``x`` successes in ``n`` trials with probability ``p``."""


class ScipyStatisticsProvider(StatisticsProvider):
    """Exact binomial test from scipy, with Clopper-Pearson confidence interval."""

    def __init__(self, confidence_level: float = 0.95):
        self.confidence_level = confidence_level

    def binomial_test(self, x: int, n: int, p: float) -> BinomialResult:
        result = stats.binomtest(int(x), int(n), float(p), alternative="two-sided")
        ci = result.proportion_ci(confidence_level=self.confidence_level, method="exact")
        return BinomialResult(
            estimate=x / n,
            ci_low=float(ci.low),
            ci_high=float(ci.high),
            pvalue=float(result.pvalue),
        )


def significance(pvalue: Optional[float]) -> str:
    """Stars for a p-value: *** < 0.001, ** < 0.01, * < 0.05, else ns; na if unavailable."""
    if pvalue is None:
        return NOT_AVAILABLE
    for threshold, label in SIGNIFICANCE_LEVELS:
        if pvalue < threshold:
            return label
    return NOT_SIGNIFICANT


def observed_rank(observed: int, values: Sequence[int]) -> int:
    """
    Rank of the observed value among the bootstrap values.

    Starts at 1 and goes up by one for every bootstrap value lower than or
    equal to the observed one, so the rank is in [1, N + 1].
    """
    rank = 1
    for value in sorted(values):
        if value > observed:
            break
        rank += 1
    return rank


def permutation_pvalue(rank: int, n_rounds: int) -> float:
    """Two-tailed p-value from the rank, capped at 1."""
    if rank <= n_rounds / 2:
        pvalue = rank * 2 / n_rounds
    else:
        pvalue = (n_rounds + 2 - rank) * 2 / n_rounds
    return min(pvalue, 1.0)


@dataclass
class ExpectedStats:
    """Observed and expected counts of one taxonomy path, with both tests."""
    path: TaxonomyPath
    observed: int = 0
    mean: float = 0.0
    sd: float = 0.0
    rank: Optional[int] = None
    perm_pvalue: Optional[float] = None
    n_trials: int = 0
    binomial: Optional[BinomialResult] = None

    @property
    def perm_significance(self) -> str:
        return significance(self.perm_pvalue)

    @property
    def binom_pvalue(self) -> Optional[float]:
        return self.binomial.pvalue if self.binomial is not None else None

    @property
    def binom_significance(self) -> str:
        return significance(self.binom_pvalue)


class StatisticsEngine:
    """
    Compute ExpectedStats for every path.

    Args:
        provider: Binomial test implementation (default: scipy)
    """

    def __init__(self, provider: Optional[StatisticsProvider] = None):
        self.provider = provider or ScipyStatisticsProvider()

    def compute(
        self,
        observed: Mapping[TaxonomyPath, int],
        distributions: Mapping[TaxonomyPath, List[int]],
        totals: Mapping[TaxonomyPath, int],
        n_rounds: int,
    ) -> Dict[TaxonomyPath, ExpectedStats]:
        """
        Statistics of every path seen in the observed round or the bootstraps.

        Args:
            observed: Observed counts per path
            distributions: Bootstrap counts per path, N values each
            totals: Genome-wide number of elements per path (binomial trials)
            n_rounds: Number of bootstrap rounds N

        Returns:
            Mapping path -> ExpectedStats; empty when N is 0
        """
        if n_rounds == 0:
            logger.info("No bootstrap rounds: statistics skipped")
            return {}

        results: Dict[TaxonomyPath, ExpectedStats] = {}
        no_trials = []
        for path in set(observed) | set(distributions):
            values = distributions.get(path) or [0] * n_rounds
            if len(values) != n_rounds:
                raise ValueError(
                    f"Distribution of {path.labels()} has {len(values)} values, expected {n_rounds}"
                )
            result = self._path_stats(path, observed.get(path, 0), values, totals.get(path, 0))
            if result.n_trials == 0:
                no_trials.append(path)
            results[path] = result

        if no_trials:
            logger.warning(
                f"{len(no_trials)} categories have no genome-wide count "
                f"(e.g. {'/'.join(no_trials[0].labels())}): no binomial test for them"
            )
        return results

    def _path_stats(
        self,
        path: TaxonomyPath,
        observed: int,
        values: List[int],
        n_trials: int,
    ) -> ExpectedStats:
        n_rounds = len(values)
        arr = np.asarray(values, dtype=float)
        mean = float(arr.mean())
        sd = float(arr.std(ddof=1)) if n_rounds > 1 else 0.0

        rank = observed_rank(observed, values)
        pvalue = None
        if observed != 0 or mean != 0:
            pvalue = permutation_pvalue(rank, n_rounds)

        binomial = None
        if n_trials > 0 and observed <= n_trials:
            p = mean / n_trials
            if p <= 1:
                binomial = self.provider.binomial_test(observed, n_trials, p)

        return ExpectedStats(
            path=path,
            observed=observed,
            mean=mean,
            sd=sd,
            rank=rank,
            perm_pvalue=pvalue,
            n_trials=n_trials,
            binomial=binomial,
        )
