"""Tab-separated outputs: per-round detail files and the statistics table."""

import logging
from pathlib import Path
from typing import Dict, Optional, Union

import pandas as pd

from teshuffle import __version__
from teshuffle.overlap import RoundCounts
from teshuffle.stats import ExpectedStats
from teshuffle.taxonomy import TaxonomyPath
from teshuffle.utils.config import NOT_AVAILABLE, AnalysisConfig

logger = logging.getLogger(__name__)

DETAIL_COLUMNS = ["round", "Rclass", "Rfam", "Rname", "hits", "total_features", "unhit", "total_hits"]
STATS_COLUMNS = [
    "Rclass", "Rfam", "Rname",
    "obs_hits", "obs_pct", "obs_tot_hits", "n_trials",
    "exp_avg_hits", "exp_sd", "exp_pct", "exp_tot_hits_avg",
    "obs_rank", "perm_pvalue", "perm_significance",
    "binom_prob", "binom_ci", "binom_pvalue", "binom_significance",
]


class DetailWriter:
    """
    Append the counts of every round to one file per granularity.

    Files are ``<prefix>.<stream>.tab`` (Rclass, Rfam, Rname, age1, age2);
    a stream file is created with its header on its first row.
    """

    def __init__(self, prefix: Union[str, Path], n_features: int):
        self.prefix = Path(prefix)
        self.n_features = n_features
        self.paths: Dict[str, Path] = {}

    def __enter__(self) -> "DetailWriter":
        self.prefix.parent.mkdir(parents=True, exist_ok=True)
        for stale in self.prefix.parent.glob(f"{self.prefix.name}.*.tab"):
            stale.unlink()
        return self

    def __exit__(self, exc_type, exc, tb):
        if self.paths:
            logger.info(f"Detail files: {', '.join(p.name for p in self.paths.values())}")
        return False

    def write(self, counts: RoundCounts) -> None:
        for stream, records in counts.detail_records(self.n_features).items():
            if records:
                self._append(stream, records)

    def _append(self, stream: str, records) -> None:
        path = self.paths.get(stream)
        new = path is None
        if new:
            path = self.paths[stream] = Path(f"{self.prefix}.{stream}.tab")
        try:
            pd.DataFrame(records, columns=DETAIL_COLUMNS).to_csv(
                path, sep="\t", index=False, mode="w" if new else "a",
                header=new,
            )
        except OSError as e:
            raise OSError(f"Error while writing details to {path}: {e}") from e


def _pct(value: float, n_features: int) -> float:
    return value / n_features * 100 if n_features else 0.0


def _na(value: Optional[float]):
    return NOT_AVAILABLE if value is None else value


def stats_dataframe(result) -> pd.DataFrame:
    """
    One row per taxonomy path, aggregates first and age categories last.

    Args:
        result: EnrichmentResult of a run with bootstrap rounds
    """
    n_features = result.n_features
    rows = []
    for path in sorted(result.stats, key=TaxonomyPath.sort_key):
        st: ExpectedStats = result.stats[path]
        binomial = st.binomial
        rows.append({
            "Rclass": str(path.rclass),
            "Rfam": str(path.family),
            "Rname": str(path.name),
            "obs_hits": st.observed,
            "obs_pct": _pct(st.observed, n_features),
            "obs_tot_hits": result.observed.total_hits,
            "n_trials": st.n_trials,
            "exp_avg_hits": st.mean,
            "exp_sd": st.sd,
            "exp_pct": _pct(st.mean, n_features),
            "exp_tot_hits_avg": result.expected_total_hits,
            "obs_rank": st.rank,
            "perm_pvalue": _na(st.perm_pvalue),
            "perm_significance": st.perm_significance,
            "binom_prob": binomial.estimate if binomial else NOT_AVAILABLE,
            "binom_ci": f"{binomial.ci_low:.6g}-{binomial.ci_high:.6g}" if binomial else NOT_AVAILABLE,
            "binom_pvalue": binomial.pvalue if binomial else NOT_AVAILABLE,
            "binom_significance": st.binom_significance,
        })
    return pd.DataFrame(rows, columns=STATS_COLUMNS)


def _header_lines(result, config: Optional[AnalysisConfig]) -> list:
    midpoint = result.n_rounds / 2
    lines = [
        f"#teShuffle v{__version__}",
        "#Aggregated results and statistics",
        f"#Features in input file: {result.n_features}",
    ]
    if config is not None:
        lines.append(
            f"#Shuffle type: {config.shuffle_type}; minimum overlap: {config.min_overlap} nt; "
            f"seed: {config.seed}"
        )
        if config.te_filter:
            mode = "contains" if config.filter_contains else "exact"
            lines.append(f"#TE filter: {config.te_filter} ({mode}); non-TE: {config.non_te}")
    lines += [
        f"#Expected (exp) values from {result.n_rounds} bootstraps; sd = standard deviation",
        "#Two-tailed permutation test on the rank of the observed count among the bootstraps:",
        f"#  rank < {midpoint:g} and significant: fewer observed hits than expected",
        f"#  rank > {midpoint:g} and significant: more observed hits than expected",
        "#Binomial test: two-sided exact test, trials = number of repeats of the category "
        "in the genome, probability = exp_avg_hits / trials",
        f"#{NOT_AVAILABLE} = not available (no observed nor expected hit, or no genome count)",
    ]
    return lines


def write_stats_table(
    result,
    output_path: Union[str, Path],
    config: Optional[AnalysisConfig] = None,
) -> Path:
    """
    Write the statistics table, preceded by ``#`` lines describing the run.

    Args:
        result: EnrichmentResult
        output_path: Output TSV
        config: Run configuration, for the header

    Returns:
        Path written
    """
    output_path = Path(output_path)
    df = stats_dataframe(result)
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w") as f:
            for line in _header_lines(result, config):
                f.write(line + "\n")
            df.to_csv(f, sep="\t", index=False)
    except OSError as e:
        raise OSError(f"Error while writing stats to {output_path}: {e}") from e
    logger.info(f"Statistics of {len(df)} categories saved to {output_path}")
    return output_path
