"""
teShuffle CLI - TE enrichment of genomic features by shuffling.

Usage:
    teshuffle <command> [options]
"""

import logging

import click

from teshuffle import __version__
from teshuffle.utils.config import (
    DEFAULT_BOOTSTRAPS,
    DEFAULT_EXCLUSION_OVERLAP,
    DEFAULT_MAX_TRIES,
    DEFAULT_MIN_GAP,
    DEFAULT_MIN_OVERLAP,
    DEFAULT_RANDOM_SEED,
    DEFAULT_ROUND_RETRIES,
    SHUFFLE_TYPES,
    AnalysisConfig,
)
from teshuffle.utils.logging_utils import setup_logger

# CLI option name -> AnalysisConfig field, for options that override a config file
_OVERRIDES = {
    "features": "features",
    "repeats": "repeats",
    "shuffle_type": "shuffle_type",
    "annotation": "tss_annotation",
    "genome_range": "genome_range",
    "assembly": "assembly",
    "exclude": "exclude",
    "include": "include",
    "ages": "te_ages",
    "te_filter": "te_filter",
    "contains": "filter_contains",
    "non_te": "non_te",
    "min_overlap": "min_overlap",
    "bootstraps": "n_bootstraps",
    "seed": "seed",
    "retries": "round_retries",
    "on_failure": "on_failure",
    "max_tries": "max_tries",
    "exclusion_overlap": "exclusion_overlap",
    "no_overlaps": "no_overlaps",
    "backend": "backend",
    "output": "output_dir",
}


@click.group()
@click.version_option(version=__version__, prog_name="teShuffle")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
@click.option("--log-file", type=click.Path(dir_okay=False), help="Also write the log to this file")
def main(verbose, log_file):
    """teShuffle - are features enriched or depleted in transposable elements?

    Overlaps of features with TEs are compared to overlaps with shuffled TEs,
    per TE class, family, name and age category.
    """
    setup_logger(log_file=log_file, level=logging.DEBUG if verbose else logging.INFO)


@main.command()
@click.option("-c", "--config", "config_file", type=click.Path(exists=True, dir_okay=False),
              help="YAML or JSON configuration; command-line options override it")
@click.option("-f", "--features", help="Reference features BED (non-overlapping)")
@click.option("-q", "--repeats", help="RepeatMasker .out or repeat BED")
@click.option("-s", "--shuffle-type", type=click.Choice(SHUFFLE_TYPES),
              help="bed: random placement; rm: permute repeat positions; tss: keep distance to TSS")
@click.option("-a", "--annotation", help="GTF/GFF to load TSS from (-s tss)")
@click.option("-r", "--genome-range", help="Chromosome length table (name, length)")
@click.option("--assembly", help="Built-in chromosome lengths (hg38, hg19) instead of -r")
@click.option("-e", "--exclude", multiple=True,
              help="Regions repeats may not be shuffled into (-s bed; gaps at least). Repeatable")
@click.option("-i", "--include", multiple=True, help="Only shuffle repeats inside these regions (-s bed)")
@click.option("-n", "--bootstraps", type=int, help=f"Number of bootstraps [{DEFAULT_BOOTSTRAPS}]")
@click.option("-l", "--ages", help="TE age table (Rname, Rclass, Rfam, Rclass/Rfam, %div, lineage, age_category)")
@click.option("-t", "--te-filter", help="Keep only repeats matching <name|class|family,value>")
@click.option("--contains", is_flag=True, help="-t value is a substring, not an exact match")
@click.option("-m", "--non-te", type=click.Choice(["all", "no_low", "no_nonTE", "none"]),
              help="Non-TE repeats to keep [no_low]")
@click.option("-w", "--min-overlap", type=int, help=f"Minimum overlap in nt [{DEFAULT_MIN_OVERLAP}]")
@click.option("--seed", type=int, help=f"Random seed [{DEFAULT_RANDOM_SEED}]")
@click.option("--retries", type=int, help=f"Retries of a failed round [{DEFAULT_ROUND_RETRIES}]")
@click.option("--on-failure", type=click.Choice(["drop", "abort"]),
              help="Repeats that cannot be placed: drop them for the round, or abort [drop]")
@click.option("--max-tries", type=int, help=f"Placement attempts per repeat (-s bed) [{DEFAULT_MAX_TRIES}]")
@click.option("--exclusion-overlap", type=float,
              help=f"Tolerated fraction of a repeat in excluded regions [{DEFAULT_EXCLUSION_OVERLAP}]")
@click.option("--no-overlaps", is_flag=True, help="Shuffled repeats may not overlap (-s bed)")
@click.option("--backend", type=click.Choice(["memory", "bedtools"]), help="Interval backend [memory]")
@click.option("-o", "--output", help="Output directory [.]")
@click.option("--save-config", type=click.Path(dir_okay=False), help="Write the effective configuration (YAML)")
def run(config_file, save_config, **options):
    """Shuffle repeats and test features for TE enrichment.

    Writes one detail file per level (Rclass, Rfam, Rname, age1, age2) with
    the counts of every round, and the statistics table.
    """
    from teshuffle.enrichment import run_shuffle_analysis

    try:
        config = _load_config(config_file)
        for option, value in options.items():
            if value is None or value is False or value == ():
                continue
            setattr(config, _OVERRIDES[option], list(value) if isinstance(value, tuple) else value)
        if save_config:
            config.to_yaml(save_config)
        run_shuffle_analysis(config)
    except (ValueError, RuntimeError, OSError) as e:
        raise click.ClickException(str(e)) from e


def _load_config(config_file) -> AnalysisConfig:
    if config_file is None:
        return AnalysisConfig()
    if config_file.endswith(".json"):
        return AnalysisConfig.from_json(config_file)
    return AnalysisConfig.from_yaml(config_file)


@main.command("genome-range")
@click.option("-g", "--genome", required=True, type=click.Path(exists=True, dir_okay=False),
              help="Genome FASTA (.fa, .fasta, optionally .gz)")
@click.option("-o", "--output", required=True, help="Output chromosome length table")
def genome_range(genome, output):
    """Build a chromosome length table from a genome FASTA."""
    from teshuffle.utils.genome import chrom_sizes_from_fasta, write_chrom_sizes

    try:
        write_chrom_sizes(chrom_sizes_from_fasta(genome), output)
    except (ValueError, OSError) as e:
        raise click.ClickException(str(e)) from e


@main.command()
@click.option("-g", "--genome", required=True, type=click.Path(exists=True, dir_okay=False),
              help="Genome FASTA (.fa, .fasta, optionally .gz)")
@click.option("-o", "--output", required=True, help="Output BED of assembly gaps")
@click.option("--min-gap", default=DEFAULT_MIN_GAP, show_default=True,
              help="Runs of N longer than this are gaps")
def gaps(genome, output, min_gap):
    """Find assembly gaps (runs of N) in a genome FASTA, for -e."""
    from teshuffle.utils.genome import gaps_from_fasta
    from teshuffle.utils.io import save_bed

    try:
        path = save_bed(gaps_from_fasta(genome, min_gap), output)
    except (ValueError, OSError) as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"Gaps written to {path}", err=True)


if __name__ == "__main__":
    main()
