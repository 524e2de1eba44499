"""Utility modules for teShuffle."""

from teshuffle.utils.config import (
    DEFAULT_BOOTSTRAPS,
    DEFAULT_MIN_OVERLAP,
    DEFAULT_RANDOM_SEED,
    SHUFFLE_TYPES,
    AnalysisConfig,
    get_genome_sizes,
)
from teshuffle.utils.io import (
    load_bed,
    load_chrom_sizes,
    load_features,
    load_regions,
    load_repeats,
    load_te_ages,
    load_tss,
    save_bed,
)
from teshuffle.utils.validation import (
    ConfigurationError,
    check_bounds,
    missing_chromosomes,
    require_valid,
    validate_file_exists,
)
from teshuffle.utils.logging_utils import setup_logger
from teshuffle.utils.genome import (
    chrom_sizes_from_fasta,
    gaps_from_fasta,
    write_chrom_sizes,
)
from teshuffle.utils.subprocess_utils import (
    check_tool_installed,
    require_tools,
    run_command,
)
