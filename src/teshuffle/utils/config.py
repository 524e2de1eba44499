"""Configuration constants and run configuration for teShuffle."""

import json
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional

import yaml

# Default parameters
DEFAULT_MIN_OVERLAP = 10
DEFAULT_BOOTSTRAPS = 100
DEFAULT_MAX_TRIES = 10000
DEFAULT_EXCLUSION_OVERLAP = 0.03
DEFAULT_RANDOM_SEED = 42
DEFAULT_ROUND_RETRIES = 2
DEFAULT_MIN_GAP = 50

# Significance thresholds, strictest first
SIGNIFICANCE_LEVELS = [(0.001, "***"), (0.01, "**"), (0.05, "*")]
NOT_SIGNIFICANT = "ns"
NOT_AVAILABLE = "na"

SHUFFLE_TYPES = ("bed", "rm", "tss")

# Chromosomes covered by the built-in assemblies, in table order
PRIMARY_CHROMOSOMES = tuple(f"chr{i}" for i in range(1, 23)) + ("chrX", "chrY")

# Primary chromosome lengths of the built-in assemblies (UCSC names)
ASSEMBLY_LENGTHS = {
    "hg38": (
        248956422, 242193529, 198295559, 190214555, 181538259, 170805979,
        159345973, 145138636, 138394717, 133797422, 135086622, 133275309,
        114364328, 107043718, 101991189, 90338345, 83257441, 80373285,
        58617616, 64444167, 46709983, 50818468, 156040895, 57227415,
    ),
    "hg19": (
        249250621, 243199373, 198022430, 191154276, 180915260, 171115067,
        159138663, 146364022, 141213431, 135534747, 135006516, 133851895,
        115169878, 107349540, 102531392, 90354753, 81195210, 78077248,
        59128983, 63025520, 48129895, 51304566, 155270560, 59373566,
    ),
}

# GRC names of the built-in assemblies
ASSEMBLY_ALIASES = {"GRCh38": "hg38", "GRCh37": "hg19"}


def get_genome_sizes(assembly: str = "hg38") -> Dict[str, int]:
    """
    Primary chromosome lengths of a built-in assembly, as a new dict.

    Names are matched case-insensitively; GRCh38 and GRCh37 resolve to
    hg38 and hg19.

    Raises:
        ValueError: Unknown assembly
    """
    aliases = {alias.lower(): name for alias, name in ASSEMBLY_ALIASES.items()}
    key = assembly.strip().lower()
    key = aliases.get(key, key)
    if key not in ASSEMBLY_LENGTHS:
        known = ", ".join(f"{name} ({alias})" for alias, name in ASSEMBLY_ALIASES.items())
        raise ValueError(f"Unsupported assembly: {assembly}. Supported assemblies: {known}")
    return dict(zip(PRIMARY_CHROMOSOMES, ASSEMBLY_LENGTHS[key]))


@dataclass
class AnalysisConfig:
    """Parameters of one enrichment run."""

    # inputs
    features: Optional[str] = None
    repeats: Optional[str] = None
    shuffle_type: Optional[str] = None
    tss_annotation: Optional[str] = None
    genome_range: Optional[str] = None
    assembly: Optional[str] = None
    exclude: List[str] = field(default_factory=list)
    include: List[str] = field(default_factory=list)
    te_ages: Optional[str] = None

    # TE filtering
    te_filter: Optional[str] = None
    filter_contains: bool = False
    non_te: str = "no_low"

    # counting and rounds
    min_overlap: int = DEFAULT_MIN_OVERLAP
    n_bootstraps: int = DEFAULT_BOOTSTRAPS
    seed: Optional[int] = DEFAULT_RANDOM_SEED
    round_retries: int = DEFAULT_ROUND_RETRIES
    on_failure: str = "drop"

    # random placement
    max_tries: int = DEFAULT_MAX_TRIES
    exclusion_overlap: float = DEFAULT_EXCLUSION_OVERLAP
    no_overlaps: bool = False

    backend: str = "memory"
    output_dir: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> "AnalysisConfig":
        known = set(cls.__dataclass_fields__)
        unknown = sorted(set(d) - known)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {unknown}")
        return cls(**d)

    @classmethod
    def from_yaml(cls, path: str) -> "AnalysisConfig":
        with open(path, "r") as f:
            d = yaml.safe_load(f) or {}
        return cls.from_dict(d)

    def to_yaml(self, path: str):
        with open(path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False)

    @classmethod
    def from_json(cls, path: str) -> "AnalysisConfig":
        with open(path, "r") as f:
            d = json.load(f)
        return cls.from_dict(d)

    def to_json(self, path: str):
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

    def validate(self) -> list:
        """Check the configuration, return a list of problems (empty if valid)."""
        problems = []

        if not self.features:
            problems.append("features (reference BED) is required")
        if not self.repeats:
            problems.append("repeats (TE file) is required")
        if self.shuffle_type not in SHUFFLE_TYPES:
            problems.append(
                f"shuffle_type should be one of {list(SHUFFLE_TYPES)}, got: {self.shuffle_type}"
            )
        if self.shuffle_type == "tss" and not self.tss_annotation:
            problems.append("shuffle_type tss requires tss_annotation (gtf/gff)")
        if self.shuffle_type == "bed":
            if not (self.genome_range or self.assembly):
                problems.append("shuffle_type bed requires genome_range or assembly")
            if not self.exclude:
                problems.append("shuffle_type bed requires at least one exclude file (assembly gaps)")

        if self.min_overlap < 0:
            problems.append("min_overlap must be >= 0")
        if self.n_bootstraps < 0:
            problems.append("n_bootstraps must be >= 0")
        if self.round_retries < 0:
            problems.append("round_retries must be >= 0")
        if self.max_tries < 1:
            problems.append("max_tries must be >= 1")
        if not 0 <= self.exclusion_overlap <= 1:
            problems.append("exclusion_overlap must be in [0, 1]")
        if self.on_failure not in ("drop", "abort"):
            problems.append(f"on_failure should be drop or abort, got: {self.on_failure}")
        if self.backend not in ("memory", "bedtools"):
            problems.append(f"backend should be memory or bedtools, got: {self.backend}")
        if self.non_te not in ("all", "no_low", "no_nonTE", "none"):
            problems.append(f"non_te should be all, no_low, no_nonTE or none, got: {self.non_te}")

        return problems
