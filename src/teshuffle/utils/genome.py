"""
Genome-level helper files built from a FASTA.

- chromosome length table (name, length), needed by random placement
- assembly gaps (runs of N), to exclude from random placement
"""

import gzip
import logging
import re
from pathlib import Path
from typing import Dict, Iterator, List, TextIO, Tuple, Union

import pandas as pd

from teshuffle.models import GenomicInterval
from teshuffle.utils.config import DEFAULT_MIN_GAP

logger = logging.getLogger(__name__)

_N_RUN = re.compile(r"[Nn]+")


def _open_fasta(path: Path) -> TextIO:
    if path.suffix == ".gz":
        return gzip.open(path, "rt")
    return open(path, "r")


def _iter_fasta_lines(path: Union[str, Path]) -> Iterator[Tuple[str, str]]:
    """Yield (sequence name, sequence line) without loading whole chromosomes."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"FASTA not found: {path}")

    name = None
    with _open_fasta(path) as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            if line.startswith(">"):
                name = line[1:].split()[0]
                yield name, ""
            elif name is None:
                raise ValueError(f"{path} does not look like FASTA (sequence before header)")
            else:
                yield name, line


def chrom_sizes_from_fasta(fasta_path: Union[str, Path]) -> Dict[str, int]:
    """Length of every sequence in a FASTA."""
    sizes: Dict[str, int] = {}
    for name, seq in _iter_fasta_lines(fasta_path):
        sizes[name] = sizes.get(name, 0) + len(seq)
    logger.info(f"Measured {len(sizes)} sequences in {Path(fasta_path).name}")
    return sizes


def gaps_from_fasta(
    fasta_path: Union[str, Path],
    min_gap: int = DEFAULT_MIN_GAP,
) -> List[GenomicInterval]:
    """
    Assembly gaps: runs of N (any case) longer than ``min_gap``.

    Runs split over several FASTA lines are joined.

    Args:
        fasta_path: Genome FASTA (.fa, .fasta, optionally .gz)
        min_gap: Runs of at most this many N are not gaps

    Returns:
        Gap intervals (BED coordinates)
    """
    gaps: List[GenomicInterval] = []
    current = None
    pos = 0
    run = None  # [start, end) of the N run being extended

    for name, seq in _iter_fasta_lines(fasta_path):
        if name != current:
            if run is not None and run[1] - run[0] > min_gap:
                gaps.append(GenomicInterval(current, run[0], run[1]))
            current, pos, run = name, 0, None
        for match in _N_RUN.finditer(seq):
            start, end = pos + match.start(), pos + match.end()
            if run is not None and run[1] == start:
                run[1] = end
                continue
            if run is not None and run[1] - run[0] > min_gap:
                gaps.append(GenomicInterval(current, run[0], run[1]))
            run = [start, end]
        pos += len(seq)
    if run is not None and run[1] - run[0] > min_gap:
        gaps.append(GenomicInterval(current, run[0], run[1]))

    logger.info(f"Found {len(gaps)} gaps (N runs > {min_gap} nt) in {Path(fasta_path).name}")
    return gaps


def write_chrom_sizes(sizes: Dict[str, int], output_path: Union[str, Path]) -> Path:
    """Write a ``name<TAB>length`` table."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    pd.DataFrame(list(sizes.items()), columns=["chrom", "length"]).to_csv(
        output_path, sep="\t", index=False, header=False
    )
    logger.info(f"Created genome range file: {output_path}")
    return output_path
