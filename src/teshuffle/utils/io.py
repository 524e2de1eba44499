"""File I/O utilities for teShuffle."""

import logging
import re
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

import pandas as pd

from teshuffle.models import GenomicInterval, ReferenceFeature, RepeatElement, Tss
from teshuffle.taxonomy import parse_class_family

logger = logging.getLogger(__name__)

BED_COLS = ["chrom", "start", "end", "name", "score", "strand"]
UCSC_GAP_COLS = ["bin", "chrom", "start", "end", "ix", "n", "size", "type", "bridge"]
GTF_COLS = ["chrom", "source", "feature", "start", "end", "score", "strand", "frame", "attributes"]
RM_OUT_COLS = [
    "score", "div", "del", "ins", "chrom", "qstart", "qend", "qleft",
    "strand", "name", "class_family", "rstart", "rend", "rleft", "rm_id", "overlapped",
]
AGE_COLS = ["name", "rclass", "family", "class_family", "div", "lineage", "age_category"]

TRANSCRIPT_FEATURES = {"transcript", "mRNA"}
_TRANSCRIPT_ID = re.compile(r'transcript_id "([^"]+)"|(?:^|;)\s*ID=([^;]+)')


def _require_file(filepath: Union[str, Path]) -> Path:
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"File not found: {filepath}")
    return filepath


def _read_table(filepath: Path, comment: Optional[str] = "#", **kwargs) -> pd.DataFrame:
    try:
        return pd.read_csv(filepath, sep="\t", header=None, comment=comment, **kwargs)
    except pd.errors.EmptyDataError:
        return pd.DataFrame(columns=kwargs.get("names", []))
    except (pd.errors.ParserError, ValueError) as e:
        raise ValueError(f"Could not parse {filepath}: {e}") from e


def load_bed(
    filepath: Union[str, Path],
    names: Optional[List[str]] = None,
) -> pd.DataFrame:
    """
    Load BED format file.

    Leading ``track``/``browser`` lines and ``#`` comments are skipped.

    Args:
        filepath: Path to BED file
        names: Column names (default: chrom, start, end, ...)

    Returns:
        DataFrame with BED data
    """
    filepath = _require_file(filepath)

    # Detect header lines and number of columns from the first data line
    n_cols = 0
    n_header = 0
    with open(filepath, "r") as f:
        for line in f:
            if line.strip() and not line.startswith(("#", "track", "browser")):
                n_cols = len(line.rstrip("\n").split("\t"))
                break
            n_header += 1

    if names is None:
        names = BED_COLS[:n_cols] + [f"col{i + 1}" for i in range(len(BED_COLS), n_cols)]

    if n_cols == 0:
        return pd.DataFrame(columns=names)

    # no comment character: repeat names may be name#class/family
    df = _read_table(
        filepath, comment=None, skiprows=n_header, keep_default_na=False,
        names=names, usecols=range(min(n_cols, len(names))),
    )
    df = df[~df["chrom"].astype(str).str.startswith(("track", "browser"))].copy()
    try:
        df["start"] = df["start"].astype(int)
        df["end"] = df["end"].astype(int)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Non-integer coordinates in {filepath}: {e}") from e
    df["chrom"] = df["chrom"].astype(str)
    logger.debug(f"Loaded {len(df)} records from {filepath.name}")
    return df


def save_bed(intervals: Iterable[GenomicInterval], filepath: Union[str, Path]) -> Path:
    """
    Write intervals as BED6. Repeat elements carry their id in the name column.

    Returns:
        Path written
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    rows = []
    for iv in intervals:
        if isinstance(iv, RepeatElement):
            name = iv.element_id
        elif isinstance(iv, ReferenceFeature):
            name = iv.key
        else:
            name = "."
        rows.append((iv.chrom, iv.start, iv.end, name, 0, iv.strand or "."))
    pd.DataFrame(rows, columns=BED_COLS).to_csv(filepath, sep="\t", index=False, header=False)
    return filepath


def load_features(filepath: Union[str, Path]) -> List[ReferenceFeature]:
    """
    Load the reference feature set (peaks, marks, ...) from BED.

    Features without a name get ``chrom:start-end`` as identifier.
    """
    df = load_bed(filepath)
    has_name = "name" in df.columns
    has_strand = "strand" in df.columns
    features = []
    for row in df.itertuples(index=False):
        name = str(row.name) if has_name and pd.notna(row.name) and row.name != "." else ""
        strand = row.strand if has_strand and row.strand in ("+", "-") else None
        features.append(
            ReferenceFeature(
                chrom=str(row.chrom),
                start=int(row.start),
                end=int(row.end),
                strand=strand,
                feature_id=name or f"{row.chrom}:{row.start}-{row.end}",
            )
        )

    ids = [f.feature_id for f in features]
    if len(set(ids)) != len(ids):
        # duplicated names would merge features in the dedup step
        features = [
            ReferenceFeature(f.chrom, f.start, f.end, f.strand, f"{f.feature_id}#{i}")
            for i, f in enumerate(features)
        ]
        logger.warning(f"Duplicated feature names in {filepath}, ids made unique by line")

    logger.info(f"Loaded {len(features)} features from {Path(filepath).name}")
    return features


def load_chrom_sizes(filepath: Union[str, Path]) -> Dict[str, int]:
    """Load a chromosome length table (``name<TAB>length``, e.g. *.chrom.sizes)."""
    filepath = _require_file(filepath)
    df = _read_table(filepath, names=["chrom", "length"], usecols=[0, 1])
    if len(df) and not pd.api.types.is_integer_dtype(df["length"]):
        raise ValueError(f"Non-integer chromosome length in {filepath}")
    sizes = dict(zip(df["chrom"].astype(str), df["length"].astype(int)))
    logger.info(f"Loaded {len(sizes)} chromosome lengths from {filepath.name}")
    return sizes


def _is_ucsc_gap_table(filepath: Path) -> bool:
    with open(filepath, "r") as f:
        for line in f:
            if line.strip() and not line.startswith("#"):
                fields = line.split("\t")
                return len(fields) >= 4 and fields[0].isdigit() and not fields[1].isdigit()
    return False


def load_regions(filepaths: Union[str, Path, Sequence[Union[str, Path]]]) -> List[GenomicInterval]:
    """
    Load and concatenate region files (assembly gaps, blacklists, inclusion windows).

    Each file may be BED or a UCSC gap table
    (bin, chrom, chromStart, chromEnd, ix, n, size, type, bridge).
    """
    if isinstance(filepaths, (str, Path)):
        filepaths = [filepaths]

    regions: List[GenomicInterval] = []
    for filepath in filepaths:
        filepath = _require_file(filepath)
        if _is_ucsc_gap_table(filepath):
            df = _read_table(filepath, names=UCSC_GAP_COLS[:4], usecols=[0, 1, 2, 3])
        else:
            df = load_bed(filepath)
        regions.extend(
            GenomicInterval(str(r.chrom), int(r.start), int(r.end))
            for r in df.itertuples(index=False)
        )
        logger.info(f"Loaded {len(df)} regions from {filepath.name}")
    return regions


def _repeat_from_bed_row(row, line: int) -> RepeatElement:
    # name column is name#class/family, or class/family is the 7th column
    if "#" in str(row.name):
        name, class_family = str(row.name).split("#", 1)
    elif len(row) > 6:
        name, class_family = str(row.name), str(row[6])
    else:
        raise ValueError(
            f"line {line}: repeat BED needs name#class/family in column 4 "
            "or class/family in column 7"
        )
    rclass, family = parse_class_family(class_family)
    strand = row.strand if len(row) > 5 and row.strand in ("+", "-") else None
    return RepeatElement(
        chrom=str(row.chrom),
        start=int(row.start),
        end=int(row.end),
        strand=strand,
        element_id=str(line),
        name=name,
        rclass=rclass,
        family=family,
    )


def load_repeats(filepath: Union[str, Path]) -> List[RepeatElement]:
    """
    Load repeat elements from a RepeatMasker ``.out`` file or a BED file.

    RepeatMasker coordinates are 1-based inclusive and converted to BED.
    Each fragment gets a stable id ``<RM id>_<line>`` (``<line>`` for BED).

    Returns:
        List of RepeatElement
    """
    filepath = _require_file(filepath)

    elements: List[RepeatElement] = []
    if filepath.suffix == ".out":
        try:
            df = pd.read_csv(
                filepath, sep=r"\s+", header=None, skiprows=3,
                names=RM_OUT_COLS, dtype={"chrom": str, "name": str, "class_family": str},
            )
        except pd.errors.EmptyDataError:
            df = pd.DataFrame(columns=RM_OUT_COLS)
        except pd.errors.ParserError as e:
            raise ValueError(f"Could not parse RepeatMasker file {filepath}: {e}") from e

        for line, row in enumerate(df.itertuples(index=False), start=4):
            try:
                rclass, family = parse_class_family(str(row.class_family))
                elements.append(
                    RepeatElement(
                        chrom=row.chrom,
                        start=int(row.qstart) - 1,
                        end=int(row.qend),
                        strand="-" if row.strand == "C" else "+",
                        element_id=f"{row.rm_id}_{line}",
                        name=row.name,
                        rclass=rclass,
                        family=family,
                    )
                )
            except (TypeError, ValueError) as e:
                raise ValueError(f"{filepath}: line {line}: {e}") from e
    else:
        df = load_bed(filepath)
        for line, row in enumerate(df.itertuples(index=False), start=1):
            try:
                elements.append(_repeat_from_bed_row(row, line))
            except (TypeError, ValueError) as e:
                raise ValueError(f"{filepath}: {e}") from e

    logger.info(f"Loaded {len(elements)} repeats from {filepath.name}")
    return elements


def load_tss(filepath: Union[str, Path]) -> List[Tss]:
    """
    Load unique TSS from transcript lines of a GTF or GFF3 file.

    TSS is the transcript start on + strand and its end on - strand,
    as a 0-based position.
    """
    filepath = _require_file(filepath)
    df = _read_table(filepath, names=GTF_COLS, dtype={"chrom": str})
    df = df[df["feature"].isin(TRANSCRIPT_FEATURES)]
    if df.empty:
        raise ValueError(f"No transcript lines in {filepath} (needed to load TSS)")

    seen = set()
    tss: List[Tss] = []
    for row in df.itertuples(index=False):
        strand = row.strand if row.strand in ("+", "-") else "+"
        position = int(row.start) - 1 if strand == "+" else int(row.end) - 1
        key = (row.chrom, position, strand)
        if key in seen:
            continue
        seen.add(key)
        match = _TRANSCRIPT_ID.search(str(row.attributes))
        transcript_id = (match.group(1) or match.group(2)) if match else None
        tss.append(Tss(row.chrom, position, strand, transcript_id))

    logger.info(f"Loaded {len(tss)} unique TSS from {filepath.name}")
    return tss


def load_te_ages(filepath: Union[str, Path]) -> Dict[str, Tuple[str, Optional[str]]]:
    """
    Load the TE age table.

    Columns: Rname, Rclass, Rfam, Rclass/Rfam, %div, lineage, age_category.
    Only Rname and lineage are required; age_category may be empty.

    Returns:
        Mapping name -> (lineage, age_category or None)
    """
    filepath = _require_file(filepath)
    df = _read_table(filepath, names=AGE_COLS, dtype=str)
    df = df[df["name"].str.lower() != "rname"]

    ages: Dict[str, Tuple[str, Optional[str]]] = {}
    for row in df.itertuples(index=False):
        if pd.isna(row.lineage) or row.lineage in ("", "na"):
            continue
        category = None if pd.isna(row.age_category) or row.age_category == "na" else row.age_category
        ages[row.name] = (row.lineage, category)

    logger.info(f"Loaded age data for {len(ages)} repeats from {filepath.name}")
    return ages
