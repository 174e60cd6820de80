"""
Shared genomic utilities for hic2genes.

Provides the interval primitives the linker and annotator are built on:
NCLS-backed (Nested Containment List) overlap detection and a nearest-target
distance search, both computed per chromosome so that intervals on different
chromosomes are never compared.

Also contains shared helpers for chromosome naming, chromosome sorting and
tabular parsing of peak and interaction files.

All coordinates are 0-based, half-open (BED convention).
"""

import io
import logging
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd
from ncls import NCLS

from ..config import settings
from .exceptions import (
    InteractionFileFormatError,
    InvalidIntervalError,
    InvalidParameterError,
    MissingRequiredFieldError,
    PeakFileFormatError,
    SeqlevelsStyleError,
    validate_dataframe,
)

logger = logging.getLogger(__name__)

HIT_COLUMNS = ["query_idx", "subject_idx", "overlap_bp"]
NEAREST_COLUMNS = ["query_idx", "subject_idx", "distance"]


def _empty_hits(columns: List[str]) -> pd.DataFrame:
    return pd.DataFrame({col: pd.Series(dtype=np.int64) for col in columns})


# ============================================================================
# Core overlap functions
# ============================================================================


def _build_ncls_index(
    starts: np.ndarray, ends: np.ndarray
) -> NCLS:
    """Build an NCLS index from start/end arrays."""
    ids = np.arange(len(starts), dtype=np.int64)
    return NCLS(
        starts.astype(np.int64),
        ends.astype(np.int64),
        ids,
    )


def find_overlaps(
    query_df: pd.DataFrame,
    subject_df: pd.DataFrame,
    chrom_col: str = "chr",
    start_col: str = "start",
    end_col: str = "end",
    min_overlap_bp: int = 1,
    min_overlap_frac: float = 0.0,
    report: str = "all",
) -> pd.DataFrame:
    """Find overlapping intervals between two DataFrames.

    Every same-chromosome pair sharing at least ``min_overlap_bp`` bases is
    reported; nothing is sampled or deduplicated, and strand is ignored.

    Parameters
    ----------
    query_df : pd.DataFrame
        Query intervals (the "left" set).
    subject_df : pd.DataFrame
        Subject intervals (the "right" set to search against).
    chrom_col : str
        Column name for chromosome in both DataFrames.
    start_col, end_col : str
        Column names for interval boundaries.
    min_overlap_bp : int
        Minimum overlap in base pairs (default 1). Values below 1 are
        treated as 1: a hit always shares at least one base.
    min_overlap_frac : float
        Minimum overlap as a fraction of the *query* interval length
        (0.0–1.0, default 0.0 = any overlap).
    report : str
        "all" – return all overlapping pairs.
        "first" – return only the first hit per query.
        "count" – return a count of overlaps per query.

    Returns
    -------
    pd.DataFrame
        If report="all" or "first": DataFrame with columns
            [query_idx, subject_idx, overlap_bp], where the indices are
            row positions (not index labels) in the inputs.
        If report="count": DataFrame with columns
            [query_idx, count], one row per query.
    """
    if report not in ("all", "first", "count"):
        raise InvalidParameterError("report", report, "'all', 'first' or 'count'")

    min_overlap_bp = max(1, int(min_overlap_bp))

    if query_df.empty or subject_df.empty:
        if report == "count":
            return pd.DataFrame({"query_idx": np.arange(len(query_df), dtype=np.int64), "count": 0})
        return _empty_hits(HIT_COLUMNS)

    query = query_df.reset_index(drop=True)
    subject = subject_df.reset_index(drop=True)

    results: List[Tuple[int, int, int]] = []

    # Group by chromosome for both sets
    query_groups = query.groupby(chrom_col, sort=False)
    subject_groups = {name: grp for name, grp in subject.groupby(chrom_col, sort=False)}

    for chrom, q_grp in query_groups:
        if chrom not in subject_groups:
            continue
        s_grp = subject_groups[chrom]

        q_starts = q_grp[start_col].values
        q_ends = q_grp[end_col].values
        q_indices = q_grp.index.values

        s_starts = s_grp[start_col].values
        s_ends = s_grp[end_col].values
        s_indices = s_grp.index.values

        ncls = _build_ncls_index(s_starts, s_ends)
        n_before = len(results)
        for i in range(len(q_starts)):
            qs, qe = int(q_starts[i]), int(q_ends[i])
            q_len = qe - qs
            # NCLS.find_overlap returns an iterator of (start, end, id) tuples
            hits = sorted(ncls.find_overlap(qs, qe), key=lambda h: h[2])
            for _s_start, _s_end, s_local_idx in hits:
                ovlp = min(qe, int(_s_end)) - max(qs, int(_s_start))
                if ovlp < min_overlap_bp:
                    continue
                if min_overlap_frac > 0 and q_len > 0 and ovlp / q_len < min_overlap_frac:
                    continue
                results.append((int(q_indices[i]), int(s_indices[int(s_local_idx)]), ovlp))
                if report == "first":
                    break
        logger.debug(f"{chrom}: {len(results) - n_before} overlaps")

    if report == "count":
        counts = np.zeros(len(query), dtype=np.int64)
        for q_idx, _, _ in results:
            counts[q_idx] += 1
        return pd.DataFrame({"query_idx": np.arange(len(query), dtype=np.int64), "count": counts})

    if not results:
        return _empty_hits(HIT_COLUMNS)

    hits_df = pd.DataFrame(results, columns=HIT_COLUMNS).astype(np.int64)
    return hits_df.sort_values(["query_idx", "subject_idx"], kind="mergesort").reset_index(drop=True)


def distance_to_nearest(
    query_df: pd.DataFrame,
    subject_df: pd.DataFrame,
    chrom_col: str = "chr",
    start_col: str = "start",
    end_col: str = "end",
) -> pd.DataFrame:
    """Find the single nearest subject interval for every query interval.

    Distance is 0 when the intervals overlap or are book-ended, otherwise
    the number of bases in the gap between them. Queries on a chromosome
    with no subjects are absent from the result.

    When several subjects are equally near, the one with the lowest
    (start, end, row position) wins.

    Subjects are sorted once per chromosome; each query then needs two
    binary searches, one into the sorted starts and one into the running
    maximum of the ends.

    Returns
    -------
    pd.DataFrame
        Columns [query_idx, subject_idx, distance], at most one row per query.
    """
    if query_df.empty or subject_df.empty:
        return _empty_hits(NEAREST_COLUMNS)

    query = query_df.reset_index(drop=True)
    subject = subject_df.reset_index(drop=True)

    parts = []
    subject_groups = {name: grp for name, grp in subject.groupby(chrom_col, sort=False)}

    for chrom, q_grp in query.groupby(chrom_col, sort=False):
        s_grp = subject_groups.get(chrom)
        if s_grp is None:
            continue

        order = np.lexsort((
            s_grp.index.values,
            s_grp[end_col].values,
            s_grp[start_col].values,
        ))
        s_starts = s_grp[start_col].values[order].astype(np.int64)
        s_ends = s_grp[end_col].values[order].astype(np.int64)
        s_indices = s_grp.index.values[order]
        # end_max[k] = largest end among the first k+1 subjects
        end_max = np.maximum.accumulate(s_ends)
        n_subjects = len(s_starts)

        q_starts = q_grp[start_col].values.astype(np.int64)
        q_ends = q_grp[end_col].values.astype(np.int64)

        # Subjects from `right` onwards start at or after the query end
        right = np.searchsorted(s_starts, q_ends, side="left")
        has_right = right < n_subjects
        right_pos = np.minimum(right, n_subjects - 1)
        right_dist = np.where(has_right, s_starts[right_pos] - q_ends, np.iinfo(np.int64).max)

        # Subjects before `right` can only be reached through their end;
        # the first one whose end reaches min(q.start, max end) is nearest
        has_left = right > 0
        left_max = end_max[np.maximum(right - 1, 0)]
        left_pos = np.searchsorted(end_max, np.minimum(q_starts, left_max), side="left")
        left_pos = np.minimum(left_pos, n_subjects - 1)
        left_dist = np.where(has_left, np.maximum(0, q_starts - s_ends[left_pos]), np.iinfo(np.int64).max)

        # Left candidates sort before right ones, so they win ties
        use_left = has_left & (left_dist <= right_dist)
        nearest = np.where(use_left, left_pos, right_pos)
        parts.append(pd.DataFrame({
            "query_idx": q_grp.index.values.astype(np.int64),
            "subject_idx": s_indices[nearest].astype(np.int64),
            "distance": np.where(use_left, left_dist, right_dist).astype(np.int64),
        }))

    if not parts:
        return _empty_hits(NEAREST_COLUMNS)

    nearest_df = pd.concat(parts, ignore_index=True)
    return nearest_df.sort_values("query_idx", kind="mergesort").reset_index(drop=True)


def validate_intervals(
    df: pd.DataFrame,
    name: str = "intervals",
    chrom_col: str = "chr",
    start_col: str = "start",
    end_col: str = "end",
) -> pd.DataFrame:
    """Check coordinate columns and return a copy with integer coordinates.

    Raises
    ------
    MissingRequiredFieldError
        If a coordinate column is absent.
    InvalidIntervalError
        On a missing chromosome, a non-integer coordinate, a negative start,
        or start > end. The first offending record is named.
    """
    validate_dataframe(df, name, required_columns=[chrom_col, start_col, end_col])
    df = df.copy()

    null_chrom = df[chrom_col].isna()
    if null_chrom.any():
        raise InvalidIntervalError("missing chromosome", name, df.index[null_chrom.values][0])
    df[chrom_col] = df[chrom_col].astype(str)

    for col in (start_col, end_col):
        coords = pd.to_numeric(df[col], errors="coerce")
        bad = coords.isna() | (coords != np.floor(coords))
        if bad.any():
            idx = df.index[bad.values][0]
            raise InvalidIntervalError(f"non-integer {col} {df.at[idx, col]!r}", name, idx)
        df[col] = coords.astype(np.int64)

    negative = df[start_col] < 0
    if negative.any():
        raise InvalidIntervalError(f"negative {start_col}", name, df.index[negative.values][0])

    inverted = df[start_col] > df[end_col]
    if inverted.any():
        idx = df.index[inverted.values][0]
        raise InvalidIntervalError(
            f"{start_col} {df.at[idx, start_col]} > {end_col} {df.at[idx, end_col]}", name, idx
        )

    return df


# ============================================================================
# Chromosome utilities
# ============================================================================

_SPECIAL_CHROM_ORDER = {"X": 23, "Y": 24, "M": 25, "MT": 25}


def _chrom_sort_key(c: str) -> Tuple[int, str]:
    stripped = c[3:] if c.startswith("chr") else c
    if stripped.isdigit():
        return (int(stripped), c)
    return (_SPECIAL_CHROM_ORDER.get(stripped, 100), c)


def sort_chromosomes(chroms: List[str]) -> List[str]:
    """Sort chromosome names in natural order (1,2,...,22,X,Y,M)."""
    return sorted(chroms, key=_chrom_sort_key)


def sort_intervals(
    df: pd.DataFrame,
    chrom_col: str = "chr",
    start_col: str = "start",
    end_col: str = "end",
    tiebreak: Optional[List[str]] = None,
) -> pd.DataFrame:
    """Sort intervals by natural chromosome order, then start, then end.

    ``tiebreak`` columns are appended to the sort keys; the sort is stable.
    """
    if df.empty:
        return df.reset_index(drop=True)
    rank = {c: i for i, c in enumerate(sort_chromosomes(list(df[chrom_col].unique())))}
    keys = ["_chrom_rank", start_col, end_col] + list(tiebreak or [])
    return (
        df.assign(_chrom_rank=df[chrom_col].map(rank))
        .sort_values(keys, kind="mergesort")
        .drop(columns="_chrom_rank")
        .reset_index(drop=True)
    )


def detect_seqlevels_style(chroms: Iterable[str]) -> str:
    """Classify chromosome names as "UCSC" (chr1), "NCBI" (1) or "mixed".

    Returns "unknown" when there is nothing to classify.
    """
    names = pd.unique(pd.Series(list(chroms), dtype=object).dropna().astype(str))
    if len(names) == 0:
        return "unknown"
    prefixed = [n.startswith("chr") for n in names]
    if all(prefixed):
        return "UCSC"
    if not any(prefixed):
        return "NCBI"
    return "mixed"


def check_seqlevels_style(named_chroms: Dict[str, Iterable[str]]) -> str:
    """Fail fast when inputs do not share one chromosome naming style.

    Parameters
    ----------
    named_chroms : dict
        Input name -> chromosome names used by that input.

    Returns
    -------
    str
        The shared style ("unknown" if every input is empty).

    Raises
    ------
    SeqlevelsStyleError
        If any input mixes styles, or two inputs use different styles.
    """
    styles = {name: detect_seqlevels_style(chroms) for name, chroms in named_chroms.items()}
    known = {name: style for name, style in styles.items() if style != "unknown"}
    if "mixed" in known.values() or len(set(known.values())) > 1:
        raise SeqlevelsStyleError(known)
    return next(iter(known.values()), "unknown")


def normalize_seqlevels(df: pd.DataFrame, style: Optional[str] = None, chrom_col: str = "chr") -> pd.DataFrame:
    """Rewrite chromosome names to one naming style.

    ``style`` defaults to ``settings.default_seqlevels_style``.

    UCSC: ``1`` -> ``chr1``, ``MT`` -> ``chrM``.
    NCBI: ``chr1`` -> ``1``, ``chrM`` -> ``MT``.
    """
    style = style or settings.default_seqlevels_style
    if style not in ("UCSC", "NCBI"):
        raise InvalidParameterError("style", style, "'UCSC' or 'NCBI'")

    df = df.copy()
    chroms = df[chrom_col].astype(str)
    stripped = chroms.str.replace(r"^chr", "", regex=True)
    if style == "UCSC":
        df[chrom_col] = "chr" + stripped.replace({"MT": "M"})
    else:
        df[chrom_col] = stripped.replace({"M": "MT"})
    return df


def filter_standard_chroms(df: pd.DataFrame, chrom_col: str = "chr") -> pd.DataFrame:
    """Filter to standard chromosomes (1-22, X, Y), removing random/Un/hap."""
    names = [str(i) for i in range(1, 23)] + ["X", "Y"]
    standard = set(names) | {f"chr{n}" for n in names}
    return df[df[chrom_col].isin(standard)].copy()


# ============================================================================
# Tabular parsing utilities
# ============================================================================

# Standard column name mappings
CHROM_COLS = ["chr", "chrom", "chromosome", "seqnames", "#chr"]
START_COLS = ["start", "chromStart", "peak_start"]
END_COLS = ["end", "chromEnd", "peak_end"]
SIGNAL_COLS = ["signal", "signalValue", "score", "fold_enrichment", "enrichment"]

INTERACTION_COLS = {
    "chr1": ["chr1", "chrom1", "seqnames1", "#chr1", "bait_chr"],
    "start1": ["start1", "chromStart1", "bait_start"],
    "end1": ["end1", "chromEnd1", "bait_end"],
    "chr2": ["chr2", "chrom2", "seqnames2", "oe_chr"],
    "start2": ["start2", "chromStart2", "oe_start"],
    "end2": ["end2", "chromEnd2", "oe_end"],
    "observed": ["observed", "count", "counts", "score", "N_reads"],
}
BEDPE_COLUMNS = ["chr1", "start1", "end1", "chr2", "start2", "end2", "observed"]


def detect_column(df: pd.DataFrame, candidates: List[str], required: bool = False) -> Optional[str]:
    """Find the first matching column name from a list of candidates.

    Parameters
    ----------
    df : pd.DataFrame
    candidates : list of str
        Column names to search for (case-insensitive).
    required : bool
        If True, raise MissingRequiredFieldError when not found.

    Returns
    -------
    str or None
    """
    cols_lower = {str(c).lower(): c for c in df.columns}
    for cand in candidates:
        if cand.lower() in cols_lower:
            return cols_lower[cand.lower()]
    if required:
        raise MissingRequiredFieldError(candidates[0], "DataFrame", available=list(df.columns))
    return None


def standardize_peak_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Rename common peak column variants to standardized names.

    Produces columns: chr, start, end (and optionally signal).
    """
    mapping = {}
    for std_name, candidates in [
        ("chr", CHROM_COLS),
        ("start", START_COLS),
        ("end", END_COLS),
        ("signal", SIGNAL_COLS),
    ]:
        col = detect_column(df, candidates)
        if col and col != std_name:
            mapping[col] = std_name
    return df.rename(columns=mapping)


def _read_table(filepath_or_buffer, sep: str, default_columns: List[str]) -> pd.DataFrame:
    """Read a delimited table, sniffing whether the first row is a header."""
    if hasattr(filepath_or_buffer, "read"):
        content = filepath_or_buffer.read()
        if isinstance(content, bytes):
            content = content.decode("utf-8")
        buf = io.StringIO(content)
    else:
        buf = str(filepath_or_buffer)

    # Sniff header: a header row has no number in column 2
    try:
        peek = pd.read_csv(buf, sep=sep, nrows=2, header=None)
        first_val = str(peek.iloc[0, 1]) if peek.shape[1] > 1 else ""
        has_header = not first_val.replace(".", "").replace("-", "").isdigit()
    except (pd.errors.EmptyDataError, IndexError):
        has_header = True
    if hasattr(buf, "seek"):
        buf.seek(0)

    df = pd.read_csv(buf, sep=sep, header=0 if has_header else None, comment=None if has_header else "#")

    if not has_header:
        df.columns = default_columns[: len(df.columns)] + [
            f"col{i}" for i in range(len(default_columns), len(df.columns))
        ]
    return df


def load_peak_file(filepath_or_buffer, sep: str = "\t") -> pd.DataFrame:
    """Load a BED/narrowPeak/broadPeak/CSV file into a standardized DataFrame.

    Returns a DataFrame with at least: chr, start, end
    """
    bed_cols = ["chr", "start", "end", "name", "score", "strand",
                "signalValue", "pValue", "qValue", "peak"]
    try:
        df = _read_table(filepath_or_buffer, sep, bed_cols)
    except pd.errors.EmptyDataError as e:
        raise PeakFileFormatError(f"Peak file is empty: {filepath_or_buffer}") from e

    df = standardize_peak_columns(df)
    for col in ("chr", "start", "end"):
        if col not in df.columns:
            raise PeakFileFormatError(
                f"Peak file lacks a '{col}' column; found {list(df.columns)}"
            )
    return df


def load_interactions(filepath_or_buffer, sep: str = "\t") -> pd.DataFrame:
    """Load a paired-anchor interaction table.

    Accepts BEDPE-like files without a header (chr1, start1, end1, chr2,
    start2, end2, observed) or tables with a header using any of the
    aliases in ``INTERACTION_COLS``.

    Returns
    -------
    pd.DataFrame
        Columns chr1, start1, end1, chr2, start2, end2, observed, plus any
        extra columns present in the file.
        Anchor coordinates are integers.

    Raises
    ------
    InteractionFileFormatError
        If the file is empty or lacks an anchor column.
    InvalidIntervalError
        If an anchor has a missing chromosome, a non-integer or negative
        coordinate, or start > end.
    """
    try:
        df = _read_table(filepath_or_buffer, sep, BEDPE_COLUMNS)
    except pd.errors.EmptyDataError as e:
        raise InteractionFileFormatError(f"Interaction file is empty: {filepath_or_buffer}") from e

    mapping = {}
    for std_name, candidates in INTERACTION_COLS.items():
        col = detect_column(df, candidates)
        if col is None:
            if std_name == "observed":
                continue
            raise InteractionFileFormatError(
                f"Interaction file lacks a '{std_name}' column; found {list(df.columns)}"
            )
        if col != std_name:
            mapping[col] = std_name
    df = df.rename(columns=mapping)

    if "observed" not in df.columns:
        logger.warning("Interaction file has no 'observed' column; filling with NaN")
        df["observed"] = np.nan

    for side in (1, 2):
        columns = [f"chr{side}", f"start{side}", f"end{side}"]
        anchors = validate_intervals(
            df[columns].rename(columns=dict(zip(columns, ["chr", "start", "end"]))),
            f"interactions (anchor{side})",
        )
        for col, std in zip(columns, ["chr", "start", "end"]):
            df[col] = anchors[std].values

    logger.info(f"Loaded {len(df)} interactions")
    return df
