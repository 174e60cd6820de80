"""
Interval record types and the IntervalStore container.

Bulk operations work on pandas DataFrames with ``chr``, ``start`` and
``end`` columns; the dataclasses here are the per-record view of the same
data, used at the edges (building inputs by hand, inspecting results).
"""

import logging
import math
from dataclasses import dataclass, field, fields
from typing import Iterable, List, Optional, Sequence, Type

import numpy as np
import pandas as pd

from .exceptions import (
    InvalidIntervalError,
    MissingRequiredFieldError,
    ValidationError,
)
from .genomic_utils import (
    detect_seqlevels_style,
    distance_to_nearest,
    find_overlaps,
    sort_chromosomes,
    sort_intervals,
    validate_intervals,
)

logger = logging.getLogger(__name__)


class GeneSet(tuple):
    """Immutable, sorted, duplicate-free collection of gene names.

    >>> GeneSet(["MYC", "PVT1", "MYC"])
    GeneSet('MYC', 'PVT1')
    """

    def __new__(cls, genes: Iterable[str] = ()):
        if isinstance(genes, str):
            genes = (genes,)
        names = set()
        for gene in genes:
            if gene is None or (isinstance(gene, float) and math.isnan(gene)) or str(gene) == "":
                raise ValidationError("Gene names in a GeneSet must be non-empty")
            names.add(str(gene))
        return super().__new__(cls, sorted(names))

    def union(self, *others: Iterable[str]) -> "GeneSet":
        merged = list(self)
        for other in others:
            merged.extend(other)
        return GeneSet(merged)

    def __repr__(self) -> str:
        return f"GeneSet({', '.join(repr(g) for g in self)})"


def gene_set_column(values: Sequence[Iterable[str]], index=None) -> pd.Series:
    """Build an object Series holding one GeneSet per row.

    Filled element-wise so that pandas never unpacks the tuples into
    extra dimensions.
    """
    arr = np.empty(len(values), dtype=object)
    for i, value in enumerate(values):
        arr[i] = GeneSet(value)
    return pd.Series(arr, index=index, dtype=object)


# ============================================================================
# Records
# ============================================================================


@dataclass(frozen=True)
class GenomicInterval:
    """A 0-based, half-open interval on one chromosome."""

    chrom: str
    start: int
    end: int
    strand: str = "."

    def __post_init__(self):
        if not self.chrom:
            raise InvalidIntervalError("missing chromosome", type(self).__name__)
        if self.start < 0:
            raise InvalidIntervalError(f"negative start {self.start}", type(self).__name__)
        if self.start > self.end:
            raise InvalidIntervalError(f"start {self.start} > end {self.end}", type(self).__name__)

    @property
    def width(self) -> int:
        return self.end - self.start

    def __str__(self) -> str:
        return f"{self.chrom}:{self.start}-{self.end}"


@dataclass(frozen=True)
class Promoter(GenomicInterval):
    """Window around a transcription start site, named by its gene."""

    gene_name: str = ""
    gene_id: Optional[str] = None

    def __post_init__(self):
        super().__post_init__()
        if not self.gene_name:
            raise MissingRequiredFieldError("gene_name", f"Promoter {self.chrom}:{self.start}-{self.end}")


@dataclass(frozen=True)
class InteractionPair:
    """Two anchors joined by a chromatin contact.

    ``observed`` is the contact strength; it is carried along but never
    used to decide a link.
    """

    anchor1: GenomicInterval
    anchor2: GenomicInterval
    observed: float = math.nan


@dataclass(frozen=True)
class TaggedDistalRegion(GenomicInterval):
    """An anchor whose mate touches the promoters of ``genes``."""

    genes: GeneSet = field(default_factory=GeneSet)
    observed: float = math.nan
    interaction_idx: Optional[int] = None
    anchor: Optional[int] = None

    def __post_init__(self):
        super().__post_init__()
        object.__setattr__(self, "genes", GeneSet(self.genes))
        if not self.genes:
            raise ValidationError(f"Distal region {self} has no target genes")


@dataclass(frozen=True)
class AnnotatedQueryInterval(GenomicInterval):
    """A query interval with the genes inherited from overlapping regions.

    An empty ``genes`` means no overlap was found.
    """

    genes: GeneSet = field(default_factory=GeneSet)

    def __post_init__(self):
        super().__post_init__()
        object.__setattr__(self, "genes", GeneSet(self.genes))


# ============================================================================
# IntervalStore
# ============================================================================


def records_to_frame(records: Iterable[GenomicInterval]) -> pd.DataFrame:
    """Convert interval records to a DataFrame with chr/start/end columns."""
    rows = []
    for record in records:
        if not isinstance(record, GenomicInterval):
            raise ValidationError(f"Expected GenomicInterval records, got {type(record).__name__}")
        row = {f.name: getattr(record, f.name) for f in fields(record)}
        row["chr"] = row.pop("chrom")
        rows.append(row)
    if not rows:
        return pd.DataFrame({"chr": pd.Series(dtype=object),
                             "start": pd.Series(dtype=np.int64),
                             "end": pd.Series(dtype=np.int64)})
    df = pd.DataFrame(rows)
    if "genes" in df.columns:
        df["genes"] = gene_set_column(df["genes"].tolist(), index=df.index)
    return df[["chr", "start", "end"] + [c for c in df.columns if c not in ("chr", "start", "end")]]


def frame_to_records(df: pd.DataFrame, record_type: Type[GenomicInterval] = GenomicInterval) -> List[GenomicInterval]:
    """Convert a chr/start/end DataFrame into ``record_type`` instances.

    Columns matching a field of ``record_type`` are passed through; other
    columns are ignored.
    """
    names = {f.name for f in fields(record_type)}
    records = []
    for row in df.to_dict("records"):
        kwargs = {"chrom": str(row["chr"]), "start": int(row["start"]), "end": int(row["end"])}
        for key, value in row.items():
            if key in names and key not in kwargs:
                kwargs[key] = value
        if kwargs.get("interaction_idx") is not None:
            kwargs["interaction_idx"] = int(kwargs["interaction_idx"])
        if kwargs.get("anchor") is not None:
            kwargs["anchor"] = int(kwargs["anchor"])
        records.append(record_type(**kwargs))
    return records


class IntervalStore:
    """
    Read-only collection of genomic intervals.

    Wraps a validated DataFrame (``chr``, ``start``, ``end`` plus any
    metadata columns) and exposes the two primitives the linker relies on:
    complete overlap enumeration and nearest-neighbour distance. Row
    positions are the indices reported by both.
    """

    def __init__(self, data: pd.DataFrame, name: str = "intervals"):
        self.name = name
        self._df = validate_intervals(data, name).reset_index(drop=True)

    @classmethod
    def from_records(cls, records: Iterable[GenomicInterval], name: str = "intervals") -> "IntervalStore":
        return cls(records_to_frame(records), name=name)

    @property
    def df(self) -> pd.DataFrame:
        """A copy of the underlying DataFrame."""
        return self._df.copy()

    @property
    def chromosomes(self) -> List[str]:
        return sort_chromosomes(list(self._df["chr"].unique()))

    @property
    def seqlevels_style(self) -> str:
        return detect_seqlevels_style(self._df["chr"])

    def __len__(self) -> int:
        return len(self._df)

    def __repr__(self) -> str:
        return f"IntervalStore(name={self.name!r}, n={len(self)}, chromosomes={len(self.chromosomes)})"

    def find_overlaps(self, targets: "IntervalStore", min_overlap: int = 1) -> pd.DataFrame:
        """All (query_idx, subject_idx, overlap_bp) pairs against ``targets``."""
        return find_overlaps(self._df, targets._df, min_overlap_bp=min_overlap)

    def distance_to_nearest(self, targets: "IntervalStore") -> pd.DataFrame:
        """One (query_idx, subject_idx, distance) row per query with a same-chromosome target."""
        return distance_to_nearest(self._df, targets._df)

    def sorted(self) -> "IntervalStore":
        return IntervalStore(sort_intervals(self._df), name=self.name)

    def to_records(self, record_type: Type[GenomicInterval] = GenomicInterval) -> List[GenomicInterval]:
        return frame_to_records(self._df, record_type)
