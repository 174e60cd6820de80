"""
Anchor-to-Target Linking Module

Uses chromatin interactions (Hi-C, PCHi-C, HiChIP loops) to assign
candidate target genes to distal regulatory elements:
- Anchor-to-promoter hits, by overlap or by nearest distance
- Cross-linking: an anchor inherits the genes found at its mate anchor
- Query (peak) annotation by overlap with the tagged distal regions

If one anchor of a contact sits on the promoter of gene G, the other
anchor is taken to be a distal element regulating G.
"""

import logging
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from ..config import settings
from .annotation import resolve_promoters
from .exceptions import (
    InvalidInputKindError,
    validate_dataframe,
    validate_numeric_param,
)
from .genomic_utils import (
    check_seqlevels_style,
    distance_to_nearest,
    find_overlaps,
    sort_intervals,
    validate_intervals,
)
from .intervals import (
    AnnotatedQueryInterval,
    GeneSet,
    GenomicInterval,
    InteractionPair,
    IntervalStore,
    TaggedDistalRegion,
    frame_to_records,
    gene_set_column,
    records_to_frame,
)

logger = logging.getLogger(__name__)

ANCHOR_COLUMNS = {
    1: ["chr1", "start1", "end1"],
    2: ["chr2", "start2", "end2"],
}
INTERACTION_COLUMNS = ANCHOR_COLUMNS[1] + ANCHOR_COLUMNS[2]
DISTAL_COLUMNS = ["chr", "start", "end", "genes", "observed", "interaction_idx", "anchor"]


def _empty_distal_regions() -> pd.DataFrame:
    return pd.DataFrame({
        "chr": pd.Series(dtype=object),
        "start": pd.Series(dtype=np.int64),
        "end": pd.Series(dtype=np.int64),
        "genes": pd.Series(dtype=object),
        "observed": pd.Series(dtype=float),
        "interaction_idx": pd.Series(dtype=np.int64),
        "anchor": pd.Series(dtype=np.int64),
    })


def interactions_to_frame(interactions) -> pd.DataFrame:
    """Accept an interaction DataFrame or a sequence of InteractionPair.

    Returns a DataFrame with chr1, start1, end1, chr2, start2, end2 and
    observed columns, indexed by position.
    """
    if isinstance(interactions, pd.DataFrame):
        df = interactions
    elif isinstance(interactions, (list, tuple)) and all(isinstance(p, InteractionPair) for p in interactions):
        df = pd.DataFrame(
            [
                {
                    "chr1": p.anchor1.chrom, "start1": p.anchor1.start, "end1": p.anchor1.end,
                    "chr2": p.anchor2.chrom, "start2": p.anchor2.start, "end2": p.anchor2.end,
                    "observed": p.observed,
                }
                for p in interactions
            ],
            columns=INTERACTION_COLUMNS + ["observed"],
        )
    else:
        raise InvalidInputKindError(
            type(interactions).__name__,
            "interactions",
            expected=["DataFrame", "list of InteractionPair"],
        )

    validate_dataframe(df, "interactions", required_columns=INTERACTION_COLUMNS)
    df = df.reset_index(drop=True)
    if "observed" not in df.columns:
        df = df.assign(observed=np.nan)
    return df


def _anchor_frame(interactions: pd.DataFrame, side: int) -> pd.DataFrame:
    """Extract one anchor set as a chr/start/end frame, positions preserved."""
    columns = ANCHOR_COLUMNS[side]
    anchors = interactions[columns].rename(columns=dict(zip(columns, ["chr", "start", "end"])))
    return validate_intervals(anchors, f"interactions (anchor{side})")


def _as_interval_frame(intervals, name: str) -> pd.DataFrame:
    """Accept a DataFrame, an IntervalStore or a sequence of interval records."""
    if isinstance(intervals, IntervalStore):
        return intervals.df
    if isinstance(intervals, pd.DataFrame):
        return intervals
    if isinstance(intervals, (list, tuple)) and all(isinstance(i, GenomicInterval) for i in intervals):
        return records_to_frame(intervals)
    raise InvalidInputKindError(
        type(intervals).__name__,
        name,
        expected=["DataFrame", "IntervalStore", "list of GenomicInterval"],
    )


class AnchorTargetLinker:
    """
    Tag interaction anchors with the genes whose promoters their mates touch.

    ``max_dist`` selects how an anchor "hits" a promoter:
    - ``max_dist <= 0``: the anchor must overlap the promoter by at least
      ``max(1, |max_dist|)`` bases
    - ``max_dist > 0``: the promoter nearest the anchor counts if it lies
      within ``max_dist`` bases
    """

    def __init__(
        self,
        max_dist: Optional[int] = None,
        check_seqlevels: Optional[bool] = None,
        tss_region: Optional[tuple] = None,
    ):
        self.max_dist = settings.default_max_dist if max_dist is None else max_dist
        self.check_seqlevels = settings.check_seqlevels if check_seqlevels is None else check_seqlevels
        self.tss_region = tss_region

        validate_numeric_param(self.max_dist, "max_dist", integer=True)
        self.max_dist = int(self.max_dist)

    def link(self, interactions, promoters) -> pd.DataFrame:
        """
        Produce the tagged distal regions for a set of interactions.

        Args:
            interactions: DataFrame (chr1..end2, observed) or list of InteractionPair
            promoters: promoter DataFrame, IntervalStore, list of Promoter,
                or GeneAnnotation handle

        Returns:
            DataFrame with chr, start, end, genes, observed, interaction_idx,
            anchor columns, sorted by genomic coordinate. ``genes`` holds a
            non-empty GeneSet per row.
        """
        interactions = interactions_to_frame(interactions)
        promoters = resolve_promoters(promoters, self.tss_region)

        anchor1 = _anchor_frame(interactions, 1)
        anchor2 = _anchor_frame(interactions, 2)

        if self.check_seqlevels:
            check_seqlevels_style({
                "interactions": pd.concat([anchor1["chr"], anchor2["chr"]]),
                "promoters": promoters["chr"],
            })

        if interactions.empty or promoters.empty:
            logger.info("No interactions or promoters to link")
            return _empty_distal_regions()

        # Two independent passes; each side's genes are attached to its mate
        genes_at_anchor1 = self._anchor_gene_hits(anchor1, promoters)
        genes_at_anchor2 = self._anchor_gene_hits(anchor2, promoters)
        logger.info(
            f"Promoter hits: {len(genes_at_anchor1)} anchor1, {len(genes_at_anchor2)} anchor2 "
            f"of {len(interactions)} interactions (max_dist={self.max_dist})"
        )

        observed = pd.to_numeric(interactions["observed"], errors="coerce").values.astype(float)
        regions = pd.concat(
            [
                self._emit_mates(anchor1, genes_at_anchor2, observed, side=1),
                self._emit_mates(anchor2, genes_at_anchor1, observed, side=2),
            ],
            ignore_index=True,
        )
        if regions.empty:
            return _empty_distal_regions()

        regions = sort_intervals(regions, tiebreak=["interaction_idx", "anchor"])
        logger.info(f"Linked {len(regions)} distal regions to {regions['genes'].explode().nunique()} genes")
        return regions[DISTAL_COLUMNS]

    def _anchor_gene_hits(self, anchors: pd.DataFrame, promoters: pd.DataFrame) -> pd.Series:
        """Map anchor position -> GeneSet of the promoters it hits."""
        if self.max_dist <= 0:
            hits = find_overlaps(anchors, promoters, min_overlap_bp=max(1, abs(self.max_dist)))
        else:
            hits = distance_to_nearest(anchors, promoters)
            hits = hits[hits["distance"] <= self.max_dist]

        # Several isoforms of one gene hitting one anchor count once
        pairs = pd.DataFrame({
            "anchor_idx": hits["query_idx"].values,
            "gene_name": promoters["gene_name"].values[hits["subject_idx"].values.astype(np.int64)],
        }).drop_duplicates()

        grouped = pairs.groupby("anchor_idx", sort=True)["gene_name"].agg(list)
        return pd.Series(
            gene_set_column(grouped.tolist()).values,
            index=grouped.index.values.astype(np.int64),
            dtype=object,
        )

    @staticmethod
    def _emit_mates(anchors: pd.DataFrame, mate_genes: pd.Series, observed: np.ndarray, side: int) -> pd.DataFrame:
        idx = mate_genes.index.values.astype(np.int64)
        return pd.DataFrame({
            "chr": anchors["chr"].values[idx],
            "start": anchors["start"].values[idx],
            "end": anchors["end"].values[idx],
            "genes": mate_genes.values,
            "observed": observed[idx],
            "interaction_idx": idx,
            "anchor": np.full(len(idx), side, dtype=np.int64),
        })

    @staticmethod
    def to_records(regions: pd.DataFrame) -> List[TaggedDistalRegion]:
        """Convert a distal region DataFrame into TaggedDistalRegion records."""
        return frame_to_records(regions, TaggedDistalRegion)


def gi2targets(
    interactions,
    promoters,
    max_dist: Optional[int] = None,
    check_seqlevels: Optional[bool] = None,
    tss_region: Optional[tuple] = None,
) -> pd.DataFrame:
    """
    Link interaction anchors to the target genes contacted by their mates.

    Convenience wrapper around AnchorTargetLinker.link().
    """
    linker = AnchorTargetLinker(max_dist=max_dist, check_seqlevels=check_seqlevels, tss_region=tss_region)
    return linker.link(interactions, promoters)


class QueryOverlapAnnotator:
    """Annotate query intervals (e.g. peaks) with genes of overlapping distal regions."""

    def __init__(self, min_overlap: Optional[int] = None, check_seqlevels: Optional[bool] = None):
        self.min_overlap = settings.query_min_overlap if min_overlap is None else min_overlap
        self.check_seqlevels = settings.check_seqlevels if check_seqlevels is None else check_seqlevels
        validate_numeric_param(self.min_overlap, "min_overlap", min_val=1, integer=True)
        self.min_overlap = int(self.min_overlap)

    def annotate(self, queries, regions) -> pd.DataFrame:
        """
        Attach the union of overlapping regions' gene sets to each query.

        Args:
            queries: DataFrame / IntervalStore / list of GenomicInterval
            regions: tagged distal regions, as returned by gi2targets

        Returns:
            Copy of the queries, same order and length, with a ``genes``
            column; queries without overlaps get an empty GeneSet.
        """
        queries = validate_intervals(_as_interval_frame(queries, "queries"), "queries")
        regions = validate_intervals(_as_interval_frame(regions, "distal regions"), "distal regions")
        validate_dataframe(regions, "distal regions", required_columns=["genes"])

        if self.check_seqlevels:
            check_seqlevels_style({"queries": queries["chr"], "distal regions": regions["chr"]})

        hits = find_overlaps(queries, regions, min_overlap_bp=self.min_overlap)

        region_genes = regions["genes"].values
        collected: List[list] = [[] for _ in range(len(queries))]
        for q_idx, r_idx in zip(hits["query_idx"].values, hits["subject_idx"].values):
            collected[q_idx].extend(region_genes[r_idx])

        annotated = queries.copy()
        annotated["genes"] = gene_set_column(collected, index=annotated.index)

        n_annotated = sum(1 for genes in collected if genes)
        logger.info(f"Annotated {n_annotated} of {len(queries)} queries from {len(regions)} distal regions")
        return annotated

    @staticmethod
    def to_records(annotated: pd.DataFrame) -> List[AnnotatedQueryInterval]:
        return frame_to_records(annotated, AnnotatedQueryInterval)


def annotate_queries(
    queries,
    regions,
    min_overlap: Optional[int] = None,
    check_seqlevels: Optional[bool] = None,
) -> pd.DataFrame:
    """Convenience wrapper around QueryOverlapAnnotator.annotate()."""
    annotator = QueryOverlapAnnotator(min_overlap=min_overlap, check_seqlevels=check_seqlevels)
    return annotator.annotate(queries, regions)


def collapse_distal_regions(regions: pd.DataFrame) -> pd.DataFrame:
    """
    Merge distal regions with identical coordinates.

    Gene sets are unioned, ``observed`` is summed and the number of
    contributing interactions is kept in ``n_interactions``.
    """
    validate_dataframe(regions, "distal regions", required_columns=["chr", "start", "end", "genes"])
    if regions.empty:
        return pd.DataFrame(columns=["chr", "start", "end", "genes", "observed", "n_interactions"])

    rows = []
    genes = []
    for (chrom, start, end), grp in regions.groupby(["chr", "start", "end"], sort=False):
        genes.append(GeneSet().union(*grp["genes"]))
        rows.append({
            "chr": chrom,
            "start": start,
            "end": end,
            "observed": grp["observed"].sum(min_count=1) if "observed" in grp else np.nan,
            "n_interactions": len(grp),
        })

    collapsed = pd.DataFrame(rows)
    collapsed.insert(3, "genes", gene_set_column(genes, index=collapsed.index))
    logger.debug(f"Collapsed {len(regions)} distal regions into {len(collapsed)}")
    return sort_intervals(collapsed)


def summarize_distal_regions(regions: pd.DataFrame) -> Dict:
    """Generate summary statistics for tagged distal regions."""
    if regions.empty:
        return {
            "total_regions": 0,
            "unique_regions": 0,
            "unique_genes": 0,
            "genes_per_region": 0.0,
            "regions_per_gene": 0.0,
        }

    pairs = regions[["chr", "start", "end", "genes"]].explode("genes")
    return {
        "total_regions": len(regions),
        "unique_regions": len(regions[["chr", "start", "end"]].drop_duplicates()),
        "unique_genes": pairs["genes"].nunique(),
        "genes_per_region": float(regions["genes"].map(len).mean()),
        "regions_per_gene": float(pairs.groupby("genes").size().mean()),
    }
