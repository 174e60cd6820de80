"""
Core analysis modules for hic2genes.

Includes:
- Interval primitives (NCLS overlap, nearest distance)
- Interval records and IntervalStore
- Promoter derivation from GTF annotations
- Anchor-to-target linking (gi2targets) and query annotation
"""

# Interval records and store
from .intervals import (
    GeneSet,
    GenomicInterval,
    Promoter,
    InteractionPair,
    TaggedDistalRegion,
    AnnotatedQueryInterval,
    IntervalStore,
)

# Promoter annotation
from .annotation import GeneAnnotation, resolve_promoters

# Linking
from .linking import (
    AnchorTargetLinker,
    QueryOverlapAnnotator,
    gi2targets,
    annotate_queries,
    collapse_distal_regions,
    summarize_distal_regions,
)

# Shared genomic utilities (interval-tree overlap, parsing, chromosome naming)
from .genomic_utils import (
    find_overlaps,
    distance_to_nearest,
    load_peak_file,
    load_interactions,
    normalize_seqlevels,
    detect_seqlevels_style,
    check_seqlevels_style,
    sort_chromosomes,
    sort_intervals,
    filter_standard_chroms,
)

__all__ = [
    # Records
    "GeneSet",
    "GenomicInterval",
    "Promoter",
    "InteractionPair",
    "TaggedDistalRegion",
    "AnnotatedQueryInterval",
    "IntervalStore",

    # Annotation
    "GeneAnnotation",
    "resolve_promoters",

    # Linking
    "AnchorTargetLinker",
    "QueryOverlapAnnotator",
    "gi2targets",
    "annotate_queries",
    "collapse_distal_regions",
    "summarize_distal_regions",

    # Genomic utilities
    "find_overlaps",
    "distance_to_nearest",
    "load_peak_file",
    "load_interactions",
    "normalize_seqlevels",
    "detect_seqlevels_style",
    "check_seqlevels_style",
    "sort_chromosomes",
    "sort_intervals",
    "filter_standard_chroms",
]
