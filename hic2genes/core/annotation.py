"""
Promoter Annotation Module

Derives the promoter set the linker needs:
- GTF/GFF parsing into gene and transcript models
- Strand-aware promoter windows around each TSS
- Resolution of the different promoter sources the linker accepts

Coordinates are converted from GTF's 1-based closed convention to the
0-based half-open convention used throughout the package.
"""

import gzip
import logging
from typing import Dict, Optional, Tuple

import numpy as np
import pandas as pd

from ..config import settings
from .exceptions import (
    GTFParseError,
    InvalidInputKindError,
    InvalidParameterError,
    MissingRequiredFieldError,
    validate_numeric_param,
)
from .genomic_utils import detect_seqlevels_style, validate_intervals
from .intervals import IntervalStore, Promoter, records_to_frame

logger = logging.getLogger(__name__)

PROMOTER_COLUMNS = ["chr", "start", "end", "gene_name", "gene_id", "strand", "tss"]


class GeneAnnotation:
    """
    Gene annotation from GTF/GFF files.

    Acts as the annotation handle a promoter set can be derived from:
    - Gene locations
    - Transcript structures
    - Promoter regions
    """

    def __init__(self, gtf_file: Optional[str] = None, genome: Optional[str] = None):
        """
        Initialize gene annotation.

        Args:
            gtf_file: Path to GTF file (optional)
            genome: Genome build the GTF belongs to; defaults to
                settings.default_genome. Unsupported builds raise ValueError.
        """
        self.genome = genome or settings.default_genome
        self.genome_config = settings.get_genome_config(self.genome)
        self.genes = None
        self.transcripts = None

        if gtf_file:
            self.load_gtf(gtf_file)

    def load_gtf(self, gtf_file: str):
        """
        Load gene annotation from GTF file.

        Args:
            gtf_file: Path to GTF/GFF file
        """
        logger.info(f"Loading GTF: {gtf_file}")

        df = self._parse_gtf(str(gtf_file))
        if df.empty:
            raise GTFParseError(f"No features found in {gtf_file}")

        style = detect_seqlevels_style(df["chr"])
        expected = self.genome_config["seqlevels_style"]
        if style not in ("unknown", expected):
            logger.warning(
                f"{gtf_file} uses {style} chromosome names but {self.genome} "
                f"({self.genome_config['ncbi_alias']}) is {expected}; "
                f"normalize_seqlevels() the other inputs to match"
            )

        self.genes = self._standardize_columns(df[df["feature"] == "gene"])
        self.transcripts = self._standardize_columns(df[df["feature"] == "transcript"])

        logger.info(f"Loaded {len(self.genes)} genes, {len(self.transcripts)} transcripts")

    def _parse_gtf(self, gtf_file: str) -> pd.DataFrame:
        """Parse GTF file into DataFrame."""
        records = []

        opener = gzip.open if gtf_file.endswith(".gz") else open

        with opener(gtf_file, "rt") as f:
            for line_no, line in enumerate(f, start=1):
                if line.startswith("#"):
                    continue

                fields = line.rstrip("\n").split("\t")
                if len(fields) < 9:
                    continue

                chrom, source, feature, start, end, score, strand, frame, attributes = fields[:9]
                if feature not in ("gene", "transcript"):
                    continue

                try:
                    start, end = int(start), int(end)
                except ValueError as e:
                    raise GTFParseError(f"{gtf_file}:{line_no}: bad coordinates {start}-{end}") from e

                records.append({
                    "chr": chrom,
                    "feature": feature,
                    # GTF is 1-based closed
                    "start": start - 1,
                    "end": end,
                    "strand": strand,
                    **self._parse_attributes(attributes),
                })

        return pd.DataFrame(records)

    def _parse_attributes(self, attr_string: str) -> Dict[str, str]:
        """Parse GTF attribute string."""
        attrs = {}
        for item in attr_string.strip().split(";"):
            item = item.strip()
            if not item:
                continue

            # Handle both GTF and GFF formats
            if "=" in item:  # GFF3
                key, value = item.split("=", 1)
            elif " " in item:  # GTF
                key, value = item.split(" ", 1)
            else:
                continue

            attrs[key] = value.strip('"')

        return attrs

    def _standardize_columns(self, df: pd.DataFrame) -> pd.DataFrame:
        """Standardize column names across GTF versions."""
        df = df.copy()

        if "gene_id" not in df.columns:
            df["gene_id"] = None
            for col in ["ID", "gene"]:
                if col in df.columns:
                    df["gene_id"] = df[col]
                    break

        # Missing names stay empty; they are filtered when promoters are built
        if "gene_name" not in df.columns:
            df["gene_name"] = ""
            for col in ["gene_symbol", "Name"]:
                if col in df.columns:
                    df["gene_name"] = df[col]
                    break
        df["gene_name"] = df["gene_name"].fillna("")

        return df.reset_index(drop=True)

    def get_promoter_regions(
        self,
        upstream: int = 2000,
        downstream: int = 200,
        level: str = "transcript",
    ) -> pd.DataFrame:
        """
        Get promoter regions for all transcripts (or genes).

        Args:
            upstream: Base pairs upstream of TSS
            downstream: Base pairs downstream of TSS
            level: 'transcript' (one window per isoform) or 'gene'

        Returns:
            DataFrame with chr, start, end, gene_name, gene_id, strand, tss
        """
        if level not in ("transcript", "gene"):
            raise InvalidParameterError("level", level, "'transcript' or 'gene'")
        validate_numeric_param(upstream, "upstream", min_val=0, integer=True)
        validate_numeric_param(downstream, "downstream", min_val=0, integer=True)
        if self.genes is None:
            raise ValueError("Gene annotation not loaded")

        if level == "transcript" and self.transcripts is not None and len(self.transcripts) > 0:
            models = self.transcripts
        else:
            if level == "transcript":
                logger.info("No transcript records in annotation; using gene records")
            models = self.genes

        minus = (models["strand"] == "-").values
        # TSS as a 0-based base position
        tss = np.where(minus, models["end"].values - 1, models["start"].values)

        start = np.where(minus, tss - downstream + 1, tss - upstream).clip(min=0)
        end = np.where(minus, tss + upstream + 1, tss + downstream)

        promoters = pd.DataFrame({
            "chr": models["chr"].values,
            "start": start.astype(np.int64),
            "end": end.astype(np.int64),
            "gene_name": models["gene_name"].values,
            "gene_id": models["gene_id"].values,
            "strand": models["strand"].values,
            "tss": tss.astype(np.int64),
        })
        return drop_unnamed_promoters(promoters)


def drop_unnamed_promoters(promoters: pd.DataFrame, name: str = "promoters") -> pd.DataFrame:
    """Remove promoters whose gene name is missing or empty.

    The number removed is logged so silent shrinkage of the promoter set is
    visible.
    """
    if "gene_name" not in promoters.columns:
        raise MissingRequiredFieldError("gene_name", name, available=list(promoters.columns))

    names = promoters["gene_name"]
    named = names.notna() & (names.astype(str).str.strip() != "")
    n_dropped = int((~named).sum())
    if n_dropped:
        logger.info(f"Dropped {n_dropped} of {len(promoters)} {name} with empty gene_name")
    promoters = promoters[named.values].copy()
    promoters["gene_name"] = promoters["gene_name"].astype(str)
    return promoters.reset_index(drop=True)


def resolve_promoters(
    source,
    tss_region: Optional[Tuple[int, int]] = None,
) -> pd.DataFrame:
    """
    Turn any supported promoter source into a validated promoter DataFrame.

    Args:
        source: a DataFrame with chr/start/end/gene_name, an IntervalStore of
            promoters, a sequence of Promoter records, or a GeneAnnotation
            handle from which TSS windows are derived
        tss_region: (-upstream, downstream) window used for GeneAnnotation
            sources; defaults to settings.default_tss_region

    Returns:
        Promoter DataFrame with no empty gene names

    Raises:
        InvalidInputKindError: if the source type is not recognised
        InvalidParameterError: if tss_region has the wrong signs
    """
    if isinstance(source, GeneAnnotation):
        offset, downstream = tss_region or settings.default_tss_region
        # Upstream is given as a negative offset from the TSS
        validate_numeric_param(offset, "tss_region[0]", max_val=0, integer=True)
        validate_numeric_param(downstream, "tss_region[1]", min_val=0, integer=True)
        promoters = source.get_promoter_regions(upstream=-offset, downstream=downstream)
    elif isinstance(source, IntervalStore):
        promoters = source.df
    elif isinstance(source, pd.DataFrame):
        promoters = source
    elif isinstance(source, (list, tuple)) and all(isinstance(p, Promoter) for p in source):
        promoters = records_to_frame(source)
        if promoters.empty:
            promoters["gene_name"] = pd.Series(dtype=object)
    else:
        raise InvalidInputKindError(
            type(source).__name__,
            "promoter source",
            expected=["DataFrame", "IntervalStore", "list of Promoter", "GeneAnnotation"],
        )

    promoters = validate_intervals(promoters, "promoters")
    return drop_unnamed_promoters(promoters)
