"""
Shared test fixtures for the hic2genes test suite.
"""

import tempfile
from pathlib import Path

import pandas as pd
import pytest

# ============================================================================
# Interval DataFrames
# ============================================================================


@pytest.fixture
def sample_peaks():
    """Five query peaks on chr1-chr3, mirrored by sample_bed_file."""
    return pd.DataFrame(
        [
            ("chr1", 1000, 2000, "peak_0", 100),
            ("chr1", 5000, 6000, "peak_1", 200),
            ("chr2", 2000, 3000, "peak_2", 150),
            ("chr2", 8000, 9000, "peak_3", 300),
            ("chr3", 3000, 4000, "peak_4", 250),
        ],
        columns=["chr", "start", "end", "name", "score"],
    )


@pytest.fixture
def overlapping_peaks():
    """Two sets of intervals with known overlaps for testing overlap detection."""
    query = pd.DataFrame({
        "chr": ["chr1", "chr1", "chr2"],
        "start": [100, 500, 200],
        "end": [300, 700, 400],
    })
    subject = pd.DataFrame({
        "chr": ["chr1", "chr1", "chr3"],
        "start": [250, 800, 100],
        "end": [350, 900, 300],
    })
    return query, subject


@pytest.fixture
def single_interaction():
    """One promoter-distal contact: chr1:100-200 <-> chr1:5000-5100."""
    return pd.DataFrame({
        "chr1": ["chr1"],
        "start1": [100],
        "end1": [200],
        "chr2": ["chr1"],
        "start2": [5000],
        "end2": [5100],
        "observed": [12],
    })


@pytest.fixture
def genex_promoter():
    """Promoter of GENEX overlapping the first anchor of single_interaction."""
    return pd.DataFrame({
        "chr": ["chr1"],
        "start": [100],
        "end": [150],
        "gene_name": ["GENEX"],
    })


# ============================================================================
# Temporary files
# ============================================================================


@pytest.fixture
def temp_dir():
    """Provide a temporary directory that gets cleaned up after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_bed_file(temp_dir):
    """Create a temporary BED file for testing."""
    bed_path = temp_dir / "test_peaks.bed"
    bed_content = """chr1\t1000\t2000\tpeak_0\t100\t.
chr1\t5000\t6000\tpeak_1\t200\t.
chr2\t2000\t3000\tpeak_2\t150\t.
chr2\t8000\t9000\tpeak_3\t300\t.
chr3\t3000\t4000\tpeak_4\t250\t."""
    bed_path.write_text(bed_content)
    return bed_path


@pytest.fixture
def empty_bed_file(temp_dir):
    """Create an empty BED file."""
    bed_path = temp_dir / "empty.bed"
    bed_path.write_text("")
    return bed_path


@pytest.fixture
def sample_bedpe_file(temp_dir):
    """Create a header-less BEDPE interaction file."""
    bedpe_path = temp_dir / "loops.bedpe"
    bedpe_content = """chr1\t100\t200\tchr1\t5000\t5100\t12
chr1\t20000\t20100\tchr1\t900\t1000\t4
chr2\t100\t200\tchr2\t3000\t3100\t7"""
    bedpe_path.write_text(bedpe_content)
    return bedpe_path


@pytest.fixture
def sample_gtf_file(temp_dir):
    """Create a small GTF with two named genes and one unnamed transcript."""
    gtf_path = temp_dir / "genes.gtf"
    lines = [
        "#!genome-build test",
        'chr1\ttest\tgene\t1001\t2000\t.\t+\t.\tgene_id "G1"; gene_name "GENEA";',
        'chr1\ttest\ttranscript\t1001\t2000\t.\t+\t.\tgene_id "G1"; transcript_id "T1"; gene_name "GENEA";',
        'chr1\ttest\ttranscript\t1101\t2000\t.\t+\t.\tgene_id "G1"; transcript_id "T2"; gene_name "GENEA";',
        'chr1\ttest\texon\t1001\t1200\t.\t+\t.\tgene_id "G1"; transcript_id "T1"; gene_name "GENEA";',
        'chr1\ttest\tgene\t5001\t6000\t.\t-\t.\tgene_id "G2"; gene_name "GENEB";',
        'chr1\ttest\ttranscript\t5001\t6000\t.\t-\t.\tgene_id "G2"; transcript_id "T3"; gene_name "GENEB";',
        'chr2\ttest\ttranscript\t101\t500\t.\t+\t.\tgene_id "G3"; transcript_id "T4";',
    ]
    gtf_path.write_text("\n".join(lines) + "\n")
    return gtf_path
