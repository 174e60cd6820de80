"""
Configuration settings for hic2genes.

Defaults for linking thresholds, promoter windows and chromosome naming,
overridable through HIC2GENES_* environment variables or a .env file.
"""

from typing import Dict, Tuple

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class GenomeConfig:
    """Reference genome configuration."""

    SUPPORTED_GENOMES = {
        "hg38": {
            "name": "Human (hg38/GRCh38)",
            "species": "Homo sapiens",
            "seqlevels_style": "UCSC",
            "ncbi_alias": "GRCh38",
        },
        "hg19": {
            "name": "Human (hg19/GRCh37)",
            "species": "Homo sapiens",
            "seqlevels_style": "UCSC",
            "ncbi_alias": "GRCh37",
        },
        "mm10": {
            "name": "Mouse (mm10/GRCm38)",
            "species": "Mus musculus",
            "seqlevels_style": "UCSC",
            "ncbi_alias": "GRCm38",
        },
        "mm39": {
            "name": "Mouse (mm39/GRCm39)",
            "species": "Mus musculus",
            "seqlevels_style": "UCSC",
            "ncbi_alias": "GRCm39",
        },
    }


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="HIC2GENES_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "hic2genes"
    app_version: str = "0.1.0"
    debug: bool = False

    # Linking defaults
    default_genome: str = "hg38"
    # <= 0: minimum overlap of |max_dist| bp; > 0: nearest promoter within max_dist bp
    default_max_dist: int = 0
    # (-upstream, downstream) around each TSS
    default_tss_region: Tuple[int, int] = (-2000, 200)
    default_seqlevels_style: str = Field(default="UCSC", pattern="^(UCSC|NCBI)$")
    check_seqlevels: bool = True

    # Query annotation
    query_min_overlap: int = Field(default=1, ge=1)

    def get_genome_config(self, genome: str) -> Dict:
        """Get configuration for a specific genome."""
        if genome not in GenomeConfig.SUPPORTED_GENOMES:
            raise ValueError(f"Unsupported genome: {genome}. Supported: {list(GenomeConfig.SUPPORTED_GENOMES.keys())}")
        return GenomeConfig.SUPPORTED_GENOMES[genome]


# Global settings instance
settings = Settings()
