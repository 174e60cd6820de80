"""
hic2genes - link distal regulatory elements to target genes through
chromatin interactions.

Anchors of Hi-C / PCHi-C / HiChIP contacts that touch a promoter pass that
gene's name to their mate anchor; peaks overlapping those mates inherit it.
"""

__version__ = "0.1.0"
__author__ = "hic2genes developers"
