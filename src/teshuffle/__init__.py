"""
teShuffle: enrichment of transposable elements in genomic features.

This package provides tools for:
- Randomizing TE positions (random, among TE positions, or keeping TSS distance)
- Counting deduplicated overlaps per class / family / name / age category
- Aggregating bootstrap rounds into null distributions
- Permutation and binomial tests per taxonomy node
"""

__version__ = "4.2.0"
__author__ = "teShuffle Team"
