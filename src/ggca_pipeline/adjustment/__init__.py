"""
P-value adjustment (Benjamini-Hochberg, Benjamini-Yekutieli, Bonferroni).
"""

from ggca_pipeline.adjustment.fdr import (
    PValueAdjuster,
    adjust_sorted,
    harmonic_number,
)

__all__ = [
    "PValueAdjuster",
    "adjust_sorted",
    "harmonic_number",
]
