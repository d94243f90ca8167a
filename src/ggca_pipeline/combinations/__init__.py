"""
Combination generation (all-vs-all or matched gene/GEM pairing).
"""

from ggca_pipeline.combinations.generator import Combination, CombinationGenerator

__all__ = [
    "Combination",
    "CombinationGenerator",
]
