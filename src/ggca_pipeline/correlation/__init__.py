"""
Correlation strategies.

Pearson, Spearman and Kendall correlators producing a statistic and a
two-sided p-value per gene/GEM pair, plus the CorrelationResult entity that
flows through the pipeline.
"""

from ggca_pipeline.correlation.base import Correlator
from ggca_pipeline.correlation.pearson import (
    pearson_correlation,
    PearsonCorrelator,
)
from ggca_pipeline.correlation.spearman import (
    spearman_correlation,
    SpearmanCorrelator,
)
from ggca_pipeline.correlation.kendall import (
    kendall_correlation,
    KendallCorrelator,
)
from ggca_pipeline.correlation.methods import CORRELATORS, get_correlator
from ggca_pipeline.correlation.result import RESULT_COLUMNS, CorrelationResult, p_value_key

__all__ = [
    "Correlator",
    # Pearson
    "pearson_correlation",
    "PearsonCorrelator",
    # Spearman
    "spearman_correlation",
    "SpearmanCorrelator",
    # Kendall
    "kendall_correlation",
    "KendallCorrelator",
    # Dispatch
    "CORRELATORS",
    "get_correlator",
    # Result entity
    "CorrelationResult",
    "RESULT_COLUMNS",
    "p_value_key",
]
