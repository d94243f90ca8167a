"""
Result aggregation.

Threshold filtering and memory-bounded ordering of correlation results by raw
p-value (buffer, spill sorted runs, k-way merge).
"""

from ggca_pipeline.aggregation.external_sort import ExternalSorter, SpillQueue
from ggca_pipeline.aggregation.results import (
    ResultAggregator,
    ResultBatch,
    passes_threshold,
)

__all__ = [
    "ExternalSorter",
    "SpillQueue",
    "ResultAggregator",
    "ResultBatch",
    "passes_threshold",
]
