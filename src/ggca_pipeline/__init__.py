"""
ggca-pipeline - Gene x Gene-Modulator Correlation Analysis.

This package provides:
- Pearson, Spearman and Kendall correlation of every gene/GEM pair
  (miRNA, CNA or CpG-level methylation)
- Memory-bounded ordering of results by p-value (external merge sort)
- Streaming Benjamini-Hochberg, Benjamini-Yekutieli and Bonferroni adjustment
- Gene-partitioned parallel evaluation
- CSV export and a command-line interface

Example:
    >>> from ggca_pipeline import GGCAPipeline, AnalysisConfig
    >>> from ggca_pipeline.ingest import CsvDataset
    >>>
    >>> config = AnalysisConfig(correlation_method="pearson", correlation_threshold=0.7)
    >>> result = GGCAPipeline(config).run(
    ...     CsvDataset("mrna.csv"),
    ...     CsvDataset("methylation.csv", contains_cpg=True),
    ... )
"""

__version__ = "0.1.0"

# Core infrastructure
from ggca_pipeline.core.config import AdjustmentMethod, AnalysisConfig, CorrelationMethod
from ggca_pipeline.core.errors import (
    ComputationError,
    ConfigurationError,
    GGCAError,
    ResourceError,
)
from ggca_pipeline.correlation.result import CorrelationResult

# Subpackages are imported as needed:
#   from ggca_pipeline.ingest import CsvDataset, InMemoryDataset
#   from ggca_pipeline.correlation import get_correlator
#   from ggca_pipeline.adjustment import adjust_sorted
#   from ggca_pipeline.export import ResultCSVWriter

# Main Pipeline class
from ggca_pipeline.pipeline import AnalysisResult, GGCAPipeline, correlate

__all__ = [
    # Version
    "__version__",
    # Pipeline
    "GGCAPipeline",
    "AnalysisResult",
    "correlate",
    # Configuration
    "AnalysisConfig",
    "CorrelationMethod",
    "AdjustmentMethod",
    # Results
    "CorrelationResult",
    # Errors
    "GGCAError",
    "ConfigurationError",
    "ComputationError",
    "ResourceError",
]
