"""
Core infrastructure for ggca-pipeline.

Provides:
- Configuration management
- Error taxonomy
- Memory estimation for the external sort buffer
"""

from ggca_pipeline.core.config import (
    AnalysisConfig,
    AdjustmentMethod,
    CorrelationMethod,
    parse_adjustment_method,
    parse_correlation_method,
)
from ggca_pipeline.core.errors import (
    GGCAError,
    ConfigurationError,
    ComputationError,
    ResourceError,
)
from ggca_pipeline.core.memory import (
    MemoryEstimate,
    MemoryEstimator,
    buffer_size_for_megabytes,
)

__all__ = [
    "AnalysisConfig",
    "AdjustmentMethod",
    "CorrelationMethod",
    "parse_adjustment_method",
    "parse_correlation_method",
    "GGCAError",
    "ConfigurationError",
    "ComputationError",
    "ResourceError",
    "MemoryEstimate",
    "MemoryEstimator",
    "buffer_size_for_megabytes",
]
