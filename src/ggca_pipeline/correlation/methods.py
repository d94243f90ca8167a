"""
Correlation method dispatch.
"""

from __future__ import annotations

from typing import Union

from ggca_pipeline.core.config import CorrelationMethod, parse_correlation_method
from ggca_pipeline.correlation.base import Correlator
from ggca_pipeline.correlation.kendall import KendallCorrelator
from ggca_pipeline.correlation.pearson import PearsonCorrelator
from ggca_pipeline.correlation.spearman import SpearmanCorrelator

CORRELATORS: dict[CorrelationMethod, type[Correlator]] = {
    CorrelationMethod.PEARSON: PearsonCorrelator,
    CorrelationMethod.SPEARMAN: SpearmanCorrelator,
    CorrelationMethod.KENDALL: KendallCorrelator,
}


def get_correlator(
    method: Union[CorrelationMethod, int, str],
    n_samples: int,
) -> Correlator:
    """
    Build the correlator for a method.

    Args:
        method: Correlation method (enum, code or name).
        n_samples: Samples per vector.

    Returns:
        Correlator instance.
    """
    return CORRELATORS[parse_correlation_method(method)](n_samples)
