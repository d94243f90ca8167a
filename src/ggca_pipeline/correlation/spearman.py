"""
Spearman rank correlation.
"""

from __future__ import annotations

import numpy as np
from scipy import stats

from ggca_pipeline.correlation.base import Correlator, product_moment


class SpearmanCorrelator(Correlator):
    """
    Spearman rank correlation.

    Converts both vectors to ranks (average for ties) and computes Pearson
    correlation on ranks. The p-value matches ``scipy.stats.spearmanr``.

    Example:
        >>> correlator = SpearmanCorrelator(n_samples=5)
        >>> rho, pval = correlator.correlate([1, 2, 3, 4, 5], [1, 4, 9, 16, 25])
    """

    name = "Spearman"

    def _correlate(self, x: np.ndarray, y: np.ndarray) -> tuple[float, float]:
        if np.isnan(x).any() or np.isnan(y).any():
            return float("nan"), float("nan")

        rs = product_moment(
            stats.rankdata(x, method="average"),
            stats.rankdata(y, method="average"),
        )
        if np.isnan(rs):
            return rs, rs

        df = self.degrees_of_freedom
        with np.errstate(divide="ignore"):
            t_stat = rs * np.sqrt(df / ((rs + 1.0) * (1.0 - rs)))

        pval = 2.0 * stats.t.sf(np.abs(t_stat), df)

        return rs, pval


def spearman_correlation(x, y) -> tuple[float, float]:
    """
    Compute Spearman correlation between two vectors.

    Returns:
        Tuple of (correlation, pvalue).
    """
    correlator = SpearmanCorrelator(n_samples=len(x))
    return correlator.correlate(x, y)
