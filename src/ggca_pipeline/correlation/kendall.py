"""
Kendall tau-b rank correlation.
"""

from __future__ import annotations

import numpy as np
from scipy import stats

from ggca_pipeline.correlation.base import Correlator


class KendallCorrelator(Correlator):
    """
    Kendall tau-b with an asymptotic normal significance test.

    Values that cannot be ordered (NaN) rank above every number, so the
    statistic is defined whenever neither vector is constant. The z-score is
    ``3 * (concordant - discordant) / sqrt(n (n - 1) (2n + 5) / 2)`` and the
    p-value ``2 * Phi(-|z|)``.

    Example:
        >>> correlator = KendallCorrelator(n_samples=5)
        >>> tau, pval = correlator.correlate([1, 2, 3, 4, 5], [1, 3, 2, 5, 4])
    """

    name = "Kendall"
    min_samples = 2

    def _correlate(self, x: np.ndarray, y: np.ndarray) -> tuple[float, float]:
        x = np.where(np.isnan(x), np.inf, x)
        y = np.where(np.isnan(y), np.inf, y)

        tau = stats.kendalltau(x, y, variant="b").statistic
        if np.isnan(tau):
            return tau, tau

        n = self.n_samples
        n_pairs = n * (n - 1) / 2.0
        # concordant minus discordant, recovered from tau-b and tie counts
        score = tau * np.sqrt((n_pairs - _tied_pairs(x)) * (n_pairs - _tied_pairs(y)))
        z = 3.0 * score / np.sqrt(n * (n - 1) * (2 * n + 5) / 2.0)

        pval = 2.0 * stats.norm.cdf(-np.abs(z))

        return tau, pval


def _tied_pairs(values: np.ndarray) -> float:
    _, counts = np.unique(values, return_counts=True)
    return float(np.sum(counts * (counts - 1)) / 2.0)


def kendall_correlation(x, y) -> tuple[float, float]:
    """
    Compute Kendall tau-b between two vectors.

    Returns:
        Tuple of (tau, pvalue).
    """
    correlator = KendallCorrelator(n_samples=len(x))
    return correlator.correlate(x, y)
