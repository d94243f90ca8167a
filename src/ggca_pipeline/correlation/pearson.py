"""
Pearson correlation.
"""

from __future__ import annotations

import numpy as np
from scipy import stats

from ggca_pipeline.correlation.base import Correlator, product_moment


class PearsonCorrelator(Correlator):
    """
    Pearson product-moment correlation with a Student-t test.

    The p-value follows R's ``cor.test``: the smaller tail of the t
    distribution doubled.

    Example:
        >>> correlator = PearsonCorrelator(n_samples=5)
        >>> r, pval = correlator.correlate([1, 2, 3, 4, 5], [2, 4, 6, 8, 10])
    """

    name = "Pearson"

    def _correlate(self, x: np.ndarray, y: np.ndarray) -> tuple[float, float]:
        r = product_moment(x, y)
        if np.isnan(r):
            return r, r

        df = self.degrees_of_freedom
        with np.errstate(divide="ignore"):
            t_stat = np.sqrt(df) * r / np.sqrt(1.0 - r**2)

        pval = 2.0 * min(stats.t.cdf(t_stat, df), stats.t.sf(t_stat, df))

        return r, pval


def pearson_correlation(x, y) -> tuple[float, float]:
    """
    Compute Pearson correlation between two vectors.

    Convenience function for PearsonCorrelator.

    Returns:
        Tuple of (correlation, pvalue).
    """
    correlator = PearsonCorrelator(n_samples=len(x))
    return correlator.correlate(x, y)
