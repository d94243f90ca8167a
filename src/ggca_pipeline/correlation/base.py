"""
Shared correlator interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import numpy as np

from ggca_pipeline.core.errors import ComputationError, ConfigurationError


class Correlator(ABC):
    """
    Computes a correlation statistic and its two-sided p-value for one pair
    of equal-length vectors.

    Subclasses set ``min_samples``; building a correlator with fewer samples
    is a configuration error.
    """

    min_samples = 3
    name = "correlation"

    def __init__(self, n_samples: int):
        """
        Initialize correlator.

        Args:
            n_samples: Samples per vector, shared by every pair of the run.
        """
        if n_samples < self.min_samples:
            raise ConfigurationError(
                f"{self.name} correlation needs at least {self.min_samples} samples, "
                f"got {n_samples}"
            )
        self.n_samples = n_samples
        self.degrees_of_freedom = np.float64(n_samples - 2)

    def correlate(self, x: np.ndarray, y: np.ndarray) -> tuple[float, float]:
        """
        Correlate two vectors.

        Args:
            x: Gene samples.
            y: GEM samples.

        Returns:
            Tuple of (statistic in [-1, 1], p-value in [0, 1]).
        """
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        if x.shape[0] != self.n_samples or y.shape[0] != self.n_samples:
            raise ConfigurationError(
                f"Vectors of {x.shape[0]} and {y.shape[0]} samples do not match "
                f"the analysis sample count ({self.n_samples})"
            )

        statistic, p_value = self._correlate(x, y)

        if not np.isfinite(statistic) or np.isnan(p_value):
            raise ComputationError(f"{self.name} correlation is undefined for this pair")

        return float(np.clip(statistic, -1.0, 1.0)), float(np.clip(p_value, 0.0, 1.0))

    @abstractmethod
    def _correlate(self, x: np.ndarray, y: np.ndarray) -> tuple[float, float]:
        ...

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(n_samples={self.n_samples})"


def product_moment(x: np.ndarray, y: np.ndarray) -> float:
    """Pearson product-moment coefficient; NaN when either vector is constant."""
    x_centered = x - x.mean()
    y_centered = y - y.mean()
    denominator = np.sqrt(np.dot(x_centered, x_centered) * np.dot(y_centered, y_centered))
    if denominator == 0 or not np.isfinite(denominator):
        return float("nan")
    return float(np.clip(np.dot(x_centered, y_centered) / denominator, -1.0, 1.0))
