"""Tests for correlation strategies."""

import pytest
import numpy as np
from scipy import stats


class TestPearsonCorrelation:
    """Test Pearson correlation."""

    def test_perfect_positive(self):
        from ggca_pipeline.correlation import pearson_correlation

        r, pval = pearson_correlation([1, 2, 3, 4, 5], [2, 4, 6, 8, 10])
        assert r == pytest.approx(1.0)
        assert pval < 1e-6

    def test_perfect_negative(self):
        from ggca_pipeline.correlation import pearson_correlation

        r, pval = pearson_correlation([1, 2, 3, 4, 5], [5, 4, 3, 2, 1])
        assert r == pytest.approx(-1.0)
        assert pval < 1e-6

    def test_matches_scipy(self):
        from ggca_pipeline.correlation import PearsonCorrelator

        np.random.seed(0)
        x = np.random.randn(30)
        y = 0.4 * x + np.random.randn(30)

        r, pval = PearsonCorrelator(n_samples=30).correlate(x, y)
        expected = stats.pearsonr(x, y)
        assert r == pytest.approx(expected[0], rel=1e-9)
        assert pval == pytest.approx(expected[1], rel=1e-6)

    def test_no_correlation(self):
        from ggca_pipeline.correlation import pearson_correlation

        np.random.seed(42)
        r, pval = pearson_correlation(np.random.randn(1000), np.random.randn(1000))
        assert abs(r) < 0.1
        assert pval > 0.01

    def test_constant_vector_is_undefined(self):
        from ggca_pipeline.core import ComputationError
        from ggca_pipeline.correlation import pearson_correlation

        with pytest.raises(ComputationError):
            pearson_correlation([1, 2, 3, 4], [3, 3, 3, 3])

    def test_nan_is_undefined(self):
        from ggca_pipeline.core import ComputationError
        from ggca_pipeline.correlation import pearson_correlation

        with pytest.raises(ComputationError):
            pearson_correlation([1, 2, np.nan, 4], [1, 2, 3, 4])


class TestSpearmanCorrelation:
    """Test Spearman correlation."""

    def test_monotonic_relationship(self):
        from ggca_pipeline.correlation import spearman_correlation

        rs, pval = spearman_correlation([1, 2, 3, 4, 5], [1, 4, 9, 16, 25])
        assert rs == pytest.approx(1.0)
        assert pval < 1e-6

    def test_with_ties_matches_scipy(self):
        from ggca_pipeline.correlation import spearman_correlation

        x = [1, 2, 2, 3, 4, 5, 5, 6]
        y = [2, 1, 3, 5, 4, 6, 8, 7]

        rs, pval = spearman_correlation(x, y)
        expected = stats.spearmanr(x, y)
        assert rs == pytest.approx(expected[0], rel=1e-9)
        assert pval == pytest.approx(expected[1], rel=1e-6)


class TestKendallCorrelation:
    """Test Kendall tau-b."""

    def test_matches_scipy_without_ties(self):
        from ggca_pipeline.correlation import kendall_correlation

        np.random.seed(3)
        x = np.random.randn(25)
        y = x + np.random.randn(25)

        tau, pval = kendall_correlation(x, y)
        expected = stats.kendalltau(x, y, method="asymptotic")
        assert tau == pytest.approx(expected[0], rel=1e-9)
        assert pval == pytest.approx(expected[1], rel=1e-6)

    def test_tau_b_with_ties(self):
        from ggca_pipeline.correlation import kendall_correlation

        x = [1, 1, 2, 3, 4, 4]
        y = [1, 2, 2, 3, 5, 4]

        tau, pval = kendall_correlation(x, y)
        assert tau == pytest.approx(stats.kendalltau(x, y).statistic, rel=1e-9)
        assert 0.0 <= pval <= 1.0

    def test_nan_orders_above_numbers(self):
        from ggca_pipeline.correlation import kendall_correlation

        tau_nan, _ = kendall_correlation([1, 2, 3, np.nan], [1, 2, 3, 4])
        tau_big, _ = kendall_correlation([1, 2, 3, 1e9], [1, 2, 3, 4])
        assert tau_nan == pytest.approx(1.0)
        assert tau_nan == pytest.approx(tau_big)

    def test_two_samples_allowed(self):
        from ggca_pipeline.correlation import KendallCorrelator

        tau, _ = KendallCorrelator(n_samples=2).correlate([1, 2], [3, 4])
        assert tau == pytest.approx(1.0)


class TestCorrelatorContract:
    """Shared correlator behavior."""

    @pytest.mark.parametrize("method", ["pearson", "spearman", "kendall"])
    def test_outputs_in_range(self, method):
        from ggca_pipeline.correlation import get_correlator

        np.random.seed(11)
        correlator = get_correlator(method, 12)
        for _ in range(20):
            statistic, pval = correlator.correlate(np.random.randn(12), np.random.randn(12))
            assert -1.0 <= statistic <= 1.0
            assert 0.0 <= pval <= 1.0

    @pytest.mark.parametrize("method", ["pearson", "spearman"])
    def test_too_few_samples(self, method):
        from ggca_pipeline.core import ConfigurationError
        from ggca_pipeline.correlation import get_correlator

        with pytest.raises(ConfigurationError):
            get_correlator(method, 2)

    def test_length_mismatch(self):
        from ggca_pipeline.core import ConfigurationError
        from ggca_pipeline.correlation import PearsonCorrelator

        with pytest.raises(ConfigurationError):
            PearsonCorrelator(n_samples=4).correlate([1, 2, 3, 4], [1, 2, 3])

    def test_dispatch_by_code_and_enum(self):
        from ggca_pipeline.core import CorrelationMethod
        from ggca_pipeline.correlation import (
            KendallCorrelator,
            PearsonCorrelator,
            SpearmanCorrelator,
            get_correlator,
        )

        assert isinstance(get_correlator(1, 5), SpearmanCorrelator)
        assert isinstance(get_correlator(2, 5), KendallCorrelator)
        assert isinstance(get_correlator(CorrelationMethod.PEARSON, 5), PearsonCorrelator)

    def test_unknown_method(self):
        from ggca_pipeline.core import ConfigurationError
        from ggca_pipeline.correlation import get_correlator

        with pytest.raises(ConfigurationError):
            get_correlator("distance", 5)
