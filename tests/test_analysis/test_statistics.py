"""
Unit tests for the statistics helpers.

Tests correlation, elasticity, error metrics and scaling, including the
neutral-zero behaviour on empty or mismatched input.
"""

import numpy as np
import pytest

from loadcast.analysis.statistics import (
    classify_correlation,
    linear_slope,
    mape,
    min_max_normalize,
    pearson_correlation,
    r_squared,
    rmse,
    z_score_standardize,
)


class TestPearsonCorrelation:
    """Test Pearson correlation."""

    def test_perfect_positive(self):
        """[1,2,3] vs [2,4,6] is perfectly correlated."""
        assert pearson_correlation([1, 2, 3], [2, 4, 6]) == pytest.approx(1.0)

    def test_perfect_negative(self):
        assert pearson_correlation([1, 2, 3], [6, 4, 2]) == pytest.approx(-1.0)

    def test_self_correlation(self):
        """A non-constant series correlates perfectly with itself."""
        rng = np.random.default_rng(0)
        x = rng.normal(size=50)
        assert pearson_correlation(x, x) == pytest.approx(1.0)

    def test_within_bounds(self):
        """Correlation always lies in [-1, 1]."""
        rng = np.random.default_rng(1)
        for _ in range(20):
            x = rng.normal(size=30)
            y = 0.5 * x + rng.normal(size=30)
            r = pearson_correlation(x, y)
            assert -1.0 <= r <= 1.0

    @pytest.mark.parametrize("x, y", [
        ([], []),
        ([1, 2, 3], [1, 2]),
        ([5, 5, 5], [1, 2, 3]),
        ([1, 2, 3], [4, 4, 4]),
    ])
    def test_degenerate_inputs_return_zero(self, x, y):
        """Empty, mismatched or zero-variance input gives 0."""
        assert pearson_correlation(x, y) == 0.0


class TestLinearSlope:
    """Test OLS slope (thermal elasticity)."""

    def test_exact_line(self):
        x = [0, 1, 2, 3, 4]
        y = [3 + 2.5 * v for v in x]
        assert linear_slope(x, y) == pytest.approx(2.5)

    def test_matches_numpy_polyfit(self):
        rng = np.random.default_rng(2)
        x = rng.uniform(-5, 35, size=40)
        y = 1500 + 40 * x + rng.normal(0, 20, size=40)
        expected = np.polyfit(x, y, 1)[0]
        assert linear_slope(x, y) == pytest.approx(expected)

    @pytest.mark.parametrize("x, y", [
        ([1.0], [2.0]),
        ([], []),
        ([1, 2], [1, 2, 3]),
        ([2, 2, 2], [1, 5, 9]),
    ])
    def test_degenerate_inputs_return_zero(self, x, y):
        """Fewer than 2 points, mismatch or zero denominator gives 0."""
        assert linear_slope(x, y) == 0.0


class TestErrorMetrics:
    """Test RMSE, MAPE and R-squared."""

    def test_rmse(self):
        assert rmse([1, 2, 3], [1, 2, 5]) == pytest.approx(np.sqrt(4 / 3))

    def test_rmse_perfect(self):
        assert rmse([10, 20], [10, 20]) == 0.0

    def test_mape_percent(self):
        assert mape([100, 200], [110, 180]) == pytest.approx(10.0)

    def test_mape_skips_zero_actuals_but_counts_them(self):
        """Zero actuals add nothing to the numerator but still count towards n."""
        assert mape([0, 100], [50, 110]) == pytest.approx(5.0)

    def test_r_squared_perfect(self):
        assert r_squared([1, 2, 3, 4], [1, 2, 3, 4]) == pytest.approx(1.0)

    def test_r_squared_mean_prediction(self):
        assert r_squared([1, 2, 3], [2, 2, 2]) == pytest.approx(0.0)

    def test_r_squared_constant_actuals(self):
        """Zero variance in the actual series gives 0."""
        assert r_squared([5, 5, 5], [4, 5, 6]) == 0.0

    @pytest.mark.parametrize("metric", [rmse, mape, r_squared])
    def test_empty_or_mismatched_return_zero(self, metric):
        assert metric([], []) == 0.0
        assert metric([1, 2, 3], [1, 2]) == 0.0


class TestScaling:
    """Test min-max and z-score scaling."""

    def test_min_max_range(self):
        np.testing.assert_allclose(min_max_normalize([2, 4, 6]), [0.0, 0.5, 1.0])

    def test_min_max_constant(self):
        np.testing.assert_array_equal(min_max_normalize([3, 3, 3]), [0.0, 0.0, 0.0])

    def test_z_score(self):
        z = z_score_standardize([1, 2, 3, 4, 5])
        assert z.mean() == pytest.approx(0.0)
        assert z.std() == pytest.approx(1.0)

    def test_z_score_constant(self):
        np.testing.assert_array_equal(z_score_standardize([7, 7]), [0.0, 0.0])

    def test_empty(self):
        assert min_max_normalize([]).size == 0
        assert z_score_standardize([]).size == 0


class TestClassifyCorrelation:
    """Test verbal correlation classes."""

    @pytest.mark.parametrize("r, strength, direction", [
        (0.85, "strong", "positive"),
        (-0.75, "strong", "negative"),
        (0.5, "moderate", "positive"),
        (-0.41, "moderate", "negative"),
        (0.4, "weak", "positive"),
        (-0.1, "weak", "negative"),
    ])
    def test_classes(self, r, strength, direction):
        result = classify_correlation(r)
        assert result == {"strength": strength, "direction": direction}
