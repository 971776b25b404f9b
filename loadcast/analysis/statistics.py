"""
Statistical utilities for weather-load analysis.

Provides correlation, elasticity and error-metric helpers used throughout the
analysis and model-evaluation code:
- Pearson correlation: Linear association between weather and load
- Linear slope: Thermal elasticity (load change per degree)
- RMSE / MAPE / R-squared: Forecast error metrics
- Min-max and z-score scaling

Every function here is exploratory: empty or mismatched inputs return a
neutral 0 (or an empty array) instead of raising.
"""

import logging
from typing import Dict, Sequence, Union

import numpy as np
from sklearn.metrics import mean_squared_error, r2_score


logger = logging.getLogger(__name__)

ArrayLike = Union[Sequence[float], np.ndarray]


def _as_pair(x: ArrayLike, y: ArrayLike):
    """Return both inputs as float arrays, or None if they cannot be paired."""
    x_arr = np.asarray(x, dtype=float)
    y_arr = np.asarray(y, dtype=float)
    if x_arr.shape != y_arr.shape or x_arr.size == 0:
        return None
    return x_arr, y_arr


def pearson_correlation(x: ArrayLike, y: ArrayLike) -> float:
    """
    Calculate the Pearson correlation coefficient.

    Args:
        x: First series (e.g. temperatures)
        y: Second series (e.g. loads), same length as x

    Returns:
        Correlation in [-1, 1]. 0 for mismatched lengths, empty input, or a
        series with zero variance.
    """
    pair = _as_pair(x, y)
    if pair is None:
        return 0.0
    x_arr, y_arr = pair

    dx = x_arr - x_arr.mean()
    dy = y_arr - y_arr.mean()
    denominator = np.sqrt(np.sum(dx * dx) * np.sum(dy * dy))

    if denominator == 0:
        return 0.0

    r = float(np.sum(dx * dy) / denominator)
    # Rounding can push |r| a hair past 1
    return float(np.clip(r, -1.0, 1.0))


def linear_slope(x: ArrayLike, y: ArrayLike) -> float:
    """
    Ordinary least-squares slope of y on x (thermal elasticity).

    Args:
        x: Independent variable (temperature)
        y: Dependent variable (load)

    Returns:
        Slope, or 0 for fewer than 2 points or a zero denominator
    """
    pair = _as_pair(x, y)
    if pair is None or pair[0].size < 2:
        return 0.0
    x_arr, y_arr = pair

    n = x_arr.size
    sum_x = x_arr.sum()
    numerator = n * np.sum(x_arr * y_arr) - sum_x * y_arr.sum()
    denominator = n * np.sum(x_arr * x_arr) - sum_x * sum_x

    if denominator == 0:
        return 0.0

    return float(numerator / denominator)


def rmse(actual: ArrayLike, predicted: ArrayLike) -> float:
    """
    Root mean squared error.

    Returns 0 on empty or mismatched input.
    """
    pair = _as_pair(actual, predicted)
    if pair is None:
        return 0.0
    return float(np.sqrt(mean_squared_error(pair[0], pair[1])))


def mape(actual: ArrayLike, predicted: ArrayLike) -> float:
    """
    Mean absolute percentage error, in percent.

    Zero actual values contribute nothing to the numerator but still count
    towards n. Returns 0 on empty or mismatched input.
    """
    pair = _as_pair(actual, predicted)
    if pair is None:
        return 0.0
    actual_arr, predicted_arr = pair

    nonzero = actual_arr != 0
    errors = np.abs(
        (actual_arr[nonzero] - predicted_arr[nonzero]) / actual_arr[nonzero]
    )
    return float(errors.sum() / actual_arr.size * 100)


def r_squared(actual: ArrayLike, predicted: ArrayLike) -> float:
    """
    Coefficient of determination.

    Returns 0 on empty or mismatched input, and 0 when the actual series
    has zero variance.
    """
    pair = _as_pair(actual, predicted)
    if pair is None:
        return 0.0
    actual_arr, predicted_arr = pair

    if np.all(actual_arr == actual_arr[0]):
        return 0.0

    return float(r2_score(actual_arr, predicted_arr))


def min_max_normalize(values: ArrayLike) -> np.ndarray:
    """Scale values to [0, 1]; a constant series maps to all zeros."""
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        return arr

    value_range = arr.max() - arr.min()
    if value_range == 0:
        return np.zeros_like(arr)

    return (arr - arr.min()) / value_range


def z_score_standardize(values: ArrayLike) -> np.ndarray:
    """Standardize to zero mean, unit (population) std; constant series map to zeros."""
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        return arr

    std = arr.std()
    if std == 0:
        return np.zeros_like(arr)

    return (arr - arr.mean()) / std


def classify_correlation(correlation: float) -> Dict[str, str]:
    """
    Describe a correlation coefficient in words.

    Args:
        correlation: Pearson coefficient

    Returns:
        Dictionary with 'strength' (strong / moderate / weak) and
        'direction' (positive / negative)
    """
    magnitude = abs(correlation)
    if magnitude > 0.7:
        strength = 'strong'
    elif magnitude > 0.4:
        strength = 'moderate'
    else:
        strength = 'weak'

    return {
        'strength': strength,
        'direction': 'positive' if correlation > 0 else 'negative'
    }
