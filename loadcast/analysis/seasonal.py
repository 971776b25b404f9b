"""
Seasonal adjustment using additive decomposition.

original = trend + seasonal + residual

The trend is a centered moving average, the seasonal component is the
period-indexed mean of the detrended series, and the residual is what is left.
"""

import logging
from dataclasses import dataclass
from typing import Sequence, Union

import numpy as np
import pandas as pd


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SeasonalDecomposition:
    """
    Additive decomposition of a series.

    Attributes:
        original: Input series
        trend: Centered moving average
        seasonal: Repeating pattern tiled over the whole series
        residual: original - trend - seasonal
    """
    original: np.ndarray
    trend: np.ndarray
    seasonal: np.ndarray
    residual: np.ndarray


def moving_average(data: Union[Sequence[float], np.ndarray], window_size: int) -> np.ndarray:
    """
    Centered moving average clipped at both ends of the series.

    The window for index i covers [i - window_size // 2, i + ceil(window_size / 2)).

    Args:
        data: Input series
        window_size: Window length (>= 1)

    Returns:
        Array of the same length as data
    """
    if window_size < 1:
        raise ValueError(f"window_size must be >= 1, got {window_size}")

    series = pd.Series(np.asarray(data, dtype=float))
    return series.rolling(window=window_size, center=True, min_periods=1).mean().to_numpy()


def seasonal_decompose(
    data: Union[Sequence[float], np.ndarray],
    period: int = 24
) -> SeasonalDecomposition:
    """
    Decompose a series into trend, seasonal, and residual components.

    Args:
        data: Input series (e.g. hourly load)
        period: Season length in samples (default: 24 for daily cycles in hourly data)

    Returns:
        SeasonalDecomposition

    Raises:
        ValueError: If period < 1
    """
    if period < 1:
        raise ValueError(f"period must be >= 1, got {period}")

    original = np.asarray(data, dtype=float)
    trend = moving_average(original, period)
    detrended = original - trend

    seasonal = np.zeros_like(original)
    for phase in range(min(period, original.size)):
        seasonal[phase::period] = detrended[phase::period].mean()

    residual = original - trend - seasonal

    logger.debug(f"Decomposed series of length {original.size} with period={period}")
    return SeasonalDecomposition(
        original=original,
        trend=trend,
        seasonal=seasonal,
        residual=residual
    )


def recompose(decomposition: SeasonalDecomposition) -> np.ndarray:
    """
    Seasonally adjusted series: trend + residual (the seasonal term is dropped).
    """
    return decomposition.trend + decomposition.residual
