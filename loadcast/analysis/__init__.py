"""
Statistical analysis module for weather-load relationships.

This module provides:
- Correlation, elasticity and error metrics (statistics)
- Heating / cooling degree days (degree_days)
- Heating vs cooling regime analysis and base-temperature search (regime_analysis)
- Additive seasonal decomposition (seasonal)
"""

from loadcast.analysis.statistics import (
    pearson_correlation,
    linear_slope,
    rmse,
    mape,
    r_squared,
    min_max_normalize,
    z_score_standardize,
    classify_correlation
)
from loadcast.analysis.degree_days import (
    DegreeDayResult,
    degree_days,
    daily_degree_days
)
from loadcast.analysis.regime_analysis import (
    ThermalRegimeAnalysis,
    regime_analysis,
    optimize_base_temperature
)
from loadcast.analysis.seasonal import (
    SeasonalDecomposition,
    moving_average,
    seasonal_decompose,
    recompose
)

__all__ = [
    # Statistics
    'pearson_correlation',
    'linear_slope',
    'rmse',
    'mape',
    'r_squared',
    'min_max_normalize',
    'z_score_standardize',
    'classify_correlation',
    # Degree days
    'DegreeDayResult',
    'degree_days',
    'daily_degree_days',
    # Regimes
    'ThermalRegimeAnalysis',
    'regime_analysis',
    'optimize_base_temperature',
    # Seasonal
    'SeasonalDecomposition',
    'moving_average',
    'seasonal_decompose',
    'recompose'
]
