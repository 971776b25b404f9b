"""
Heating and cooling degree-day calculations.

HDD = max(T_base - T_avg, 0)
CDD = max(T_avg - T_base, 0)

with T_avg = (T_max + T_min) / 2. The base (comfort) temperature is typically
18.3 °C (65 °F).
"""

import logging
from dataclasses import dataclass

import pandas as pd


logger = logging.getLogger(__name__)

DEFAULT_BASE_TEMPERATURE = 18.3


@dataclass(frozen=True)
class DegreeDayResult:
    """
    Degree days for a single day.

    Attributes:
        hdd: Heating degree days (>= 0)
        cdd: Cooling degree days (>= 0)
        avg_temperature: Mean of the daily maximum and minimum
    """
    hdd: float
    cdd: float
    avg_temperature: float


def degree_days(
    max_temp: float,
    min_temp: float,
    base_temperature: float = DEFAULT_BASE_TEMPERATURE
) -> DegreeDayResult:
    """
    Calculate heating and cooling degree days.

    Args:
        max_temp: Daily maximum temperature
        min_temp: Daily minimum temperature
        base_temperature: Comfort temperature (default: 18.3)

    Returns:
        DegreeDayResult; at most one of hdd/cdd is nonzero
    """
    avg_temp = (max_temp + min_temp) / 2

    hdd = max(base_temperature - avg_temp, 0.0)
    cdd = max(avg_temp - base_temperature, 0.0)

    return DegreeDayResult(hdd=hdd, cdd=cdd, avg_temperature=avg_temp)


def daily_degree_days(
    observations: pd.DataFrame,
    base_temperature: float = DEFAULT_BASE_TEMPERATURE,
    temperature_col: str = 'temperature'
) -> pd.DataFrame:
    """
    Calculate degree days for each calendar day of an observation series.

    Args:
        observations: DataFrame with DatetimeIndex and a temperature column
        base_temperature: Comfort temperature
        temperature_col: Name of the temperature column

    Returns:
        DataFrame indexed by day with columns ['hdd', 'cdd', 'avg_temperature']

    Raises:
        ValueError: If the index is not a DatetimeIndex or the column is missing
    """
    if not isinstance(observations.index, pd.DatetimeIndex):
        raise ValueError("Observations must have a DatetimeIndex")
    if temperature_col not in observations.columns:
        raise ValueError(f"Temperature column '{temperature_col}' not found in data")

    daily = observations[temperature_col].resample('D').agg(['max', 'min']).dropna()

    rows = [
        degree_days(row['max'], row['min'], base_temperature)
        for _, row in daily.iterrows()
    ]

    result = pd.DataFrame(
        {
            'hdd': [r.hdd for r in rows],
            'cdd': [r.cdd for r in rows],
            'avg_temperature': [r.avg_temperature for r in rows],
        },
        index=daily.index
    )

    logger.debug(f"Computed degree days for {len(result)} days (base={base_temperature})")
    return result
