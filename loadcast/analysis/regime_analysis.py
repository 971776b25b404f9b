"""
Thermal regime analysis (heating vs cooling).

Splits observations around a base temperature and measures how strongly load
responds to temperature on each side, and searches for the base temperature
that best explains the load with a change-point degree-day model.
"""

import logging
from dataclasses import dataclass
from typing import Sequence, Tuple, Union

import numpy as np

from loadcast.analysis.statistics import linear_slope, pearson_correlation


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ThermalRegimeAnalysis:
    """
    Temperature sensitivity in the heating and cooling regimes.

    Attributes:
        base_temperature: Temperature separating the regimes
        heating_correlation: Pearson correlation for observations below base
        cooling_correlation: Pearson correlation for observations above base
        heating_slope: Load change per degree below base
        cooling_slope: Load change per degree above base
        comfort_zone: (min, max) temperature among observations at minimum load
    """
    base_temperature: float
    heating_correlation: float
    cooling_correlation: float
    heating_slope: float
    cooling_slope: float
    comfort_zone: Tuple[float, float]


def _validate_series(
    temperatures: Union[Sequence[float], np.ndarray],
    loads: Union[Sequence[float], np.ndarray]
) -> Tuple[np.ndarray, np.ndarray]:
    temps = np.asarray(temperatures, dtype=float)
    load_arr = np.asarray(loads, dtype=float)

    if temps.size == 0:
        raise ValueError("Regime analysis requires at least one observation")
    if temps.shape != load_arr.shape:
        raise ValueError(
            f"temperatures and loads must have the same length, "
            f"got {temps.size} and {load_arr.size}"
        )
    return temps, load_arr


def regime_analysis(
    temperatures: Union[Sequence[float], np.ndarray],
    loads: Union[Sequence[float], np.ndarray],
    base_temp: float
) -> ThermalRegimeAnalysis:
    """
    Analyze temperature sensitivity in heating and cooling regimes separately.

    Observations exactly at base_temp belong to neither regime. The comfort
    zone is taken from the temperatures observed at the global minimum load,
    which is only meaningful when those minima cluster near the comfort
    temperature.

    Args:
        temperatures: Temperature series
        loads: Load series, aligned with temperatures
        base_temp: Base temperature separating the regimes

    Returns:
        ThermalRegimeAnalysis

    Raises:
        ValueError: If the series are empty or have different lengths
    """
    temps, load_arr = _validate_series(temperatures, loads)

    heating = temps < base_temp
    cooling = temps > base_temp

    at_min_load = temps[load_arr == load_arr.min()]

    analysis = ThermalRegimeAnalysis(
        base_temperature=base_temp,
        heating_correlation=pearson_correlation(temps[heating], load_arr[heating]),
        cooling_correlation=pearson_correlation(temps[cooling], load_arr[cooling]),
        heating_slope=linear_slope(temps[heating], load_arr[heating]),
        cooling_slope=linear_slope(temps[cooling], load_arr[cooling]),
        comfort_zone=(float(at_min_load.min()), float(at_min_load.max()))
    )

    logger.debug(
        f"Regime analysis at base={base_temp}: heating n={int(heating.sum())}, "
        f"cooling n={int(cooling.sum())}"
    )
    return analysis


def optimize_base_temperature(
    temperatures: Union[Sequence[float], np.ndarray],
    loads: Union[Sequence[float], np.ndarray],
    min_temp: float = 10.0,
    max_temp: float = 25.0,
    step: float = 0.5
) -> Tuple[float, float]:
    """
    Find the base temperature that best explains load with degree-hours.

    For every candidate base the change-point model
    load ~ a + b * HDD + c * CDD is fitted by least squares; the candidate
    with the highest R-squared wins (the lowest candidate on ties).

    Args:
        temperatures: Temperature series
        loads: Load series
        min_temp: Lowest candidate base temperature
        max_temp: Highest candidate base temperature (inclusive)
        step: Candidate spacing

    Returns:
        Tuple of (best_base_temperature, r_squared)

    Raises:
        ValueError: If the series are invalid or the search range is empty
    """
    temps, load_arr = _validate_series(temperatures, loads)

    if step <= 0:
        raise ValueError(f"step must be positive, got {step}")
    if max_temp < min_temp:
        raise ValueError(f"max_temp ({max_temp}) must be >= min_temp ({min_temp})")

    n_candidates = int(np.floor((max_temp - min_temp) / step + 1e-9)) + 1
    candidates = min_temp + step * np.arange(n_candidates)

    ss_tot = np.sum((load_arr - load_arr.mean()) ** 2)

    best_base = float(candidates[0])
    best_r2 = -np.inf

    for base in candidates:
        hdd = np.maximum(base - temps, 0.0)
        cdd = np.maximum(temps - base, 0.0)
        design = np.column_stack([np.ones_like(temps), hdd, cdd])

        coeffs, _, _, _ = np.linalg.lstsq(design, load_arr, rcond=None)
        ss_res = np.sum((load_arr - design @ coeffs) ** 2)
        r2 = 0.0 if ss_tot == 0 else 1.0 - ss_res / ss_tot

        if r2 > best_r2:
            best_r2 = r2
            best_base = float(base)

    logger.info(f"Optimal base temperature: {best_base:.1f} (R²={best_r2:.4f})")
    return best_base, float(best_r2)
