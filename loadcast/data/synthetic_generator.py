"""
Synthetic weather and load generation for tests and demonstrations.

This module provides the SyntheticLoadGenerator class for generating aligned
hourly {temperature, humidity, load} observations with:
- Yearly and daily temperature cycles plus AR(1) weather noise
- Humidity anti-correlated with temperature
- Load following a heating/cooling V-shape around a base temperature
- A business-hour demand bump on weekdays
"""

import logging
from typing import Any, Dict, Optional, Union

import numpy as np
import pandas as pd


# Get logger (no basicConfig - central config handles logging)
logger = logging.getLogger(__name__)


class SyntheticLoadGenerator:
    """
    Generator for synthetic weather-driven electricity load observations.

    Example:
        >>> from loadcast.config.load_config import get_config
        >>> gen = SyntheticLoadGenerator(config=get_config())
        >>> observations = gen.generate_observations(
        ...     start_date='2024-01-01',
        ...     periods=24 * 14
        ... )
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize synthetic load generator.

        Args:
            config: Configuration dictionary. If None, loads from config.yaml.
        """
        if config is None:
            from loadcast.config.load_config import get_config
            config = get_config()
        self.config = config

        synthetic_config = config.get("synthetic", {})

        load_config = synthetic_config.get("load", {})
        self.base_load = load_config.get("base_load", 2000.0)
        self.heating_slope = load_config.get("heating_slope", 60.0)
        self.cooling_slope = load_config.get("cooling_slope", 80.0)
        self.base_temperature = load_config.get("base_temperature", 18.3)
        self.business_hour_bump = load_config.get("business_hour_bump", 250.0)
        self.noise_std = load_config.get("noise_std", 40.0)

        weather_config = synthetic_config.get("weather", {})
        self.mean_temperature = weather_config.get("mean_temperature", 15.0)
        self.seasonal_amplitude = weather_config.get("seasonal_amplitude", 10.0)
        self.daily_amplitude = weather_config.get("daily_amplitude", 5.0)
        self.mean_humidity = weather_config.get("mean_humidity", 60.0)
        self.random_seed = weather_config.get("random_seed", 42)

        logger.info(
            f"SyntheticLoadGenerator initialized: base_load={self.base_load}, "
            f"base_temperature={self.base_temperature}"
        )

    def generate_observations(
        self,
        start_date: str,
        periods: int,
        frequency: str = 'h',
        random_state: Union[None, int, np.random.Generator] = None
    ) -> pd.DataFrame:
        """
        Generate aligned weather and load observations.

        Args:
            start_date: First timestamp (anything pandas can parse)
            periods: Number of observations
            frequency: pandas frequency string (default: hourly)
            random_state: Seed or Generator; defaults to the configured seed

        Returns:
            DataFrame with DatetimeIndex named 'timestamp' and columns
            ['temperature', 'humidity', 'load']

        Raises:
            ValueError: If periods < 1
        """
        if periods < 1:
            raise ValueError(f"periods must be >= 1, got {periods}")

        if isinstance(random_state, np.random.Generator):
            rng = random_state
        else:
            rng = np.random.default_rng(self.random_seed if random_state is None else random_state)

        timestamps = pd.date_range(start=start_date, periods=periods, freq=frequency, name='timestamp')

        logger.info(f"Generating {periods} observations starting {timestamps[0]}")

        temperature = self._simulate_temperature(timestamps, rng)
        humidity = self._simulate_humidity(temperature, rng)
        load = self._simulate_load(timestamps, temperature, rng)

        return pd.DataFrame(
            {
                'temperature': temperature,
                'humidity': humidity,
                'load': load
            },
            index=timestamps
        )

    def _simulate_temperature(self, timestamps: pd.DatetimeIndex, rng: np.random.Generator) -> np.ndarray:
        """Yearly + daily sinusoid with AR(1) noise (coldest early January, warmest mid-afternoon)."""
        day_of_year = timestamps.dayofyear.to_numpy()
        hour = timestamps.hour.to_numpy()

        yearly = -self.seasonal_amplitude * np.cos(2 * np.pi * (day_of_year - 15) / 365.25)
        daily = -self.daily_amplitude * np.cos(2 * np.pi * (hour - 3) / 24)

        noise = np.zeros(len(timestamps))
        shocks = rng.normal(0.0, 0.8, size=len(timestamps))
        for i in range(1, len(timestamps)):
            noise[i] = 0.9 * noise[i - 1] + shocks[i]

        return self.mean_temperature + yearly + daily + noise

    def _simulate_humidity(self, temperature: np.ndarray, rng: np.random.Generator) -> np.ndarray:
        humidity = self.mean_humidity - 1.5 * (temperature - self.mean_temperature)
        humidity += rng.normal(0.0, 5.0, size=temperature.size)
        return np.clip(humidity, 5.0, 100.0)

    def _simulate_load(
        self,
        timestamps: pd.DatetimeIndex,
        temperature: np.ndarray,
        rng: np.random.Generator
    ) -> np.ndarray:
        """
        Load = base + heating/cooling response + weekday business-hour bump + noise.
        """
        heating = self.heating_slope * np.maximum(self.base_temperature - temperature, 0.0)
        cooling = self.cooling_slope * np.maximum(temperature - self.base_temperature, 0.0)

        hour = timestamps.hour.to_numpy()
        weekday = timestamps.dayofweek.to_numpy() < 5
        business = ((hour >= 9) & (hour <= 17) & weekday).astype(float)

        noise = rng.normal(0.0, self.noise_std, size=temperature.size)

        return self.base_load + heating + cooling + self.business_hour_bump * business + noise
