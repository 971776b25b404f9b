"""
Feature engineering module for weather-driven load forecasting.

This module turns raw temperature / humidity / timestamp series into fixed-schema
FeatureVector records: thermal momentum (building thermal inertia), temporal
calendar features, cyclical sine/cosine encodings, and anomaly flags. It also
provides feature importance scoring and min-max normalization.
"""

import logging
import math
from dataclasses import dataclass, fields, replace
from datetime import datetime
from typing import TYPE_CHECKING, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from loadcast.analysis.statistics import pearson_correlation

if TYPE_CHECKING:
    from loadcast.models.training import TrainingData


logger = logging.getLogger(__name__)

BUSINESS_HOURS = (9, 17)
PEAK_HOURS = (8, 12, 18)
TEMPERATURE_PERIOD = 50.0

TimestampLike = Union[datetime, pd.Timestamp, str]


# =============================================================================
# Feature Records
# =============================================================================

@dataclass(frozen=True)
class FeatureVector:
    """
    Model input for a single observation.

    All fields are numeric so that split search, normalization and importance
    scoring treat them uniformly; boolean flags are stored as 0.0 / 1.0.
    """
    temperature: float
    humidity: float
    thermal_momentum_3h: float
    thermal_momentum_24h: float
    hour_of_day: float
    day_of_week: float
    day_of_year: float
    is_business_hour: float
    is_peak_hour: float
    is_weekend: float
    temperature_sin: float
    temperature_cos: float
    hour_sin: float
    hour_cos: float
    month_sin: float
    month_cos: float

    def to_dict(self) -> Dict[str, float]:
        """Return the features as an ordered name -> value dictionary."""
        return {name: float(getattr(self, name)) for name in FEATURE_NAMES}

    def to_array(self) -> np.ndarray:
        """Return the features as an array in FEATURE_NAMES order."""
        return np.array([getattr(self, name) for name in FEATURE_NAMES], dtype=float)

    def with_temperature(self, temperature: float) -> 'FeatureVector':
        """Copy of this vector with only the temperature replaced."""
        return replace(self, temperature=temperature)

    @classmethod
    def from_mapping(cls, values: Mapping[str, float]) -> 'FeatureVector':
        """
        Build a FeatureVector from a name -> value mapping.

        Raises:
            ValueError: If any schema field is missing
        """
        missing = [name for name in FEATURE_NAMES if name not in values]
        if missing:
            raise ValueError(f"Missing feature fields: {missing}")
        return cls(**{name: float(values[name]) for name in FEATURE_NAMES})


FEATURE_NAMES: Tuple[str, ...] = tuple(f.name for f in fields(FeatureVector))


@dataclass(frozen=True)
class TemporalFeatures:
    """Calendar features of a timestamp. day_of_week uses Monday=0."""
    hour: int
    day_of_week: int
    day_of_year: int
    month: int
    is_business_hour: bool
    is_peak_hour: bool
    is_weekend: bool


@dataclass(frozen=True)
class FeatureImportance:
    feature: str
    score: float


@dataclass(frozen=True)
class FeatureScale:
    """Min-max scaling parameters of one feature."""
    min: float
    max: float
    range: float


# =============================================================================
# Feature Functions
# =============================================================================

def cyclical_encode(value: float, period: float) -> Tuple[float, float]:
    """
    Encode a periodic value as (sin, cos) of 2*pi*value/period.

    Hour 23 ends up next to hour 0 and month 12 next to month 1.

    Args:
        value: Periodic quantity (hour, month, temperature, ...)
        period: Length of one cycle

    Returns:
        Tuple of (sin, cos)
    """
    if period == 0:
        raise ValueError("period must be nonzero")
    radians = 2 * math.pi * value / period
    return math.sin(radians), math.cos(radians)


def thermal_momentum(
    temperatures: Union[Sequence[float], np.ndarray, pd.Series],
    window_size: int
) -> np.ndarray:
    """
    Trailing moving average of temperature (building thermal inertia).

    The window for index i covers the last window_size points ending at i,
    clipped at the start of the series; it never looks ahead.

    Args:
        temperatures: Temperature series in time order
        window_size: Number of trailing points to average

    Returns:
        Array of the same length as temperatures
    """
    if window_size < 1:
        raise ValueError(f"window_size must be >= 1, got {window_size}")

    series = pd.Series(np.asarray(temperatures, dtype=float))
    return series.rolling(window=window_size, min_periods=1).mean().to_numpy()


def extract_temporal_features(timestamp: TimestampLike) -> TemporalFeatures:
    """
    Extract calendar features from a timestamp.

    Args:
        timestamp: datetime, pandas Timestamp, or ISO-8601 string

    Returns:
        TemporalFeatures with business-hour (9-17 inclusive), peak-hour
        (8, 12, 18) and weekend (Saturday/Sunday) flags
    """
    ts = pd.Timestamp(timestamp)
    hour = ts.hour
    day_of_week = ts.dayofweek  # Monday=0, Sunday=6

    return TemporalFeatures(
        hour=hour,
        day_of_week=day_of_week,
        day_of_year=ts.dayofyear,
        month=ts.month,
        is_business_hour=BUSINESS_HOURS[0] <= hour <= BUSINESS_HOURS[1],
        is_peak_hour=hour in PEAK_HOURS,
        is_weekend=day_of_week >= 5
    )


def build_feature_vector(
    temperature: float,
    humidity: float,
    momentum_3h: float,
    momentum_24h: float,
    timestamp: TimestampLike,
    temperature_period: float = TEMPERATURE_PERIOD
) -> FeatureVector:
    """
    Build the complete feature vector for a single observation.

    Args:
        temperature: Air temperature
        humidity: Relative humidity
        momentum_3h: Short-window thermal momentum
        momentum_24h: Long-window thermal momentum
        timestamp: Observation time
        temperature_period: Cycle length used for the temperature encoding

    Returns:
        FeatureVector
    """
    temporal = extract_temporal_features(timestamp)
    temp_sin, temp_cos = cyclical_encode(temperature, temperature_period)
    hour_sin, hour_cos = cyclical_encode(temporal.hour, 24)
    month_sin, month_cos = cyclical_encode(temporal.month, 12)

    return FeatureVector(
        temperature=float(temperature),
        humidity=float(humidity),
        thermal_momentum_3h=float(momentum_3h),
        thermal_momentum_24h=float(momentum_24h),
        hour_of_day=float(temporal.hour),
        day_of_week=float(temporal.day_of_week),
        day_of_year=float(temporal.day_of_year),
        is_business_hour=float(temporal.is_business_hour),
        is_peak_hour=float(temporal.is_peak_hour),
        is_weekend=float(temporal.is_weekend),
        temperature_sin=temp_sin,
        temperature_cos=temp_cos,
        hour_sin=hour_sin,
        hour_cos=hour_cos,
        month_sin=month_sin,
        month_cos=month_cos
    )


def features_to_matrix(features: Sequence[FeatureVector]) -> np.ndarray:
    """Stack feature vectors into an (n_samples, n_features) array."""
    if len(features) == 0:
        return np.empty((0, len(FEATURE_NAMES)))
    return np.vstack([fv.to_array() for fv in features])


def frame_to_feature_vectors(features_df: pd.DataFrame) -> List[FeatureVector]:
    """Rebuild feature vectors from the rows of a feature DataFrame."""
    return [
        FeatureVector(*(float(v) for v in row))
        for row in features_df[list(FEATURE_NAMES)].itertuples(index=False)
    ]


def score_feature_importance(
    features: Sequence[FeatureVector],
    targets: Union[Sequence[float], np.ndarray]
) -> List[FeatureImportance]:
    """
    Score each feature by its absolute Pearson correlation with the targets.

    Args:
        features: Feature vectors
        targets: Target loads aligned with features

    Returns:
        FeatureImportance list sorted by descending score; equal scores keep
        schema order

    Raises:
        ValueError: If features and targets differ in length
    """
    if len(features) != len(targets):
        raise ValueError(
            f"features and targets must have the same length, "
            f"got {len(features)} and {len(targets)}"
        )
    if len(features) == 0:
        return []

    matrix = features_to_matrix(features)
    target_arr = np.asarray(targets, dtype=float)

    scores = [
        FeatureImportance(feature=name, score=abs(pearson_correlation(matrix[:, j], target_arr)))
        for j, name in enumerate(FEATURE_NAMES)
    ]

    # sorted() is stable, also with reverse=True
    return sorted(scores, key=lambda s: s.score, reverse=True)


def normalize_features(
    features: Sequence[FeatureVector]
) -> Tuple[List[FeatureVector], Dict[str, FeatureScale]]:
    """
    Min-max scale every feature to [0, 1].

    Args:
        features: Feature vectors

    Returns:
        Tuple of (normalized vectors, scaler) where scaler maps feature name to
        FeatureScale. A feature with zero range maps to 0.
    """
    if len(features) == 0:
        return [], {}

    matrix = features_to_matrix(features)
    mins = matrix.min(axis=0)
    maxs = matrix.max(axis=0)
    ranges = maxs - mins

    scaled = np.divide(
        matrix - mins,
        ranges,
        out=np.zeros_like(matrix),
        where=ranges != 0
    )

    scaler = {
        name: FeatureScale(min=float(mins[j]), max=float(maxs[j]), range=float(ranges[j]))
        for j, name in enumerate(FEATURE_NAMES)
    }
    normalized = [
        FeatureVector(**dict(zip(FEATURE_NAMES, (float(v) for v in row))))
        for row in scaled
    ]
    return normalized, scaler


def denormalize_features(
    normalized: Sequence[FeatureVector],
    scaler: Mapping[str, FeatureScale]
) -> List[FeatureVector]:
    """
    Invert normalize_features. Zero-range features come back as their minimum.
    """
    result = []
    for fv in normalized:
        values = fv.to_dict()
        result.append(FeatureVector(**{
            name: scaler[name].min + values[name] * scaler[name].range
            for name in FEATURE_NAMES
        }))
    return result


def detect_anomalies(
    values: Union[Sequence[float], np.ndarray],
    window_size: int = 24,
    threshold: float = 3.0
) -> np.ndarray:
    """
    Flag points far from their trailing-window mean.

    A point is anomalous when |value - mean| > threshold * std, with mean and
    population std taken over the trailing window ending at (and including)
    the point, clipped at the series start.

    Args:
        values: Series to scan
        window_size: Trailing window length (default: 24)
        threshold: Number of standard deviations (default: 3)

    Returns:
        Boolean array, True where anomalous
    """
    if window_size < 1:
        raise ValueError(f"window_size must be >= 1, got {window_size}")

    series = pd.Series(np.asarray(values, dtype=float))
    rolling = series.rolling(window=window_size, min_periods=1)
    rolling_mean = rolling.mean()
    rolling_std = rolling.std(ddof=0)

    return ((series - rolling_mean).abs() > threshold * rolling_std).to_numpy()


# =============================================================================
# Feature Engineer
# =============================================================================

class FeatureEngineer:
    """
    Transform observation frames into model-ready feature vectors.

    Reads window sizes and encoding parameters from the 'features' section of
    the configuration.

    Attributes:
        config (Dict): Configuration dictionary
        short_window (int): Thermal momentum short window (hours)
        long_window (int): Thermal momentum long window (hours)
        temperature_period (float): Cycle length of the temperature encoding
        anomaly_window (int): Trailing window for anomaly detection
        anomaly_threshold (float): Standard deviations for anomaly detection
        logger (logging.Logger): Logger instance

    Example:
        >>> from loadcast.models.feature_engineering import FeatureEngineer
        >>> from loadcast.data.synthetic_generator import SyntheticLoadGenerator
        >>>
        >>> observations = SyntheticLoadGenerator().generate_observations('2024-01-01', periods=168)
        >>> engineer = FeatureEngineer()
        >>> vectors = engineer.create_feature_vectors(observations)
        >>> features_df = engineer.create_features(observations)
    """

    REQUIRED_COLUMNS = ('temperature', 'humidity')

    def __init__(self, config: Optional[Dict] = None):
        """
        Initialize the FeatureEngineer.

        Args:
            config: Optional configuration dictionary. If not provided, loads from config.yaml
        """
        self.logger = logging.getLogger(__name__)

        if config is None:
            from loadcast.config.load_config import get_config
            config = get_config()
        self.config = config

        features_config = self.config.get('features', {})
        windows = features_config.get('momentum_windows', {})
        self.short_window = windows.get('short', 3)
        self.long_window = windows.get('long', 24)
        self.temperature_period = features_config.get('temperature_period', TEMPERATURE_PERIOD)

        anomaly_config = features_config.get('anomaly_detection', {})
        self.anomaly_window = anomaly_config.get('window_size', 24)
        self.anomaly_threshold = anomaly_config.get('threshold', 3.0)

        self.logger.info(
            f"FeatureEngineer initialized with momentum windows "
            f"{self.short_window}h/{self.long_window}h"
        )

    def create_feature_vectors(self, data: pd.DataFrame) -> List[FeatureVector]:
        """
        Build one FeatureVector per observation.

        Args:
            data: DataFrame with DatetimeIndex and 'temperature', 'humidity' columns

        Returns:
            List of FeatureVector in the same (chronological) order

        Raises:
            ValueError: If data validation fails
        """
        self._validate_data(data, self.REQUIRED_COLUMNS)
        data = self._handle_missing_values(data, self.REQUIRED_COLUMNS)

        temperatures = data['temperature'].to_numpy(dtype=float)
        momentum_short = thermal_momentum(temperatures, self.short_window)
        momentum_long = thermal_momentum(temperatures, self.long_window)

        vectors = [
            build_feature_vector(
                temperature=temperatures[i],
                humidity=humidity,
                momentum_3h=momentum_short[i],
                momentum_24h=momentum_long[i],
                timestamp=timestamp,
                temperature_period=self.temperature_period
            )
            for i, (timestamp, humidity) in enumerate(data['humidity'].items())
        ]

        self.logger.info(f"Created {len(vectors)} feature vectors")
        return vectors

    def create_features(
        self,
        data: pd.DataFrame,
        target_col: str = 'load',
        include_target: bool = True
    ) -> pd.DataFrame:
        """
        Build features as a DataFrame (one column per schema field).

        Args:
            data: Observation DataFrame
            target_col: Name of the target column (default: 'load')
            include_target: Whether to append the target column

        Returns:
            DataFrame indexed like the (cleaned) input
        """
        required = self.REQUIRED_COLUMNS + ((target_col,) if include_target else ())
        self._validate_data(data, required)
        data = self._handle_missing_values(data, required)

        vectors = self.create_feature_vectors(data)
        features_df = pd.DataFrame(
            features_to_matrix(vectors),
            columns=list(FEATURE_NAMES),
            index=data.index
        )

        if include_target:
            features_df[target_col] = data[target_col].to_numpy(dtype=float)

        return features_df

    def create_training_data(self, data: pd.DataFrame, target_col: str = 'load') -> 'TrainingData':
        """
        Build model training data from an observation frame.

        Args:
            data: Observation DataFrame with the target column
            target_col: Name of the target column (default: 'load')

        Returns:
            TrainingData with one FeatureVector per clean row and the target
            values as targets

        Raises:
            ValueError: If data validation fails
        """
        from loadcast.models.training import TrainingData

        features_df = self.create_features(data, target_col=target_col, include_target=True)
        return TrainingData(
            features=frame_to_feature_vectors(features_df),
            targets=features_df[target_col].to_numpy(dtype=float)
        )

    def flag_anomalies(self, data: pd.DataFrame, column: str = 'load') -> pd.Series:
        """
        Flag anomalous values of one observation column.

        Returns:
            Boolean Series aligned with data
        """
        self._validate_data(data, (column,))
        flags = detect_anomalies(
            data[column].to_numpy(dtype=float),
            window_size=self.anomaly_window,
            threshold=self.anomaly_threshold
        )
        n_flagged = int(flags.sum())
        if n_flagged > 0:
            self.logger.info(f"Detected {n_flagged} anomalies in '{column}'")
        return pd.Series(flags, index=data.index, name=f'{column}_anomaly')

    def get_feature_names(self) -> List[str]:
        """
        Return list of all feature names in schema order.
        """
        return list(FEATURE_NAMES)

    def _validate_data(self, data: pd.DataFrame, required_cols: Sequence[str]) -> None:
        """
        Validate an observation frame.

        Raises:
            ValueError: If the frame is empty, lacks a DatetimeIndex or a required
                column, or is not in chronological order
        """
        if not isinstance(data.index, pd.DatetimeIndex):
            raise ValueError("Data must have a DatetimeIndex")

        missing = [col for col in required_cols if col not in data.columns]
        if missing:
            raise ValueError(f"Required column(s) {missing} not found in data")

        if len(data) == 0:
            raise ValueError("Insufficient data: observation frame is empty")

        if not data.index.is_monotonic_increasing:
            raise ValueError("Observations must be in chronological order")

        self.logger.debug(f"Data validation passed: {len(data)} samples")

    def _handle_missing_values(self, data: pd.DataFrame, columns: Sequence[str]) -> pd.DataFrame:
        """
        Drop rows with NaN in any of the given columns.
        """
        initial_rows = len(data)
        df = data.dropna(subset=list(columns))

        rows_dropped = initial_rows - len(df)
        if rows_dropped > 0:
            self.logger.info(f"Dropped {rows_dropped} rows with NaN values")

        return df
