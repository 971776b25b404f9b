"""
Multi-step load forecasting with tree-disagreement uncertainty.

Forecasts are rolled out autoregressively: each step predicts from the latest
feature vector, then appends a copy of that vector whose temperature has taken
a small random-walk step. Only temperature is advanced; humidity and the
calendar encodings stay at their last observed values.

The bounds are mean +/- 1.96 * std over the individual tree predictions, a
Gaussian approximation of ensemble disagreement rather than a calibrated
predictive interval.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from loadcast.analysis.statistics import mape, rmse
from loadcast.models.feature_engineering import FeatureVector
from loadcast.models.random_forest import RandomForestModel, RandomState, Sample, as_generator


logger = logging.getLogger(__name__)

Z_SCORE_95 = 1.96
# Below this |mean| the relative spread is meaningless
MIN_MEAN_FOR_CONFIDENCE = 1e-9


@dataclass(frozen=True)
class ForecastResult:
    """
    One forecast step.

    Attributes:
        timestamp: Time the prediction refers to
        predicted: Mean of the tree predictions
        confidence: 1 - std/|mean| clamped to [0, 1]
        lower_bound: predicted - 1.96 * std
        upper_bound: predicted + 1.96 * std
    """
    timestamp: datetime
    predicted: float
    confidence: float
    lower_bound: float
    upper_bound: float

    def to_dict(self) -> Dict[str, Union[str, float]]:
        return {
            'timestamp': self.timestamp.isoformat(),
            'predicted': self.predicted,
            'confidence': self.confidence,
            'lower_bound': self.lower_bound,
            'upper_bound': self.upper_bound
        }


def forecast_confidence(mean_prediction: float, std_dev: float) -> float:
    """
    Confidence score 1 - std/|mean|, clamped to [0, 1].

    Returns 0 when |mean| is too close to zero for the ratio to be meaningful.
    """
    if abs(mean_prediction) < MIN_MEAN_FOR_CONFIDENCE:
        return 0.0
    return float(np.clip(1.0 - std_dev / abs(mean_prediction), 0.0, 1.0))


def _advance_temperature(sample: Sample, delta: float) -> Sample:
    if isinstance(sample, FeatureVector):
        return sample.with_temperature(sample.temperature + delta)

    updated = dict(sample)
    updated['temperature'] = updated['temperature'] + delta
    return updated


def make_forecast(
    model: RandomForestModel,
    initial_features: Sequence[Sample],
    steps: int = 24,
    random_state: RandomState = None,
    start_time: Optional[datetime] = None,
    temperature_step: float = 0.5
) -> List[ForecastResult]:
    """
    Roll the forest forward for a number of hourly steps.

    Args:
        model: Trained forest
        initial_features: Recent feature vectors; the last one seeds the rollout
        steps: Number of hourly steps (default: 24)
        random_state: Seed, numpy Generator, or None for the temperature walk
        start_time: Timestamp of step 0 (default: now, UTC)
        temperature_step: Width of the uniform temperature step; each step
            adds a value in [-temperature_step/2, temperature_step/2)

    Returns:
        List of ForecastResult one hour apart, in time order

    Raises:
        ValueError: If initial_features is empty, steps is negative, or the
            feature vectors have no 'temperature'
    """
    if len(initial_features) == 0:
        raise ValueError("initial_features must contain at least one feature vector")
    if steps < 0:
        raise ValueError(f"steps must be non-negative, got {steps}")

    last = initial_features[-1]
    if not isinstance(last, FeatureVector) and 'temperature' not in last:
        raise ValueError("feature vectors must include 'temperature' to roll forward")

    rng = as_generator(random_state)
    if start_time is None:
        start_time = datetime.now(timezone.utc)

    logger.info(f"Generating {steps}-step forecast from {model.n_trees} trees")

    features = list(initial_features)
    forecast = []
    near_zero_steps = 0

    for step in range(steps):
        current = features[-1]
        tree_predictions = model.tree_predictions(current)
        mean_prediction = float(tree_predictions.mean())
        std_dev = float(tree_predictions.std())

        if abs(mean_prediction) < MIN_MEAN_FOR_CONFIDENCE:
            near_zero_steps += 1

        forecast.append(ForecastResult(
            timestamp=start_time + timedelta(hours=step),
            predicted=mean_prediction,
            confidence=forecast_confidence(mean_prediction, std_dev),
            lower_bound=mean_prediction - Z_SCORE_95 * std_dev,
            upper_bound=mean_prediction + Z_SCORE_95 * std_dev
        ))

        delta = (rng.random() - 0.5) * temperature_step
        features.append(_advance_temperature(current, delta))

    if near_zero_steps:
        logger.warning(
            f"{near_zero_steps} forecast step(s) had a near-zero mean prediction; "
            f"their confidence was set to 0"
        )

    return forecast


def forecast_to_frame(forecast: Sequence[ForecastResult]) -> pd.DataFrame:
    """
    Forecast as a DataFrame with columns ['timestamp', 'forecast', 'confidence',
    'lower_ci', 'upper_ci'].
    """
    return pd.DataFrame({
        'timestamp': [r.timestamp for r in forecast],
        'forecast': [r.predicted for r in forecast],
        'confidence': [r.confidence for r in forecast],
        'lower_ci': [r.lower_bound for r in forecast],
        'upper_ci': [r.upper_bound for r in forecast]
    })


def evaluate_forecast_accuracy(
    actual: Union[Sequence[float], np.ndarray],
    forecast: Sequence[ForecastResult]
) -> Dict[str, float]:
    """
    Score a forecast against realized loads.

    Args:
        actual: Realized loads, one per forecast step
        forecast: Forecast results

    Returns:
        Dictionary with 'mape', 'rmse' and 'picp' (fraction of actuals inside
        the forecast bounds)

    Raises:
        ValueError: If the lengths differ
    """
    actual_arr = np.asarray(actual, dtype=float)
    if actual_arr.size != len(forecast):
        raise ValueError(
            f"actual and forecast must have the same length, "
            f"got {actual_arr.size} and {len(forecast)}"
        )
    if actual_arr.size == 0:
        return {'mape': 0.0, 'rmse': 0.0, 'picp': 0.0}

    predicted = np.array([r.predicted for r in forecast])
    lower = np.array([r.lower_bound for r in forecast])
    upper = np.array([r.upper_bound for r in forecast])
    covered = (actual_arr >= lower) & (actual_arr <= upper)

    return {
        'mape': mape(actual_arr, predicted),
        'rmse': rmse(actual_arr, predicted),
        'picp': float(covered.mean())
    }
