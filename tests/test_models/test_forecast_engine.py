"""
Unit tests for multi-step load forecasting.

Tests the rollout, tree-disagreement bounds, confidence clamping and
forecast accuracy scoring.
"""

from datetime import datetime, timedelta, timezone

import numpy as np
import pandas as pd
import pytest

from loadcast.models.forecast_engine import (
    ForecastResult,
    evaluate_forecast_accuracy,
    forecast_confidence,
    forecast_to_frame,
    make_forecast,
)
from loadcast.models.random_forest import InternalNode, Leaf, RandomForestModel


START = datetime(2024, 1, 5, 4, 0, tzinfo=timezone.utc)


@pytest.fixture
def temperature_model() -> RandomForestModel:
    """Three trees that disagree; all split on temperature."""
    return RandomForestModel(
        trees=(
            InternalNode("temperature", 10.0, Leaf(2600.0), Leaf(2200.0)),
            InternalNode("temperature", 12.0, Leaf(2500.0), Leaf(2100.0)),
            Leaf(2300.0),
        ),
        feature_names=("temperature",),
    )


class TestForecastConfidence:
    """Test the confidence score."""

    @pytest.mark.parametrize("mean, std, expected", [
        (100.0, 10.0, 0.9),
        (-100.0, 10.0, 0.9),
        (100.0, 0.0, 1.0),
        (100.0, 100.0, 0.0),
        (100.0, 250.0, 0.0),
    ])
    def test_values(self, mean, std, expected):
        assert forecast_confidence(mean, std) == pytest.approx(expected)

    def test_near_zero_mean(self):
        """A near-zero mean gives 0 instead of a huge or infinite ratio."""
        assert forecast_confidence(0.0, 5.0) == 0.0
        assert forecast_confidence(1e-12, 0.0) == 0.0


class TestMakeForecast:
    """Test the autoregressive rollout."""

    def test_twenty_four_hourly_steps(self, trained_model, sample_feature_vectors):
        """24 steps come back one hour apart starting at start_time."""
        forecast = make_forecast(
            trained_model.model, sample_feature_vectors,
            steps=24, random_state=0, start_time=START
        )

        assert len(forecast) == 24
        assert all(isinstance(r, ForecastResult) for r in forecast)
        assert forecast[0].timestamp == START
        for i, result in enumerate(forecast):
            assert result.timestamp == START + timedelta(hours=i)
            assert result.lower_bound <= result.predicted <= result.upper_bound
            assert 0.0 <= result.confidence <= 1.0

    def test_bounds_from_tree_spread(self, temperature_model):
        forecast = make_forecast(
            temperature_model, [{"temperature": 5.0}],
            steps=1, random_state=0, start_time=START
        )
        spread = np.array([2600.0, 2500.0, 2300.0])
        result = forecast[0]
        assert result.predicted == pytest.approx(spread.mean())
        assert result.upper_bound - result.predicted == pytest.approx(1.96 * spread.std())
        assert result.predicted - result.lower_bound == pytest.approx(1.96 * spread.std())
        assert result.confidence == pytest.approx(1 - spread.std() / spread.mean())

    def test_single_tree_has_no_spread(self):
        model = RandomForestModel(trees=(Leaf(1800.0),), feature_names=("temperature",))
        forecast = make_forecast(model, [{"temperature": 20.0}], steps=3, random_state=0)
        for result in forecast:
            assert result.predicted == 1800.0
            assert result.lower_bound == result.upper_bound == 1800.0
            assert result.confidence == 1.0

    def test_zero_mean_prediction(self):
        model = RandomForestModel(
            trees=(Leaf(-5.0), Leaf(5.0)), feature_names=("temperature",)
        )
        forecast = make_forecast(model, [{"temperature": 20.0}], steps=2, random_state=0)
        assert all(r.confidence == 0.0 for r in forecast)

    def test_zero_steps(self, trained_model, sample_feature_vectors):
        assert make_forecast(trained_model.model, sample_feature_vectors, steps=0) == []

    def test_reproducible_with_seed(self, trained_model, sample_feature_vectors):
        first = make_forecast(trained_model.model, sample_feature_vectors,
                              steps=12, random_state=3, start_time=START)
        second = make_forecast(trained_model.model, sample_feature_vectors,
                               steps=12, random_state=3, start_time=START)
        assert first == second

    def test_temperature_walk_moves_prediction(self, temperature_model):
        """A wide temperature step eventually crosses a split threshold."""
        forecast = make_forecast(
            temperature_model, [{"temperature": 11.0}],
            steps=48, random_state=0, start_time=START, temperature_step=4.0
        )
        assert len({r.predicted for r in forecast}) > 1

    def test_no_temperature_step_keeps_prediction(self, temperature_model):
        forecast = make_forecast(
            temperature_model, [{"temperature": 11.0}],
            steps=10, random_state=0, temperature_step=0.0
        )
        assert len({r.predicted for r in forecast}) == 1

    def test_only_last_vector_seeds_rollout(self, temperature_model):
        history = [{"temperature": 30.0}, {"temperature": 5.0}]
        forecast = make_forecast(temperature_model, history, steps=1, random_state=0)
        assert forecast[0].predicted == pytest.approx((2600.0 + 2500.0 + 2300.0) / 3)

    def test_default_start_time_is_now(self, temperature_model):
        before = datetime.now(timezone.utc)
        forecast = make_forecast(temperature_model, [{"temperature": 5.0}], steps=1)
        assert forecast[0].timestamp >= before

    def test_empty_features(self, trained_model):
        with pytest.raises(ValueError, match="at least one"):
            make_forecast(trained_model.model, [], steps=5)

    def test_negative_steps(self, trained_model, sample_feature_vectors):
        with pytest.raises(ValueError, match="non-negative"):
            make_forecast(trained_model.model, sample_feature_vectors, steps=-1)

    def test_missing_temperature(self):
        model = RandomForestModel(trees=(Leaf(1.0),), feature_names=("humidity",))
        with pytest.raises(ValueError, match="temperature"):
            make_forecast(model, [{"humidity": 50.0}], steps=2)


class TestForecastOutputs:
    """Test forecast conversion and scoring."""

    def test_to_dict(self):
        result = ForecastResult(START, 2000.0, 0.95, 1900.0, 2100.0)
        assert result.to_dict() == {
            "timestamp": "2024-01-05T04:00:00+00:00",
            "predicted": 2000.0,
            "confidence": 0.95,
            "lower_bound": 1900.0,
            "upper_bound": 2100.0,
        }

    def test_forecast_to_frame(self, temperature_model):
        forecast = make_forecast(temperature_model, [{"temperature": 5.0}],
                                 steps=6, random_state=0, start_time=START)
        frame = forecast_to_frame(forecast)
        assert list(frame.columns) == ["timestamp", "forecast", "confidence", "lower_ci", "upper_ci"]
        assert len(frame) == 6
        assert pd.Timestamp(frame["timestamp"].iloc[0]) == pd.Timestamp(START)

    def test_evaluate_forecast_accuracy(self):
        forecast = [
            ForecastResult(START, 100.0, 0.9, 90.0, 110.0),
            ForecastResult(START + timedelta(hours=1), 200.0, 0.9, 190.0, 210.0),
        ]
        metrics = evaluate_forecast_accuracy([105.0, 220.0], forecast)
        assert metrics["picp"] == pytest.approx(0.5)
        assert metrics["mape"] == pytest.approx((5 / 105 + 20 / 220) / 2 * 100)
        assert metrics["rmse"] == pytest.approx(np.sqrt((25 + 400) / 2))

    def test_evaluate_length_mismatch(self):
        forecast = [ForecastResult(START, 100.0, 0.9, 90.0, 110.0)]
        with pytest.raises(ValueError, match="same length"):
            evaluate_forecast_accuracy([1.0, 2.0], forecast)

    def test_evaluate_empty(self):
        assert evaluate_forecast_accuracy([], []) == {"mape": 0.0, "rmse": 0.0, "picp": 0.0}
