"""
Integration tests for the load forecasting workflow.

Tests end-to-end forecasting from synthetic observations through analysis,
training, validation, forecasting, scoring and model persistence.
"""

from datetime import timedelta

import numpy as np
import pytest

from loadcast.data.synthetic_generator import SyntheticLoadGenerator
from loadcast.models.feature_engineering import FeatureEngineer
from loadcast.models.forecast_engine import evaluate_forecast_accuracy, forecast_to_frame, make_forecast
from loadcast.models.pipeline import LoadForecastingPipeline
from loadcast.models.training import (
    TrainingData,
    k_fold_cross_validation,
    load_model,
    save_model,
    train_model,
)


@pytest.mark.integration
@pytest.mark.slow
class TestForecastingWorkflow:
    """Test end-to-end forecasting."""

    def test_load_forecasting_pipeline(self, sample_config, tmp_path):
        """Test complete load forecasting workflow."""
        generator = SyntheticLoadGenerator(config=sample_config)
        observations = generator.generate_observations("2024-01-01", periods=24 * 14, random_state=7)
        history = observations.iloc[:-24]
        realized = observations["load"].iloc[-24:].to_numpy()

        pipeline = LoadForecastingPipeline(config=sample_config)

        # Analyze weather sensitivity
        report = pipeline.analyze(history)
        assert report["regimes"].heating_slope < 0

        # Prepare, validate and tune
        pipeline.prepare_data(history)
        cv_result = pipeline.cross_validate()
        assert len(cv_result.fold_metrics) == 3
        pipeline.tune()
        assert pipeline.trained_model.model.n_trees in (2, 4)

        # Forecast the held-back day
        forecast = pipeline.forecast(steps=24)
        assert forecast[0].timestamp == history.index[-1] + timedelta(hours=1)

        metrics = evaluate_forecast_accuracy(realized, forecast)
        assert np.isfinite(metrics["rmse"])
        assert 0.0 <= metrics["picp"] <= 1.0
        # Load stays within a few thousand MW; a sane model is far better than 50% off
        assert metrics["mape"] < 50.0

        # Save and reload, then forecast again from the same history
        saved_path = pipeline.save_model(tmp_path / "forecaster.json")
        loaded = LoadForecastingPipeline.load_model(saved_path, config=sample_config)
        loaded.prepare_data(history)
        reloaded_forecast = loaded.forecast(steps=24)
        assert len(reloaded_forecast) == 24

    def test_functional_workflow(self, sample_config, sample_observations, tmp_path):
        """100 observations through the function-level API."""
        engineer = FeatureEngineer(config=sample_config)
        vectors = engineer.create_feature_vectors(sample_observations)
        data = TrainingData(features=vectors, targets=sample_observations["load"].to_numpy())

        trained = train_model(data, num_trees=10, random_state=0)
        assert np.isfinite(trained.metrics.r_squared)
        assert trained.metrics.mape >= 0

        cv_result = k_fold_cross_validation(data, k=5, num_trees=3, random_state=0)
        assert cv_result.fold_sizes == [20] * 5

        path = save_model(trained, tmp_path / "nested" / "model.json")
        restored = load_model(path)
        np.testing.assert_array_equal(restored.model.predict(vectors), trained.model.predict(vectors))

        forecast = make_forecast(restored.model, vectors, steps=24, random_state=0)
        frame = forecast_to_frame(forecast)
        assert len(frame) == 24
        assert (frame["lower_ci"] <= frame["upper_ci"]).all()
