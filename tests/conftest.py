"""
Pytest configuration file with shared fixtures for all tests.

Provides common test data and small trained models used
across unit and integration tests.
"""

import logging
from pathlib import Path
from typing import Dict, List

import numpy as np
import pandas as pd
import pytest

from loadcast.data.synthetic_generator import SyntheticLoadGenerator
from loadcast.models.feature_engineering import FeatureEngineer, FeatureVector
from loadcast.models.training import TrainedModel, TrainingData, train_model

# Disable logging during tests to reduce noise
logging.disable(logging.CRITICAL)


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: end-to-end workflow tests")
    config.addinivalue_line("markers", "slow: tests that train several forests")


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def sample_config() -> Dict:
    """
    Provide test configuration dictionary.

    Returns minimal config with test-specific values, temporary paths,
    and small model parameters for fast tests.
    """
    return {
        "logging": {
            "level": "WARNING",
            "log_file": "test_logs/loadcast.log",
        },
        "analysis": {
            "base_temperature": 18.3,
            "base_temperature_search": {"min_temp": 10.0, "max_temp": 25.0, "step": 0.5},
            "seasonal_period": 24,
        },
        "features": {
            "momentum_windows": {"short": 3, "long": 24},
            "temperature_period": 50.0,
            "anomaly_detection": {"window_size": 24, "threshold": 3.0},
        },
        "models": {
            "random_forest": {
                "num_trees": 5,
                "max_depth": 5,
                "n_jobs": 1,
                "random_seed": 42,
            },
            "training": {
                "train_ratio": 0.8,
                "cv_folds": 3,
            },
            "grid_search": {
                "num_trees_options": [2, 4],
            },
        },
        "forecasting": {
            "steps": 24,
            "temperature_step": 0.5,
            "model_save_path": "test_models/load_forecaster.json",
        },
        "synthetic": {
            "load": {
                "base_load": 2000.0,
                "heating_slope": 60.0,
                "cooling_slope": 80.0,
                "base_temperature": 18.3,
                "business_hour_bump": 250.0,
                "noise_std": 40.0,
            },
            "weather": {
                "mean_temperature": 15.0,
                "seasonal_amplitude": 10.0,
                "daily_amplitude": 5.0,
                "mean_humidity": 60.0,
                "random_seed": 42,
            },
        },
    }


# =============================================================================
# Data Fixtures
# =============================================================================


@pytest.fixture
def sample_observations(sample_config) -> pd.DataFrame:
    """
    Provide synthetic observation DataFrame for testing.

    Generates 100 hourly {temperature, humidity, load} observations using
    SyntheticLoadGenerator with a fixed random seed for reproducibility.
    """
    generator = SyntheticLoadGenerator(config=sample_config)
    return generator.generate_observations(
        start_date="2024-01-01", periods=100, frequency="h", random_state=42
    )


@pytest.fixture
def sample_feature_vectors(sample_observations, sample_config) -> List[FeatureVector]:
    """
    Provide feature vectors built from sample_observations.
    """
    engineer = FeatureEngineer(config=sample_config)
    return engineer.create_feature_vectors(sample_observations)


@pytest.fixture
def sample_training_data(sample_feature_vectors, sample_observations) -> TrainingData:
    """
    Provide TrainingData with 100 samples in chronological order.
    """
    return TrainingData(
        features=sample_feature_vectors,
        targets=sample_observations["load"].to_numpy(),
    )


@pytest.fixture
def simple_regression_data():
    """
    Provide a small dataset with a single step in the target.

    Target is 10 for x <= 5 and 20 above, so one split explains it fully.
    """
    features = [{"x": float(x)} for x in range(1, 11)]
    targets = np.array([10.0] * 5 + [20.0] * 5)
    return features, targets


# =============================================================================
# Model Fixtures
# =============================================================================


@pytest.fixture
def trained_model(sample_training_data) -> TrainedModel:
    """
    Provide a small forest trained on sample_training_data.

    Uses 5 shallow trees and a fixed seed so tests stay fast and repeatable.
    """
    return train_model(
        sample_training_data,
        num_trees=5,
        train_ratio=0.8,
        max_depth=5,
        random_state=42,
    )


# =============================================================================
# File System Fixtures
# =============================================================================


@pytest.fixture
def temp_model_path(tmp_path: Path) -> Path:
    """
    Provide a model file path inside a temporary directory.

    The parent directory does not exist yet, so saving must create it.
    """
    return tmp_path / "models" / "forecaster.json"

