"""
Machine learning models module for weather-driven load forecasting.

This module provides:
- FeatureEngineer: Turn weather observations into fixed-schema feature vectors
- build_forest / RandomForestModel: Bootstrap-aggregated regression trees
- train_model, k_fold_cross_validation, grid_search_hyperparameters: Training and validation
- save_model / load_model: JSON model persistence
- make_forecast: Multi-step forecasting with tree-disagreement bounds
- LoadForecastingPipeline: End-to-end forecasting orchestration
"""

from loadcast.models.feature_engineering import (
    FEATURE_NAMES,
    FeatureVector,
    FeatureEngineer,
    build_feature_vector,
    frame_to_feature_vectors,
    score_feature_importance,
    detect_anomalies
)
from loadcast.models.random_forest import (
    Leaf,
    InternalNode,
    RandomForestModel,
    build_tree,
    build_forest,
    predict_tree,
    predict_forest
)
from loadcast.models.training import (
    TrainingData,
    TrainingDataError,
    ModelFormatError,
    ModelMetrics,
    TrainedModel,
    chronological_split,
    train_model,
    k_fold_cross_validation,
    grid_search_hyperparameters,
    serialize_model,
    deserialize_model,
    save_model,
    load_model
)
from loadcast.models.forecast_engine import (
    ForecastResult,
    make_forecast,
    forecast_to_frame,
    evaluate_forecast_accuracy
)
from loadcast.models.pipeline import LoadForecastingPipeline

__all__ = [
    # Features
    'FEATURE_NAMES',
    'FeatureVector',
    'FeatureEngineer',
    'build_feature_vector',
    'frame_to_feature_vectors',
    'score_feature_importance',
    'detect_anomalies',
    # Forest
    'Leaf',
    'InternalNode',
    'RandomForestModel',
    'build_tree',
    'build_forest',
    'predict_tree',
    'predict_forest',
    # Training
    'TrainingData',
    'TrainingDataError',
    'ModelFormatError',
    'ModelMetrics',
    'TrainedModel',
    'chronological_split',
    'train_model',
    'k_fold_cross_validation',
    'grid_search_hyperparameters',
    'serialize_model',
    'deserialize_model',
    'save_model',
    'load_model',
    # Forecasting
    'ForecastResult',
    'make_forecast',
    'forecast_to_frame',
    'evaluate_forecast_accuracy',
    'LoadForecastingPipeline'
]
