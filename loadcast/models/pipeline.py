"""
End-to-end load forecasting workflow.

This module provides the LoadForecastingPipeline class, which ties the
analysis, feature, training and forecast modules together behind a
config-driven interface:

    observations -> prepare_data -> train / cross_validate / tune -> forecast

Observation frames carry a DatetimeIndex and 'temperature', 'humidity' and
'load' columns.
"""

import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import pandas as pd

from loadcast.analysis.degree_days import DEFAULT_BASE_TEMPERATURE, daily_degree_days
from loadcast.analysis.regime_analysis import optimize_base_temperature, regime_analysis
from loadcast.analysis.seasonal import recompose, seasonal_decompose
from loadcast.analysis.statistics import classify_correlation, linear_slope, pearson_correlation
from loadcast.models.feature_engineering import (
    FeatureEngineer,
    FeatureVector,
    frame_to_feature_vectors,
    score_feature_importance,
)
from loadcast.models.forecast_engine import ForecastResult, make_forecast
from loadcast.models.random_forest import as_generator
from loadcast.models.training import (
    CrossValidationResult,
    GridSearchResult,
    TrainedModel,
    TrainingData,
    grid_search_hyperparameters,
    k_fold_cross_validation,
    load_model,
    save_model,
    train_model,
)


class LoadForecastingPipeline:
    """
    Orchestrate weather-driven load analysis, training and forecasting.

    Attributes:
        config: Configuration dictionary
        feature_engineer: FeatureEngineer instance
        training_data: TrainingData from the last prepare_data call
        feature_vectors: Feature vectors from the last prepare_data call
        trained_model: Most recently trained or loaded model
        cv_result: Result of the last cross_validate call
        grid_search_result: Result of the last tune call
        logger: Logger instance

    Example:
        >>> from loadcast.data.synthetic_generator import SyntheticLoadGenerator
        >>>
        >>> observations = SyntheticLoadGenerator().generate_observations('2024-01-01', 24 * 30)
        >>>
        >>> pipeline = LoadForecastingPipeline()
        >>> report = pipeline.analyze(observations)
        >>> pipeline.prepare_data(observations).train()
        >>> forecast = pipeline.forecast(steps=24)
        >>> pipeline.save_model('models/load_forecaster.json')
    """

    TARGET_COLUMN = 'load'

    def __init__(self, config: Optional[Dict] = None):
        """
        Initialize forecasting pipeline.

        Args:
            config: Optional configuration dictionary
        """
        self.logger = logging.getLogger(__name__)

        if config is None:
            from loadcast.config.load_config import get_config
            config = get_config()
        self.config = config

        analysis_config = self.config.get('analysis', {})
        self.base_temperature = analysis_config.get('base_temperature', DEFAULT_BASE_TEMPERATURE)
        search_config = analysis_config.get('base_temperature_search', {})
        self.base_search_min = search_config.get('min_temp', 10.0)
        self.base_search_max = search_config.get('max_temp', 25.0)
        self.base_search_step = search_config.get('step', 0.5)
        self.seasonal_period = analysis_config.get('seasonal_period', 24)

        models_config = self.config.get('models', {})
        forest_config = models_config.get('random_forest', {})
        self.num_trees = forest_config.get('num_trees', 10)
        self.max_depth = forest_config.get('max_depth', 10)
        self.n_jobs = forest_config.get('n_jobs', 1)
        self.random_seed = forest_config.get('random_seed')

        training_config = models_config.get('training', {})
        self.train_ratio = training_config.get('train_ratio', 0.8)
        self.cv_folds = training_config.get('cv_folds', 5)
        self.num_trees_options = models_config.get('grid_search', {}).get(
            'num_trees_options', [5, 10, 20, 50]
        )

        forecasting_config = self.config.get('forecasting', {})
        self.forecast_steps = forecasting_config.get('steps', 24)
        self.temperature_step = forecasting_config.get('temperature_step', 0.5)
        self.model_save_path = Path(
            forecasting_config.get('model_save_path', 'models/load_forecaster.json')
        )

        # One generator drives every random draw of this pipeline
        self.rng = as_generator(self.random_seed)

        self.feature_engineer = FeatureEngineer(config=self.config)

        self.training_data: Optional[TrainingData] = None
        self.feature_vectors: List[FeatureVector] = []
        self.last_timestamp: Optional[datetime] = None
        self.trained_model: Optional[TrainedModel] = None
        self.cv_result: Optional[CrossValidationResult] = None
        self.grid_search_result: Optional[GridSearchResult] = None

        self.logger.info(
            f"LoadForecastingPipeline initialized with {self.num_trees} trees, "
            f"max_depth={self.max_depth}, base_temperature={self.base_temperature}"
        )

    def prepare_data(self, observations: pd.DataFrame) -> 'LoadForecastingPipeline':
        """
        Build feature vectors and targets from an observation frame.

        Args:
            observations: DataFrame with DatetimeIndex and 'temperature',
                'humidity' and 'load' columns

        Returns:
            Self for method chaining

        Raises:
            ValueError: If the frame fails validation
        """
        self.logger.info(f"Preparing data: {len(observations)} observations")

        try:
            self.training_data = self.feature_engineer.create_training_data(
                observations, target_col=self.TARGET_COLUMN
            )
        except ValueError as e:
            self.logger.error(f"Data preparation failed: {e}")
            raise

        self.feature_vectors = self.training_data.features
        self.last_timestamp = observations.index[-1].to_pydatetime()

        self.logger.info(
            f"Data prepared: {len(self.training_data)} samples up to {self.last_timestamp}"
        )
        return self

    def analyze(self, observations: pd.DataFrame) -> Dict[str, Any]:
        """
        Summarize how load responds to weather.

        Args:
            observations: Observation frame (see prepare_data)

        Returns:
            Dictionary with keys:
            - correlation: Pearson r of temperature vs load
            - correlation_class: {'strength', 'direction'}
            - elasticity: OLS slope of load on temperature
            - regimes: ThermalRegimeAnalysis at the configured base temperature
            - optimal_base_temperature: Best change-point base temperature
            - optimal_base_r_squared: R-squared of that fit
            - degree_days: Daily HDD/CDD DataFrame
            - feature_importance: FeatureImportance list, best first
            - anomaly_count: Number of anomalous load observations
            - seasonal: SeasonalDecomposition of load over the configured period
            - seasonally_adjusted_load: Load with the seasonal component removed
        """
        try:
            features_df = self.feature_engineer.create_features(
                observations, target_col=self.TARGET_COLUMN, include_target=True
            )
        except ValueError as e:
            self.logger.error(f"Analysis failed: {e}")
            raise

        temperatures = features_df['temperature'].to_numpy(dtype=float)
        loads = features_df[self.TARGET_COLUMN].to_numpy(dtype=float)

        correlation = pearson_correlation(temperatures, loads)
        best_base, best_r2 = optimize_base_temperature(
            temperatures, loads,
            min_temp=self.base_search_min,
            max_temp=self.base_search_max,
            step=self.base_search_step
        )
        vectors = frame_to_feature_vectors(features_df)
        anomalies = self.feature_engineer.flag_anomalies(features_df, column=self.TARGET_COLUMN)
        decomposition = seasonal_decompose(loads, period=self.seasonal_period)

        report = {
            'correlation': correlation,
            'correlation_class': classify_correlation(correlation),
            'elasticity': linear_slope(temperatures, loads),
            'regimes': regime_analysis(temperatures, loads, self.base_temperature),
            'optimal_base_temperature': best_base,
            'optimal_base_r_squared': best_r2,
            'degree_days': daily_degree_days(features_df, base_temperature=self.base_temperature),
            'feature_importance': score_feature_importance(vectors, loads),
            'anomaly_count': int(anomalies.sum()),
            'seasonal': decomposition,
            'seasonally_adjusted_load': pd.Series(
                recompose(decomposition), index=features_df.index, name='load_adjusted'
            )
        }

        self.logger.info(
            f"Analysis complete: r={correlation:.3f}, "
            f"optimal base temperature={best_base:.1f} (R²={best_r2:.3f})"
        )
        return report

    def _require_training_data(self, action: str) -> TrainingData:
        if self.training_data is None:
            raise ValueError(f"No training data available to {action}; call prepare_data() first")
        return self.training_data

    def train(self, num_trees: Optional[int] = None) -> 'LoadForecastingPipeline':
        """
        Train the forest on the prepared data.

        Args:
            num_trees: Number of trees (default: from config)

        Returns:
            Self for method chaining

        Raises:
            ValueError: If prepare_data has not been called
        """
        if num_trees is not None:
            self.num_trees = num_trees

        try:
            data = self._require_training_data('train')
            self.trained_model = train_model(
                data,
                num_trees=self.num_trees,
                train_ratio=self.train_ratio,
                max_depth=self.max_depth,
                random_state=self.rng,
                n_jobs=self.n_jobs
            )
        except ValueError as e:
            self.logger.error(f"Training failed: {e}")
            raise

        return self

    def cross_validate(self, k: Optional[int] = None) -> CrossValidationResult:
        """
        Run contiguous k-fold cross-validation on the prepared data.

        Args:
            k: Number of folds (default: from config)
        """
        k = self.cv_folds if k is None else k

        try:
            data = self._require_training_data('cross-validate')
            self.cv_result = k_fold_cross_validation(
                data,
                k=k,
                num_trees=self.num_trees,
                max_depth=self.max_depth,
                random_state=self.rng,
                n_jobs=self.n_jobs
            )
        except ValueError as e:
            self.logger.error(f"Cross-validation failed: {e}")
            raise

        return self.cv_result

    def tune(self, num_trees_options: Optional[Sequence[int]] = None) -> GridSearchResult:
        """
        Pick the number of trees by grid search, then retrain with it.

        Args:
            num_trees_options: Candidate tree counts (default: from config)
        """
        options = self.num_trees_options if num_trees_options is None else num_trees_options

        try:
            data = self._require_training_data('tune')
            self.grid_search_result = grid_search_hyperparameters(
                data,
                num_trees_options=options,
                max_depth=self.max_depth,
                random_state=self.rng,
                n_jobs=self.n_jobs
            )
        except ValueError as e:
            self.logger.error(f"Grid search failed: {e}")
            raise

        self.train(num_trees=self.grid_search_result.best_num_trees)
        return self.grid_search_result

    def forecast(
        self,
        steps: Optional[int] = None,
        initial_features: Optional[Sequence[FeatureVector]] = None,
        start_time: Optional[datetime] = None
    ) -> List[ForecastResult]:
        """
        Forecast load for the hours following the prepared observations.

        Args:
            steps: Forecast horizon in hours (default: from config)
            initial_features: Feature vectors to roll forward (default: the
                prepared feature vectors)
            start_time: Timestamp of the first step (default: one hour after
                the last prepared observation)

        Returns:
            List of ForecastResult

        Raises:
            ValueError: If no model is trained or no feature vectors are available
        """
        steps = self.forecast_steps if steps is None else steps
        features = self.feature_vectors if initial_features is None else list(initial_features)

        if start_time is None and self.last_timestamp is not None:
            start_time = self.last_timestamp + timedelta(hours=1)

        try:
            if self.trained_model is None:
                raise ValueError("No trained model available; call train() or load_model() first")
            if not features:
                raise ValueError("No feature vectors available; call prepare_data() first")

            return make_forecast(
                self.trained_model.model,
                features,
                steps=steps,
                random_state=self.rng,
                start_time=start_time,
                temperature_step=self.temperature_step
            )
        except ValueError as e:
            self.logger.error(f"Forecast failed: {e}")
            raise

    def save_model(self, filepath: Optional[Union[Path, str]] = None) -> Path:
        """
        Save the trained model as JSON.

        Args:
            filepath: Target file. If provided, updates self.model_save_path

        Returns:
            Path the model was written to
        """
        if filepath is not None:
            self.model_save_path = Path(filepath)

        if self.trained_model is None:
            self.logger.error("Cannot save: no trained model")
            raise ValueError("No trained model to save; call train() first")

        return save_model(self.trained_model, self.model_save_path)

    @classmethod
    def load_model(
        cls,
        filepath: Union[Path, str],
        config: Optional[Dict] = None
    ) -> 'LoadForecastingPipeline':
        """
        Create a pipeline around a saved model.

        Args:
            filepath: Path to a saved model file
            config: Optional configuration dictionary

        Returns:
            LoadForecastingPipeline with trained_model set; call prepare_data
            with recent observations before forecasting
        """
        instance = cls(config=config)
        instance.model_save_path = Path(filepath)
        instance.trained_model = load_model(filepath)
        instance.num_trees = instance.trained_model.model.n_trees

        instance.logger.info(
            f"Loaded model with {instance.num_trees} trees "
            f"trained {instance.trained_model.train_date}"
        )
        return instance
