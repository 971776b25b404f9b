"""
Model training and validation for the random forest load model.

This module provides chronological train/test splitting, end-to-end model
training with hold-out metrics, contiguous k-fold cross-validation, grid
search over the number of trees, and JSON model persistence.

Time order is never shuffled anywhere in this module: every split is a
contiguous slice so that no future observation leaks into training.
"""

import json
import logging
import math
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from loadcast.analysis.statistics import mape, r_squared, rmse
from loadcast.models.random_forest import (
    DecisionTree,
    InternalNode,
    Leaf,
    RandomForestModel,
    RandomState,
    Sample,
    as_generator,
    build_forest,
)


logger = logging.getLogger(__name__)

SERIALIZATION_FORMAT_VERSION = 1


class TrainingDataError(ValueError):
    """Raised when training data is empty, misaligned or too small to use."""


class ModelFormatError(ValueError):
    """Raised when a serialized model does not have the expected shape."""


# =============================================================================
# Data Structures
# =============================================================================

@dataclass
class TrainingData:
    """
    Parallel feature and target arrays in chronological order.

    Attributes:
        features: Feature records (FeatureVector or name -> value mappings)
        targets: Target loads aligned with features

    Raises:
        TrainingDataError: If the arrays differ in length, are empty, or the
            targets contain non-finite values
    """
    features: List[Sample]
    targets: np.ndarray

    def __post_init__(self):
        self.features = list(self.features)
        self.targets = np.asarray(self.targets, dtype=float)

        if len(self.features) == 0 or len(self.features) != self.targets.size:
            raise TrainingDataError(
                f"training data arrays have differing or zero length: "
                f"{len(self.features)} features, {self.targets.size} targets"
            )
        if not np.all(np.isfinite(self.targets)):
            raise TrainingDataError("training targets must be finite numbers")

    def __len__(self) -> int:
        return len(self.features)


@dataclass(frozen=True)
class ModelMetrics:
    """
    Hold-out evaluation metrics.

    Attributes:
        rmse: Root mean squared error
        mape: Mean absolute percentage error (percent)
        r_squared: Coefficient of determination
        train_time_ms: Wall-clock training + evaluation time in milliseconds
    """
    rmse: float
    mape: float
    r_squared: float
    train_time_ms: float = 0.0


@dataclass(frozen=True)
class TrainedModel:
    """A forest together with its hold-out metrics and ISO-8601 training date."""
    model: RandomForestModel
    metrics: ModelMetrics
    train_date: str


@dataclass(frozen=True)
class CrossValidationResult:
    """
    Metrics averaged over folds.

    Attributes:
        avg_rmse: Mean RMSE over folds
        avg_mape: Mean MAPE over folds
        avg_r_squared: Mean R-squared over folds
        fold_metrics: Per-fold metrics, in fold order
        fold_sizes: Number of test rows in each fold
    """
    avg_rmse: float
    avg_mape: float
    avg_r_squared: float
    fold_metrics: List[ModelMetrics] = field(default_factory=list)
    fold_sizes: List[int] = field(default_factory=list)


@dataclass(frozen=True)
class GridSearchResult:
    """
    Outcome of the tree-count search.

    Attributes:
        best_num_trees: Candidate with the highest average R-squared
        best_r_squared: Its average R-squared
        scores: Average R-squared of every candidate
    """
    best_num_trees: int
    best_r_squared: float
    scores: Dict[int, float] = field(default_factory=dict)


# =============================================================================
# Splitting
# =============================================================================

def chronological_split(
    features: Sequence[Sample],
    targets: Union[Sequence[float], np.ndarray],
    train_ratio: float = 0.7
) -> Tuple[List[Sample], np.ndarray, List[Sample], np.ndarray]:
    """
    Split into a contiguous training prefix and test suffix.

    The split index is floor(n * train_ratio). Elements are never reordered,
    so train + test reproduces the input.

    Args:
        features: Feature records in time order
        targets: Targets aligned with features
        train_ratio: Fraction of rows used for training (default: 0.7)

    Returns:
        Tuple of (train_features, train_targets, test_features, test_targets)
    """
    if not 0.0 <= train_ratio <= 1.0:
        raise ValueError(f"train_ratio must be between 0 and 1, got {train_ratio}")

    features = list(features)
    targets = np.asarray(targets, dtype=float)
    split_idx = int(math.floor(len(features) * train_ratio))

    return (
        features[:split_idx],
        targets[:split_idx],
        features[split_idx:],
        targets[split_idx:]
    )


def fold_bounds(n: int, k: int) -> List[Tuple[int, int]]:
    """
    Start/end indices of k contiguous folds; the last fold takes the remainder.

    Raises:
        ValueError: If k < 2
        TrainingDataError: If there are fewer rows than folds
    """
    if k < 2:
        raise ValueError(f"k must be >= 2, got {k}")

    fold_size = n // k
    if fold_size == 0:
        raise TrainingDataError(f"cannot split {n} rows into {k} folds")

    return [
        (fold * fold_size, n if fold == k - 1 else (fold + 1) * fold_size)
        for fold in range(k)
    ]


# =============================================================================
# Training & Validation
# =============================================================================

def _evaluate(
    model: RandomForestModel,
    test_features: Sequence[Sample],
    test_targets: np.ndarray
) -> Tuple[float, float, float]:
    predictions = model.predict(test_features) if len(test_features) else np.empty(0)
    return (
        rmse(test_targets, predictions),
        mape(test_targets, predictions),
        r_squared(test_targets, predictions)
    )


def train_model(
    data: TrainingData,
    num_trees: int = 10,
    train_ratio: float = 0.8,
    max_depth: int = 10,
    random_state: RandomState = None,
    n_jobs: Optional[int] = 1
) -> TrainedModel:
    """
    Train a forest on the chronological prefix and score it on the suffix.

    Args:
        data: Validated training data
        num_trees: Number of trees (default: 10)
        train_ratio: Training fraction (default: 0.8)
        max_depth: Maximum tree depth (default: 10)
        random_state: Seed, numpy Generator, or None
        n_jobs: joblib workers for tree building

    Returns:
        TrainedModel with hold-out metrics

    Raises:
        TrainingDataError: If the training prefix is empty
    """
    start = time.perf_counter()

    train_x, train_y, test_x, test_y = chronological_split(
        data.features, data.targets, train_ratio
    )
    if len(train_x) == 0:
        raise TrainingDataError(
            f"training split is empty: {len(data)} rows with train_ratio={train_ratio}"
        )

    logger.info(
        f"Training random forest: {num_trees} trees, "
        f"{len(train_x)} train / {len(test_x)} test samples"
    )

    model = build_forest(
        train_x, train_y,
        num_trees=num_trees,
        max_depth=max_depth,
        random_state=random_state,
        n_jobs=n_jobs
    )
    test_rmse, test_mape, test_r2 = _evaluate(model, test_x, test_y)

    train_time_ms = (time.perf_counter() - start) * 1000.0
    metrics = ModelMetrics(
        rmse=test_rmse,
        mape=test_mape,
        r_squared=test_r2,
        train_time_ms=train_time_ms
    )

    logger.info(
        f"Training complete - RMSE: {test_rmse:.2f}, MAPE: {test_mape:.2f}%, "
        f"R²: {test_r2:.4f}, time: {train_time_ms:.0f}ms"
    )

    return TrainedModel(
        model=model,
        metrics=metrics,
        train_date=datetime.now(timezone.utc).isoformat()
    )


def k_fold_cross_validation(
    data: TrainingData,
    k: int = 5,
    num_trees: int = 10,
    max_depth: int = 10,
    random_state: RandomState = None,
    n_jobs: Optional[int] = 1
) -> CrossValidationResult:
    """
    Contiguous k-fold cross-validation.

    Each fold in turn is the test set; the model is trained on the remaining
    rows concatenated in their original order.

    Args:
        data: Validated training data
        k: Number of folds (default: 5)
        num_trees: Trees per fold model (default: 10)
        max_depth: Maximum tree depth
        random_state: Seed, numpy Generator, or None
        n_jobs: joblib workers for tree building

    Returns:
        CrossValidationResult with averaged and per-fold metrics
    """
    n = len(data)
    bounds = fold_bounds(n, k)
    rng = as_generator(random_state)

    logger.info(f"Running {k}-fold cross-validation on {n} samples with {num_trees} trees")

    fold_metrics = []
    fold_sizes = []
    for fold, (test_start, test_end) in enumerate(bounds):
        fold_start = time.perf_counter()

        train_x = data.features[:test_start] + data.features[test_end:]
        train_y = np.concatenate([data.targets[:test_start], data.targets[test_end:]])
        test_x = data.features[test_start:test_end]
        test_y = data.targets[test_start:test_end]

        model = build_forest(
            train_x, train_y,
            num_trees=num_trees,
            max_depth=max_depth,
            random_state=rng,
            n_jobs=n_jobs
        )
        fold_rmse, fold_mape, fold_r2 = _evaluate(model, test_x, test_y)

        metrics = ModelMetrics(
            rmse=fold_rmse,
            mape=fold_mape,
            r_squared=fold_r2,
            train_time_ms=(time.perf_counter() - fold_start) * 1000.0
        )
        fold_metrics.append(metrics)
        fold_sizes.append(test_end - test_start)

        logger.debug(
            f"Fold {fold + 1}/{k}: test rows {test_start}-{test_end}, "
            f"RMSE={fold_rmse:.2f}, R²={fold_r2:.4f}"
        )

    result = CrossValidationResult(
        avg_rmse=float(np.mean([m.rmse for m in fold_metrics])),
        avg_mape=float(np.mean([m.mape for m in fold_metrics])),
        avg_r_squared=float(np.mean([m.r_squared for m in fold_metrics])),
        fold_metrics=fold_metrics,
        fold_sizes=fold_sizes
    )

    logger.info(
        f"Cross-validation complete - avg RMSE: {result.avg_rmse:.2f}, "
        f"avg MAPE: {result.avg_mape:.2f}%, avg R²: {result.avg_r_squared:.4f}"
    )
    return result


def grid_search_hyperparameters(
    data: TrainingData,
    num_trees_options: Sequence[int] = (5, 10, 20, 50),
    k: int = 3,
    max_depth: int = 10,
    random_state: RandomState = None,
    n_jobs: Optional[int] = 1
) -> GridSearchResult:
    """
    Choose the number of trees by k-fold cross-validated R-squared.

    Args:
        data: Validated training data
        num_trees_options: Candidate tree counts, searched in order
        k: Folds per candidate (default: 3)
        max_depth: Maximum tree depth
        random_state: Seed, numpy Generator, or None
        n_jobs: joblib workers for tree building

    Returns:
        GridSearchResult; ties keep the earliest candidate

    Raises:
        ValueError: If num_trees_options is empty
    """
    if len(num_trees_options) == 0:
        raise ValueError("num_trees_options must contain at least one candidate")

    rng = as_generator(random_state)
    best_num_trees = num_trees_options[0]
    best_r2 = -np.inf
    scores = {}

    for num_trees in num_trees_options:
        cv = k_fold_cross_validation(
            data, k=k, num_trees=num_trees, max_depth=max_depth,
            random_state=rng, n_jobs=n_jobs
        )
        scores[num_trees] = cv.avg_r_squared
        if cv.avg_r_squared > best_r2:
            best_r2 = cv.avg_r_squared
            best_num_trees = num_trees

    logger.info(f"Grid search selected num_trees={best_num_trees} (avg R²={best_r2:.4f})")
    return GridSearchResult(
        best_num_trees=best_num_trees,
        best_r_squared=float(best_r2),
        scores=scores
    )


# =============================================================================
# Persistence
# =============================================================================

def _tree_to_dict(tree: DecisionTree) -> Dict[str, Any]:
    if isinstance(tree, Leaf):
        return {'value': tree.value}
    return {
        'feature': tree.feature,
        'threshold': tree.threshold,
        'left': _tree_to_dict(tree.left),
        'right': _tree_to_dict(tree.right)
    }


def _require_number(value: Any, what: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ModelFormatError(f"{what} must be a number, got {value!r}")
    if not math.isfinite(value):
        raise ModelFormatError(f"{what} must be finite, got {value!r}")
    return float(value)


def _tree_from_dict(node: Any, feature_names: Sequence[str]) -> DecisionTree:
    if not isinstance(node, dict):
        raise ModelFormatError(f"tree node must be an object, got {type(node).__name__}")

    keys = set(node)
    if keys == {'value'}:
        return Leaf(_require_number(node['value'], 'leaf value'))

    if keys == {'feature', 'threshold', 'left', 'right'}:
        feature = node['feature']
        if feature not in feature_names:
            raise ModelFormatError(f"split feature {feature!r} is not a model feature")
        return InternalNode(
            feature=feature,
            threshold=_require_number(node['threshold'], 'threshold'),
            left=_tree_from_dict(node['left'], feature_names),
            right=_tree_from_dict(node['right'], feature_names)
        )

    raise ModelFormatError(f"unrecognized tree node with keys {sorted(keys)}")


def serialize_model(trained_model: TrainedModel) -> str:
    """
    Serialize a trained model to JSON.

    The document holds the feature names, every tree's topology with exact
    thresholds and leaf values, the metrics and the training date.
    """
    model = trained_model.model
    metrics = trained_model.metrics
    document = {
        'format_version': SERIALIZATION_FORMAT_VERSION,
        'feature_names': list(model.feature_names),
        'trees': [_tree_to_dict(tree) for tree in model.trees],
        'metrics': {
            'rmse': metrics.rmse,
            'mape': metrics.mape,
            'r_squared': metrics.r_squared,
            'train_time_ms': metrics.train_time_ms
        },
        'train_date': trained_model.train_date
    }
    return json.dumps(document, indent=2)


def deserialize_model(text: str) -> TrainedModel:
    """
    Rebuild a TrainedModel from serialize_model output.

    Raises:
        ModelFormatError: If the text is not valid JSON or does not have the
            expected shape
    """
    try:
        document = json.loads(text)
    except json.JSONDecodeError as e:
        raise ModelFormatError(f"model is not valid JSON: {e}") from e

    if not isinstance(document, dict):
        raise ModelFormatError("model document must be a JSON object")

    version = document.get('format_version')
    if version != SERIALIZATION_FORMAT_VERSION:
        raise ModelFormatError(f"unsupported model format version: {version!r}")

    feature_names = document.get('feature_names')
    if not isinstance(feature_names, list) or not all(isinstance(f, str) for f in feature_names):
        raise ModelFormatError("feature_names must be a list of strings")

    trees = document.get('trees')
    if not isinstance(trees, list) or len(trees) == 0:
        raise ModelFormatError("trees must be a non-empty list")

    metrics_doc = document.get('metrics')
    if not isinstance(metrics_doc, dict):
        raise ModelFormatError("metrics must be an object")

    try:
        metrics = ModelMetrics(
            rmse=_require_number(metrics_doc['rmse'], 'rmse'),
            mape=_require_number(metrics_doc['mape'], 'mape'),
            r_squared=_require_number(metrics_doc['r_squared'], 'r_squared'),
            train_time_ms=_require_number(metrics_doc.get('train_time_ms', 0.0), 'train_time_ms')
        )
    except KeyError as e:
        raise ModelFormatError(f"metrics missing field {e}") from e

    train_date = document.get('train_date')
    if not isinstance(train_date, str):
        raise ModelFormatError("train_date must be a string")

    model = RandomForestModel(
        trees=tuple(_tree_from_dict(tree, feature_names) for tree in trees),
        feature_names=tuple(feature_names)
    )
    return TrainedModel(model=model, metrics=metrics, train_date=train_date)


def save_model(trained_model: TrainedModel, filepath: Union[Path, str]) -> Path:
    """
    Write the serialized model to disk.

    Args:
        trained_model: Model to save
        filepath: Destination JSON file

    Returns:
        Path where model was saved
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    with open(filepath, 'w') as f:
        f.write(serialize_model(trained_model))

    logger.info(f"Random forest model saved to {filepath}")
    return filepath


def load_model(filepath: Union[Path, str]) -> TrainedModel:
    """
    Load a model written by save_model.

    Raises:
        FileNotFoundError: If the file does not exist
        ModelFormatError: If its contents are malformed
    """
    filepath = Path(filepath)

    if not filepath.exists():
        raise FileNotFoundError(f"Model file not found: {filepath}")

    with open(filepath, 'r') as f:
        trained_model = deserialize_model(f.read())

    logger.info(f"Random forest model loaded from {filepath}")
    return trained_model


def metrics_frame(cv_result: CrossValidationResult) -> pd.DataFrame:
    """
    Per-fold metrics as a DataFrame (one row per fold).
    """
    return pd.DataFrame(
        {
            'test_rows': cv_result.fold_sizes,
            'rmse': [m.rmse for m in cv_result.fold_metrics],
            'mape': [m.mape for m in cv_result.fold_metrics],
            'r_squared': [m.r_squared for m in cv_result.fold_metrics],
        },
        index=pd.RangeIndex(1, len(cv_result.fold_sizes) + 1, name='fold')
    )
