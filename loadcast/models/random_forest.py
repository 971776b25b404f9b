"""
Random forest regression built from variance-reduction decision trees.

Each tree is grown recursively by choosing, at every node, the (feature,
threshold) pair that maximizes the reduction in target variance. The forest
trains every tree on a bootstrap sample of the rows and predicts with the
arithmetic mean of its trees.

Trees are represented as a tagged union: a node is either a Leaf carrying a
prediction value or an InternalNode carrying a feature name, a threshold and
two children.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from loadcast.models.feature_engineering import FEATURE_NAMES, FeatureVector


logger = logging.getLogger(__name__)

# Gains below this fraction of the parent variance are rounding noise
_MIN_RELATIVE_GAIN = 1e-12

Sample = Union[FeatureVector, Mapping[str, float]]
FeatureInput = Union[Sequence[Sample], pd.DataFrame]
RandomState = Union[None, int, np.random.Generator]


# =============================================================================
# Tree Types
# =============================================================================

@dataclass(frozen=True)
class Leaf:
    """Terminal node holding a prediction."""
    value: float


@dataclass(frozen=True)
class InternalNode:
    """
    Split node: rows with sample[feature] <= threshold go left, others right.
    """
    feature: str
    threshold: float
    left: 'DecisionTree'
    right: 'DecisionTree'


DecisionTree = Union[Leaf, InternalNode]


@dataclass(frozen=True)
class RandomForestModel:
    """
    Immutable bagged ensemble of regression trees.

    Attributes:
        trees: Non-empty tuple of trees (order preserved for reproducibility)
        feature_names: Feature names used during training, in column order
    """
    trees: Tuple[DecisionTree, ...]
    feature_names: Tuple[str, ...]

    def __post_init__(self):
        if len(self.trees) == 0:
            raise ValueError("RandomForestModel requires at least one tree")

    @property
    def n_trees(self) -> int:
        return len(self.trees)

    def tree_predictions(self, sample: Sample) -> np.ndarray:
        """Prediction of every tree for one sample."""
        values = _as_mapping(sample)
        _check_features(values, self.feature_names)
        return np.array([predict_tree(values, tree) for tree in self.trees])

    def predict(self, samples: FeatureInput) -> np.ndarray:
        """Forest prediction (mean over trees) for each sample."""
        return predict_forest(samples, self)


# =============================================================================
# Helpers
# =============================================================================

def as_generator(random_state: RandomState) -> np.random.Generator:
    """
    Turn a seed, a Generator or None into a numpy Generator.

    None draws fresh entropy from the OS.
    """
    if isinstance(random_state, np.random.Generator):
        return random_state
    return np.random.default_rng(random_state)


def _as_mapping(sample: Sample) -> Mapping[str, float]:
    if isinstance(sample, FeatureVector):
        return sample.to_dict()
    return sample


def _check_features(sample: Mapping[str, float], feature_names: Sequence[str]) -> None:
    missing = [name for name in feature_names if name not in sample]
    if missing:
        raise ValueError(f"Sample is missing model features: {missing}")


def to_matrix(
    features: FeatureInput,
    feature_names: Optional[Sequence[str]] = None
) -> Tuple[np.ndarray, Tuple[str, ...]]:
    """
    Convert feature records to an (n_samples, n_features) array.

    Accepts FeatureVector records, name -> value mappings, or a DataFrame.
    Column order is feature_names if given, otherwise the FeatureVector schema,
    the DataFrame columns, or the keys of the first mapping.

    Returns:
        Tuple of (matrix, feature_names)

    Raises:
        ValueError: If a record lacks one of the feature names
    """
    if isinstance(features, pd.DataFrame):
        names = tuple(feature_names) if feature_names is not None else tuple(features.columns)
        missing = [name for name in names if name not in features.columns]
        if missing:
            raise ValueError(f"Features are missing columns: {missing}")
        return features[list(names)].to_numpy(dtype=float), names

    if len(features) == 0:
        names = tuple(feature_names) if feature_names is not None else ()
        return np.empty((0, len(names))), names

    first = features[0]
    if feature_names is not None:
        names = tuple(feature_names)
    elif isinstance(first, FeatureVector):
        names = FEATURE_NAMES
    else:
        names = tuple(first.keys())

    rows = []
    for record in features:
        values = _as_mapping(record)
        _check_features(values, names)
        rows.append([values[name] for name in names])

    return np.asarray(rows, dtype=float), names


# =============================================================================
# Tree Building
# =============================================================================

def _best_split(X: np.ndarray, y: np.ndarray) -> Optional[Tuple[int, float, float]]:
    """
    Find the variance-reduction-maximizing split.

    Candidate thresholds are midpoints between consecutive sorted distinct
    values of each feature. Ties keep the first feature, then the lowest
    threshold.

    Returns:
        (feature_index, threshold, gain) or None if no split has positive gain
    """
    n = y.size
    centered = y - y.mean()
    parent_variance = np.mean(centered ** 2)

    best = None
    best_gain = 0.0

    for j in range(X.shape[1]):
        order = np.argsort(X[:, j], kind='mergesort')
        xs = X[order, j]
        ys = centered[order]

        # Position k marks a boundary between xs[k] and xs[k + 1]
        boundaries = np.nonzero(xs[1:] != xs[:-1])[0]
        if boundaries.size == 0:
            continue

        cum_sum = np.cumsum(ys)
        cum_sq = np.cumsum(ys ** 2)

        n_left = boundaries + 1
        n_right = n - n_left
        sum_left = cum_sum[boundaries]
        sq_left = cum_sq[boundaries]
        sum_right = cum_sum[-1] - sum_left
        sq_right = cum_sq[-1] - sq_left

        # Within-child sums of squares; dividing by n gives the size-weighted variance
        sse = (sq_left - sum_left ** 2 / n_left) + (sq_right - sum_right ** 2 / n_right)
        gains = parent_variance - sse / n

        k = int(np.argmax(gains))
        if gains[k] > best_gain:
            best_gain = float(gains[k])
            b = boundaries[k]
            best = (j, float((xs[b] + xs[b + 1]) / 2), best_gain)

    if best is None or best_gain <= _MIN_RELATIVE_GAIN * parent_variance:
        return None
    return best


def _grow(
    X: np.ndarray,
    y: np.ndarray,
    feature_names: Tuple[str, ...],
    max_depth: int,
    depth: int
) -> DecisionTree:
    if y.size == 0:
        return Leaf(0.0)
    if depth >= max_depth:
        return Leaf(float(y.mean()))
    if np.all(y == y[0]):
        return Leaf(float(y[0]))

    split = _best_split(X, y)
    if split is None:
        return Leaf(float(y.mean()))

    j, threshold, _ = split
    goes_left = X[:, j] <= threshold
    if goes_left.all() or not goes_left.any():
        return Leaf(float(y.mean()))

    return InternalNode(
        feature=feature_names[j],
        threshold=threshold,
        left=_grow(X[goes_left], y[goes_left], feature_names, max_depth, depth + 1),
        right=_grow(X[~goes_left], y[~goes_left], feature_names, max_depth, depth + 1)
    )


def build_tree(
    features: FeatureInput,
    targets: Union[Sequence[float], np.ndarray],
    max_depth: int = 10,
    depth: int = 0,
    feature_names: Optional[Sequence[str]] = None
) -> DecisionTree:
    """
    Grow a regression tree by recursive variance-reduction splitting.

    Terminal conditions, in order: no targets (leaf 0), depth >= max_depth
    (leaf = mean), identical targets (leaf = that value), no split with
    positive gain (leaf = mean).

    Args:
        features: Feature records aligned with targets
        targets: Target values
        max_depth: Maximum tree depth (default: 10)
        depth: Depth of the node being built (default: 0)
        feature_names: Optional explicit column order

    Returns:
        Root node of the tree
    """
    X, names = to_matrix(features, feature_names)
    y = np.asarray(targets, dtype=float)

    if X.shape[0] != y.size:
        raise ValueError(
            f"features and targets must have the same length, got {X.shape[0]} and {y.size}"
        )

    return _grow(X, y, names, max_depth, depth)


def _build_bootstrap_tree(
    X: np.ndarray,
    y: np.ndarray,
    feature_names: Tuple[str, ...],
    max_depth: int,
    seed: int
) -> DecisionTree:
    rng = np.random.default_rng(seed)
    n = y.size
    indices = rng.integers(0, n, size=n)
    return _grow(X[indices], y[indices], feature_names, max_depth, 0)


def build_forest(
    features: FeatureInput,
    targets: Union[Sequence[float], np.ndarray],
    num_trees: int = 10,
    max_depth: int = 10,
    random_state: RandomState = None,
    n_jobs: Optional[int] = 1,
    feature_names: Optional[Sequence[str]] = None
) -> RandomForestModel:
    """
    Train a bagged ensemble of regression trees.

    Every tree is grown on n rows drawn uniformly with replacement. Per-tree
    seeds are drawn from random_state before any tree is built, so the forest
    is the same for a fixed seed whatever n_jobs is.

    Args:
        features: Feature records aligned with targets
        targets: Target values
        num_trees: Number of trees (default: 10)
        max_depth: Maximum depth of each tree (default: 10)
        random_state: Seed, numpy Generator, or None for fresh entropy
        n_jobs: joblib worker count for building trees (default: 1)
        feature_names: Optional explicit column order

    Returns:
        RandomForestModel

    Raises:
        ValueError: If there are no rows, lengths differ, or num_trees < 1
    """
    if num_trees < 1:
        raise ValueError(f"num_trees must be >= 1, got {num_trees}")

    X, names = to_matrix(features, feature_names)
    y = np.asarray(targets, dtype=float)

    if X.shape[0] != y.size:
        raise ValueError(
            f"features and targets must have the same length, got {X.shape[0]} and {y.size}"
        )
    if y.size == 0:
        raise ValueError("Cannot build a forest from an empty dataset")

    rng = as_generator(random_state)
    seeds = rng.integers(0, 2 ** 32, size=num_trees, dtype=np.uint64)

    logger.debug(
        f"Building {num_trees} trees on {y.size} samples x {len(names)} features "
        f"(max_depth={max_depth}, n_jobs={n_jobs})"
    )

    trees = Parallel(n_jobs=n_jobs)(
        delayed(_build_bootstrap_tree)(X, y, names, max_depth, int(seed))
        for seed in seeds
    )

    return RandomForestModel(trees=tuple(trees), feature_names=names)


# =============================================================================
# Prediction
# =============================================================================

def predict_tree(sample: Sample, tree: DecisionTree) -> float:
    """
    Route a sample from the root to a leaf and return the leaf value.
    """
    values = _as_mapping(sample)
    node = tree
    while isinstance(node, InternalNode):
        node = node.left if values[node.feature] <= node.threshold else node.right
    return node.value


def predict_forest(samples: FeatureInput, model: RandomForestModel) -> np.ndarray:
    """
    Mean of all trees' predictions for each sample.

    Args:
        samples: Feature records or DataFrame
        model: Trained forest

    Returns:
        Array with one prediction per sample
    """
    X, names = to_matrix(samples, model.feature_names)
    column = {name: j for j, name in enumerate(names)}

    predictions = np.empty(X.shape[0])
    for i, row in enumerate(X):
        total = 0.0
        for tree in model.trees:
            node = tree
            while isinstance(node, InternalNode):
                node = node.left if row[column[node.feature]] <= node.threshold else node.right
            total += node.value
        predictions[i] = total / model.n_trees

    return predictions


# =============================================================================
# Introspection
# =============================================================================

def tree_depth(tree: DecisionTree) -> int:
    """Depth of a tree; a single leaf has depth 0."""
    if isinstance(tree, Leaf):
        return 0
    return 1 + max(tree_depth(tree.left), tree_depth(tree.right))


def count_leaves(tree: DecisionTree) -> int:
    if isinstance(tree, Leaf):
        return 1
    return count_leaves(tree.left) + count_leaves(tree.right)


def split_counts(model: RandomForestModel) -> Dict[str, int]:
    """
    Number of internal nodes splitting on each feature, across all trees.
    """
    counts = {name: 0 for name in model.feature_names}
    stack: List[DecisionTree] = list(model.trees)
    while stack:
        node = stack.pop()
        if isinstance(node, InternalNode):
            counts[node.feature] = counts.get(node.feature, 0) + 1
            stack.extend((node.left, node.right))
    return counts
