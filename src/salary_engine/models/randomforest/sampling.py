"""Sampling helpers of the random forest.

Every function takes an explicit :class:`numpy.random.Generator`; nothing in
this module touches global random state.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from salary_engine.config import ForestConfig


@dataclass(frozen=True)
class ForestShape:
    """Hyperparameters derived from the size of the training set."""

    n_trees: int
    n_features_per_tree: int
    max_depth: int
    min_samples_leaf: int
    min_samples_split: int


def derive_forest_shape(
    n_samples: int,
    n_features: int,
    requested_trees: int,
    config: ForestConfig,
) -> ForestShape:
    """Derive tree count, subset size, depth and leaf sizes from (n, p).

    - trees: ``clamp(sqrt(n) * tree_scale, min_trees, requested)``; a request
      below ``min_trees`` is honoured as is
    - subset: ``clamp(sqrt(p) / p * scale, min_fraction, max_fraction) * p``
    - depth: ``clamp(log2(n) + depth_offset, min_depth, max_depth)``
    """
    requested = max(1, int(requested_trees))
    n_trees = min(requested, max(config.min_trees, int(round(math.sqrt(n_samples) * config.tree_scale))))

    if n_features > 0:
        fraction = math.sqrt(n_features) / n_features * config.feature_fraction_scale
        fraction = min(config.max_feature_fraction, max(config.min_feature_fraction, fraction))
        per_tree = max(1, min(n_features, int(round(fraction * n_features))))
    else:
        per_tree = 0

    depth = int(math.log2(max(n_samples, 1))) + config.depth_offset
    max_depth = min(config.max_depth, max(config.min_depth, depth))

    min_leaf = max(2, min(20, n_samples // 500))
    min_split = max(2 * min_leaf, 5)
    return ForestShape(
        n_trees=n_trees,
        n_features_per_tree=per_tree,
        max_depth=max_depth,
        min_samples_leaf=min_leaf,
        min_samples_split=min_split,
    )


def quantile_strata(targets: np.ndarray, n_strata: int) -> list[np.ndarray]:
    """Split row indices into ``n_strata`` buckets of consecutive target quantiles."""

    order = np.argsort(targets, kind="mergesort")
    n_buckets = max(1, min(n_strata, order.shape[0]))
    return [bucket for bucket in np.array_split(order, n_buckets) if bucket.size]


def stratified_bootstrap(
    targets: np.ndarray,
    n_strata: int,
    rng: np.random.Generator,
) -> Tuple[np.ndarray, np.ndarray]:
    """Draw a bootstrap sample with replacement, stratified by target quantile.

    Each stratum is resampled to its own size, so rare high/low salary bands
    keep their share of the sample.

    Returns
    -------
    Tuple[np.ndarray, np.ndarray]
        ``(sample_indices, oob_indices)``; the sample has ``len(targets)``
        entries and the out-of-bag indices are exactly the rows never drawn.
    """
    targets = np.asarray(targets, dtype=float)
    n = targets.shape[0]
    if n == 0:
        return np.empty(0, dtype=np.int64), np.empty(0, dtype=np.int64)

    draws = [rng.choice(bucket, size=bucket.size, replace=True) for bucket in quantile_strata(targets, n_strata)]
    sample = np.concatenate(draws).astype(np.int64)
    in_bag = np.zeros(n, dtype=bool)
    in_bag[sample] = True
    oob = np.nonzero(~in_bag)[0].astype(np.int64)
    return sample, oob


def target_correlations(features: np.ndarray, targets: np.ndarray) -> np.ndarray:
    """Absolute Pearson correlation of each column with the target (0 for constant columns)."""

    X = np.asarray(features, dtype=float)
    y = np.asarray(targets, dtype=float)
    if X.shape[0] < 2:
        return np.zeros(X.shape[1], dtype=float)
    x_centered = X - X.mean(axis=0)
    y_centered = y - y.mean()
    denom = np.sqrt(np.sum(x_centered ** 2, axis=0) * np.sum(y_centered ** 2))
    with np.errstate(divide="ignore", invalid="ignore"):
        corr = np.abs(x_centered.T @ y_centered) / denom
    return np.where(np.isfinite(corr), corr, 0.0)


def _scaled(values: np.ndarray) -> np.ndarray:
    top = float(np.max(values)) if values.size else 0.0
    return values / top if top > 0.0 else np.zeros_like(values)


def selection_weights(tree_index: int, n_trees: int, config: ForestConfig) -> Tuple[float, float, float]:
    """``(correlation, importance, random)`` blend for the ``tree_index``-th tree.

    The importance weight grows linearly from 0 toward
    ``max_importance_weight``; randomness takes what is left.
    """
    progress = tree_index / max(n_trees, 1)
    w_corr = config.correlation_weight
    w_imp = config.max_importance_weight * progress
    w_rand = max(0.0, 1.0 - w_corr - w_imp)
    return w_corr, w_imp, w_rand


def select_feature_subset(
    correlations: np.ndarray,
    cumulative_importance: np.ndarray,
    n_select: int,
    tree_index: int,
    n_trees: int,
    rng: np.random.Generator,
    config: ForestConfig,
) -> np.ndarray:
    """Pick the feature subset of one tree.

    Candidates are ranked by a blend of target correlation, importance seen
    in earlier trees and uniform noise, then sampled without replacement
    with weights ``exp(-rank_decay * rank)``: top-ranked features are
    favoured but none is excluded.

    Returns
    -------
    np.ndarray
        Sorted column indices, ``n_select`` of them.
    """
    n_features = correlations.shape[0]
    n_select = max(0, min(n_select, n_features))
    if n_select == 0:
        return np.empty(0, dtype=np.int64)

    w_corr, w_imp, w_rand = selection_weights(tree_index, n_trees, config)
    scores = (
        w_corr * _scaled(np.asarray(correlations, dtype=float))
        + w_imp * _scaled(np.asarray(cumulative_importance, dtype=float))
        + w_rand * rng.random(n_features)
    )
    ranked = np.argsort(-scores, kind="mergesort")
    # Floored so a very wide schema still has n_select drawable candidates.
    rank_weights = np.maximum(np.exp(-config.rank_decay * np.arange(n_features)), 1e-12)
    probabilities = rank_weights / rank_weights.sum()
    chosen = rng.choice(ranked, size=n_select, replace=False, p=probabilities)
    return np.sort(chosen.astype(np.int64))
