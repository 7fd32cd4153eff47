"""Random forest regressor with OOB evaluation.

Per tree, in order:
1. stratified bootstrap sample (target-quantile strata); undrawn rows are OOB
2. adaptive feature subset (correlation + earlier importance + noise)
3. tree growth on the bootstrap rows restricted to the subset
4. OOB prediction of every undrawn row
5. importance bookkeeping (per tree and cumulative)

Trees are grown in batches of ``n_jobs``: subsets and samples of a batch are
drawn sequentially from one seeded generator, the trees are grown
concurrently, then the batch is joined before OOB and importance
bookkeeping resume in tree order. ``n_jobs=1`` is the strictly sequential
algorithm.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field, replace
from typing import Dict, List, NamedTuple, Sequence, Tuple

import numpy as np
from joblib import Parallel, delayed, effective_n_jobs

from salary_engine.config import ForestConfig, SalaryBounds, TreeConfig
from salary_engine.metrics.regression import enhanced_metrics
from salary_engine.models.common.results import (
    ModelResult,
    as_training_arrays,
    default_feature_names,
    describe_importance,
    empty_result,
    normalize_importance,
)
from salary_engine.models.randomforest.sampling import (
    derive_forest_shape,
    select_feature_subset,
    stratified_bootstrap,
    target_correlations,
)
from salary_engine.models.randomforest.tree import RegressionTree, build_tree

logger = logging.getLogger(__name__)

MAD_SCALE = 0.6745


def aggregate_votes(
    predictions: Sequence[float],
    confidences: Sequence[float],
    *,
    lower: float,
    upper: float,
    fallback: float | None = None,
    config: ForestConfig | None = None,
) -> float:
    """Combine per-tree votes into one prediction.

    Parameters
    ----------
    predictions, confidences : Sequence[float]
        One ``(prediction, confidence)`` pair per tree.
    lower, upper : float
        Clamp range of the result.
    fallback : float, optional
        Returned (clamped) when no vote survives filtering. Defaults to the
        middle of ``[lower, upper]``.
    config : ForestConfig, optional
        Filter thresholds.

    Returns
    -------
    float
        Confidence-weighted mean of the surviving votes.

    Notes
    -----
    Votes that are non-finite, non-positive or have confidence at or below
    ``min_vote_confidence`` are discarded. With at least
    ``min_votes_for_filter`` survivors and a positive MAD, votes with
    ``|0.6745 * (x - median) / MAD| >= mad_threshold`` are dropped; if that
    drops everything the median is returned.
    """
    cfg = config or ForestConfig()

    def clamp(value: float) -> float:
        return float(min(upper, max(lower, value)))

    values = np.asarray(predictions, dtype=float).ravel()
    weights = np.asarray(confidences, dtype=float).ravel()
    keep = (
        np.isfinite(values)
        & (values > 0.0)
        & np.isfinite(weights)
        & (weights > cfg.min_vote_confidence)
    )
    values, weights = values[keep], weights[keep]

    if values.size == 0:
        if fallback is None or not np.isfinite(fallback):
            return clamp((lower + upper) / 2.0)
        return clamp(fallback)

    if values.size >= cfg.min_votes_for_filter:
        median = float(np.median(values))
        mad = float(np.median(np.abs(values - median)))
        if mad > 0.0:
            modified_z = MAD_SCALE * (values - median) / mad
            inliers = np.abs(modified_z) < cfg.mad_threshold
            if not inliers.any():
                return clamp(median)
            values, weights = values[inliers], weights[inliers]

    return clamp(float(np.sum(values * weights) / np.sum(weights)))


@dataclass(frozen=True)
class ForestModel:
    """Trained forest: trees plus the bookkeeping needed after training."""

    trees: Tuple[RegressionTree, ...]
    tree_importance: Tuple[np.ndarray, ...]
    oob_indices: Tuple[np.ndarray, ...]
    feature_names: Tuple[str, ...]
    target_mean: float
    target_std: float
    bounds: SalaryBounds = field(default_factory=SalaryBounds)
    config: ForestConfig = field(default_factory=ForestConfig)

    @property
    def n_trees(self) -> int:
        return len(self.trees)

    @property
    def n_features(self) -> int:
        return len(self.feature_names)

    @property
    def clamp_range(self) -> Tuple[float, float]:
        """``[mean - k·std, mean + k·std]`` intersected with the salary band."""
        spread = self.config.clamp_sigma * self.target_std
        lower = max(self.bounds.lower, self.target_mean - spread)
        upper = min(self.bounds.upper, self.target_mean + spread)
        if lower > upper:
            return self.bounds.lower, self.bounds.upper
        return lower, upper

    def tree_importance_maps(self) -> List[Dict[str, float]]:
        return [dict(zip(self.feature_names, map(float, imp))) for imp in self.tree_importance]

    def votes(self, features: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Per-tree ``(values, confidences)``, each of shape (n_trees, n_rows)."""
        X = np.asarray(features, dtype=float)
        if X.ndim == 1:
            X = X.reshape(1, -1)
        if X.shape[1] != self.n_features:
            raise ValueError(f"expected {self.n_features} features, got {X.shape[1]}")
        if not self.trees:
            empty = np.empty((0, X.shape[0]))
            return empty, empty
        pairs = [tree.predict_many(X) for tree in self.trees]
        return np.vstack([p[0] for p in pairs]), np.vstack([p[1] for p in pairs])

    def predict_many(self, features: np.ndarray) -> np.ndarray:
        values, confidences = self.votes(features)
        lower, upper = self.clamp_range
        return np.array(
            [
                aggregate_votes(
                    values[:, j],
                    confidences[:, j],
                    lower=lower,
                    upper=upper,
                    fallback=self.target_mean,
                    config=self.config,
                )
                for j in range(values.shape[1])
            ],
            dtype=float,
        )

    def predict_one(self, features: Sequence[float]) -> float:
        vector = np.asarray(features, dtype=float).ravel()
        if vector.shape[0] != self.n_features:
            raise ValueError(f"expected {self.n_features} features, got {vector.shape[0]}")
        return float(self.predict_many(vector.reshape(1, -1))[0])


class _TreePlan(NamedTuple):
    tree_index: int
    sample: np.ndarray
    oob: np.ndarray
    feature_subset: np.ndarray


def _grow_planned_tree(
    features: np.ndarray,
    targets: np.ndarray,
    plan: _TreePlan,
    tree_config: TreeConfig,
    bounds: SalaryBounds,
) -> RegressionTree:
    return build_tree(
        features[plan.sample],
        targets[plan.sample],
        feature_indices=plan.feature_subset,
        config=tree_config,
        bounds=bounds,
    )


def _grow_batch(
    features: np.ndarray,
    targets: np.ndarray,
    plans: List[_TreePlan],
    tree_config: TreeConfig,
    bounds: SalaryBounds,
    n_jobs: int,
) -> List[RegressionTree]:
    if n_jobs == 1 or len(plans) == 1:
        return [_grow_planned_tree(features, targets, plan, tree_config, bounds) for plan in plans]
    # Threads share the read-only training arrays; each task owns its sample.
    return Parallel(n_jobs=n_jobs, prefer="threads")(
        delayed(_grow_planned_tree)(features, targets, plan, tree_config, bounds)
        for plan in plans
    )


def train_forest(
    features: np.ndarray,
    targets: np.ndarray,
    n_trees: int | None = None,
    feature_names: Sequence[str] | None = None,
    *,
    config: ForestConfig | None = None,
    tree_config: TreeConfig | None = None,
    bounds: SalaryBounds | None = None,
    random_state: int | None = None,
) -> ModelResult:
    """Train the random forest.

    Parameters
    ----------
    features : np.ndarray
        Feature matrix of shape (n, p).
    targets : np.ndarray
        Salary targets of shape (n,).
    n_trees : int, optional
        Requested tree count (upper bound of the derived count). Defaults to
        ``config.n_trees``.
    feature_names : Sequence[str], optional
        Names for the p columns.
    config : ForestConfig, optional
        Ensemble settings.
    tree_config : TreeConfig, optional
        Base tree settings; depth and leaf sizes are re-derived from (n, p).
    bounds : SalaryBounds, optional
        Global salary band.
    random_state : int, optional
        Seed; overrides ``config.random_state``.

    Returns
    -------
    ModelResult
        ``model`` is a :class:`ForestModel`; ``accuracy`` is the OOB R² when
        any row was out of bag, the in-sample R² otherwise.
    """
    cfg = config or ForestConfig()
    bounds = bounds or SalaryBounds()
    X, y = as_training_arrays(features, targets)
    n_samples, n_features = X.shape
    names = default_feature_names(n_features, feature_names)

    if n_samples == 0 or n_features == 0:
        logger.warning("Random forest skipped: empty input (%d x %d)", n_samples, n_features)
        return empty_result(names, model_type="random_forest", n_trees=0)

    seed = random_state if random_state is not None else cfg.random_state
    rng = np.random.default_rng(seed)
    shape = derive_forest_shape(n_samples, n_features, n_trees or cfg.n_trees, cfg)
    base_tree_config = tree_config or TreeConfig()
    grown_config = replace(
        base_tree_config,
        max_depth=shape.max_depth,
        min_samples_leaf=shape.min_samples_leaf,
        min_samples_split=shape.min_samples_split,
    )
    n_jobs = effective_n_jobs(cfg.n_jobs)
    batch_size = 1 if n_jobs == 1 else n_jobs

    logger.info(
        "Training random forest: %d trees, %d/%d features per tree, max_depth=%d, "
        "min_leaf=%d, n_jobs=%d, rows=%d",
        shape.n_trees, shape.n_features_per_tree, n_features, shape.max_depth,
        shape.min_samples_leaf, n_jobs, n_samples,
    )
    start = time.perf_counter()

    correlations = target_correlations(X, y)
    cumulative = np.zeros(n_features, dtype=float)
    oob_votes: List[List[float]] = [[] for _ in range(n_samples)]
    trees: List[RegressionTree] = []
    per_tree_importance: List[np.ndarray] = []
    oob_sets: List[np.ndarray] = []

    for batch_start in range(0, shape.n_trees, batch_size):
        plans: List[_TreePlan] = []
        for t in range(batch_start, min(batch_start + batch_size, shape.n_trees)):
            sample, oob = stratified_bootstrap(y, cfg.n_strata, rng)
            subset = select_feature_subset(
                correlations,
                cumulative,
                shape.n_features_per_tree,
                t,
                shape.n_trees,
                rng,
                cfg,
            )
            plans.append(_TreePlan(t, sample, oob, subset))

        grown = _grow_batch(X, y, plans, grown_config, bounds, n_jobs)

        for plan, tree in zip(plans, grown):
            if plan.oob.size:
                oob_values, _ = tree.predict_many(X[plan.oob])
                for row, value in zip(plan.oob, oob_values):
                    oob_votes[row].append(float(value))
            trees.append(tree)
            per_tree_importance.append(tree.importance)
            oob_sets.append(plan.oob)
            cumulative += tree.importance

    # Later trees were grown with better-informed feature subsets.
    tree_weights = np.array(
        [1.0 + cfg.late_tree_boost * t / shape.n_trees for t in range(len(trees))]
    )
    weighted_importance = np.average(np.vstack(per_tree_importance), axis=0, weights=tree_weights)
    importance = normalize_importance(weighted_importance, names)

    model = ForestModel(
        trees=tuple(trees),
        tree_importance=tuple(per_tree_importance),
        oob_indices=tuple(oob_sets),
        feature_names=names,
        target_mean=float(np.mean(y)),
        target_std=float(np.std(y)),
        bounds=bounds,
        config=cfg,
    )
    predictions = model.predict_many(X)
    metrics = enhanced_metrics(y, predictions, oob_votes)
    accuracy = metrics.oob_score if metrics.oob_score is not None else metrics.r2_score

    elapsed = time.perf_counter() - start
    logger.info(
        "Random forest trained in %.3fs: R2=%.4f OOB=%s MAE=%.1f RMSE=%.1f",
        elapsed,
        metrics.r2_score,
        "n/a" if metrics.oob_score is None else f"{metrics.oob_score:.4f}",
        metrics.mean_absolute_error,
        metrics.root_mean_square_error,
    )
    logger.debug("Forest importance (top): %s", describe_importance(importance))

    return ModelResult(
        predictions=predictions,
        accuracy=float(accuracy),
        feature_importance=importance,
        metrics=metrics,
        model=model,
        metadata={
            "model_type": "random_forest",
            "n_trees": len(trees),
            "n_features_per_tree": shape.n_features_per_tree,
            "max_depth": shape.max_depth,
            "min_samples_leaf": shape.min_samples_leaf,
            "mean_leaves": float(np.mean([tree.n_leaves for tree in trees])),
            "random_state": seed,
            "training_seconds": elapsed,
        },
    )
