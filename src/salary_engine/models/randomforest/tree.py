"""Regularized regression tree.

The tree is stored as an arena: parallel arrays indexed by node id, node 0
being the root. A leaf has ``feature == -1``; split nodes reference their
children by index, so the structure has no back-pointers and no cycles.

Growth stops (the node becomes a leaf) when any of these holds:
- depth >= max_depth
- n <= min_samples_leaf, or n < min_samples_split
- the targets are homogeneous
- the node variance is below the depth-scaled penalty
  ``regularization * variance_penalty * depth * root_variance``
- no candidate split clears both the absolute and the depth-scaled gain floor
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, NamedTuple, Sequence, Tuple

import numpy as np
import pandas as pd

from salary_engine.config import SalaryBounds, TreeConfig

LEAF = -1


class _Split(NamedTuple):
    feature: int
    threshold: float
    score: float


@dataclass(frozen=True)
class RegressionTree:
    """Immutable regression tree (see module docstring for the layout)."""

    feature: np.ndarray
    threshold: np.ndarray
    left: np.ndarray
    right: np.ndarray
    value: np.ndarray
    n_samples: np.ndarray
    depth: np.ndarray
    confidence: np.ndarray
    importance: np.ndarray
    feature_indices: np.ndarray

    @property
    def n_nodes(self) -> int:
        return int(self.feature.shape[0])

    @property
    def n_leaves(self) -> int:
        return int(np.sum(self.feature == LEAF))

    @property
    def n_features(self) -> int:
        return int(self.importance.shape[0])

    @property
    def max_depth_reached(self) -> int:
        return int(self.depth.max()) if self.n_nodes else 0

    def apply(self, features: np.ndarray) -> np.ndarray:
        """Leaf id reached by every row, walking all rows level by level."""

        X = np.asarray(features, dtype=float)
        if X.ndim == 1:
            X = X.reshape(1, -1)
        if X.shape[1] != self.n_features:
            raise ValueError(f"expected {self.n_features} features, got {X.shape[1]}")

        node = np.zeros(X.shape[0], dtype=np.int64)
        active = self.feature[node] != LEAF
        while active.any():
            rows = np.nonzero(active)[0]
            current = node[rows]
            go_left = X[rows, self.feature[current]] <= self.threshold[current]
            node[rows] = np.where(go_left, self.left[current], self.right[current])
            active = self.feature[node] != LEAF
        return node

    def predict_many(self, features: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Return ``(values, confidences)`` for every row."""
        leaves = self.apply(features)
        return self.value[leaves], self.confidence[leaves]

    def predict_one(self, features: Sequence[float]) -> Tuple[float, float]:
        values, confidences = self.predict_many(np.asarray(features, dtype=float).reshape(1, -1))
        return float(values[0]), float(confidences[0])

    def to_frame(self) -> pd.DataFrame:
        """Node table for inspection and debugging."""
        return pd.DataFrame(
            {
                "feature": self.feature,
                "threshold": self.threshold,
                "left": self.left,
                "right": self.right,
                "value": self.value,
                "n_samples": self.n_samples,
                "depth": self.depth,
                "confidence": self.confidence,
            }
        )


def leaf_value(targets: np.ndarray, regularization: float, bounds: SalaryBounds) -> float:
    """Median blended with the mean by ``regularization``, clamped to the band."""

    blended = float(np.median(targets)) * (1.0 - regularization) + float(np.mean(targets)) * regularization
    return bounds.clip(blended)


def leaf_confidence(n_samples: int, depth: int, config: TreeConfig) -> float:
    """Confidence of a leaf reached after ``depth`` internal hops."""

    saturation = math.log1p(config.confidence_saturation * config.min_samples_leaf)
    base = min(1.0, math.log1p(n_samples) / saturation)
    return base * config.confidence_decay ** depth


def candidate_thresholds(sorted_values: np.ndarray, max_thresholds: int) -> np.ndarray:
    """Midpoints between consecutive distinct values, evenly subsampled."""

    distinct = np.unique(sorted_values)
    if distinct.shape[0] < 2:
        return np.empty(0, dtype=float)
    midpoints = (distinct[:-1] + distinct[1:]) / 2.0
    if midpoints.shape[0] > max_thresholds:
        keep = np.unique(np.linspace(0, midpoints.shape[0] - 1, max_thresholds).round().astype(int))
        midpoints = midpoints[keep]
    return midpoints


class _TreeBuilder:
    def __init__(
        self,
        features: np.ndarray,
        targets: np.ndarray,
        feature_indices: np.ndarray,
        config: TreeConfig,
        bounds: SalaryBounds,
    ) -> None:
        self.X = features
        self.y = targets
        self.feature_indices = feature_indices
        self.config = config
        self.bounds = bounds
        self.root_n = targets.shape[0]
        self.root_variance = float(np.var(targets)) if targets.size else 0.0
        self.importance = np.zeros(features.shape[1], dtype=float)

        self.feature: List[int] = []
        self.threshold: List[float] = []
        self.left: List[int] = []
        self.right: List[int] = []
        self.value: List[float] = []
        self.n_samples: List[int] = []
        self.depth: List[int] = []
        self.confidence: List[float] = []

    def build(self) -> RegressionTree:
        self._grow(np.arange(self.root_n), depth=0)
        total = float(self.importance.sum())
        importance = self.importance / total if total > 0.0 else self.importance
        return RegressionTree(
            feature=np.asarray(self.feature, dtype=np.int64),
            threshold=np.asarray(self.threshold, dtype=float),
            left=np.asarray(self.left, dtype=np.int64),
            right=np.asarray(self.right, dtype=np.int64),
            value=np.asarray(self.value, dtype=float),
            n_samples=np.asarray(self.n_samples, dtype=np.int64),
            depth=np.asarray(self.depth, dtype=np.int64),
            confidence=np.asarray(self.confidence, dtype=float),
            importance=importance,
            feature_indices=np.asarray(self.feature_indices, dtype=np.int64),
        )

    def _new_node(self, n_rows: int, depth: int) -> int:
        self.feature.append(LEAF)
        self.threshold.append(np.nan)
        self.left.append(LEAF)
        self.right.append(LEAF)
        self.value.append(np.nan)
        self.n_samples.append(n_rows)
        self.depth.append(depth)
        self.confidence.append(0.0)
        return len(self.feature) - 1

    def _should_stop(self, targets: np.ndarray, depth: int) -> bool:
        cfg = self.config
        n = targets.shape[0]
        if depth >= cfg.max_depth:
            return True
        if n <= cfg.min_samples_leaf or n < cfg.min_samples_split:
            return True
        spread = float(np.ptp(targets))
        if spread <= cfg.homogeneity_tol * max(1.0, abs(float(np.mean(targets)))):
            return True
        penalty = cfg.regularization * cfg.variance_penalty * depth * self.root_variance
        return depth > 0 and float(np.var(targets)) < penalty

    def _grow(self, rows: np.ndarray, depth: int) -> int:
        node = self._new_node(rows.shape[0], depth)
        targets = self.y[rows]

        split = None if self._should_stop(targets, depth) else self._best_split(rows, targets, depth)
        if split is None:
            self.value[node] = leaf_value(targets, self.config.regularization, self.bounds)
            self.confidence[node] = leaf_confidence(rows.shape[0], depth, self.config)
            return node

        go_left = self.X[rows, split.feature] <= split.threshold
        self.importance[split.feature] += (
            split.score * (rows.shape[0] / self.root_n) * self.config.importance_decay ** depth
        )
        self.feature[node] = split.feature
        self.threshold[node] = split.threshold
        # Internal nodes keep their blended value for inspection only.
        self.value[node] = leaf_value(targets, self.config.regularization, self.bounds)
        left = self._grow(rows[go_left], depth + 1)
        right = self._grow(rows[~go_left], depth + 1)
        self.left[node] = left
        self.right[node] = right
        return node

    def _best_split(self, rows: np.ndarray, targets: np.ndarray, depth: int) -> _Split | None:
        cfg = self.config
        n = targets.shape[0]
        centered = targets - targets.mean()
        parent_variance = float(np.mean(centered ** 2))
        if parent_variance <= 0.0:
            return None

        floor = max(cfg.min_gain, depth * cfg.depth_gain_step)
        best: _Split | None = None

        for feature in self.feature_indices:
            values = self.X[rows, feature]
            order = np.argsort(values, kind="mergesort")
            sorted_values = values[order]
            thresholds = candidate_thresholds(sorted_values, cfg.max_thresholds)
            if thresholds.size == 0:
                continue

            sorted_targets = centered[order]
            cum_sum = np.concatenate(([0.0], np.cumsum(sorted_targets)))
            cum_sq = np.concatenate(([0.0], np.cumsum(sorted_targets ** 2)))

            n_left = np.searchsorted(sorted_values, thresholds, side="right")
            n_right = n - n_left
            valid = (n_left >= cfg.min_samples_leaf) & (n_right >= cfg.min_samples_leaf)
            if not valid.any():
                continue

            n_left_f = n_left.astype(float)
            n_right_f = n_right.astype(float)
            sum_left = cum_sum[n_left]
            sq_left = cum_sq[n_left]
            sum_right = cum_sum[-1] - sum_left
            sq_right = cum_sq[-1] - sq_left
            with np.errstate(divide="ignore", invalid="ignore"):
                var_left = np.maximum(sq_left / n_left_f - (sum_left / n_left_f) ** 2, 0.0)
                var_right = np.maximum(sq_right / n_right_f - (sum_right / n_right_f) ** 2, 0.0)
            weighted = (n_left_f * np.nan_to_num(var_left) + n_right_f * np.nan_to_num(var_right)) / n

            balance = 1.0 - cfg.regularization * np.abs(n_left_f - n_right_f) / n
            scores = (parent_variance - weighted) / parent_variance * balance
            scores = np.where(valid, scores, -np.inf)

            pick = int(np.argmax(scores))
            score = float(scores[pick])
            if score >= floor and (best is None or score > best.score):
                best = _Split(feature=int(feature), threshold=float(thresholds[pick]), score=score)

        return best


def build_tree(
    features: np.ndarray,
    targets: np.ndarray,
    feature_indices: Sequence[int] | None = None,
    config: TreeConfig | None = None,
    bounds: SalaryBounds | None = None,
) -> RegressionTree:
    """Grow a regression tree on ``features``/``targets``.

    Parameters
    ----------
    features : np.ndarray
        Training matrix of shape (n, p). Node feature ids refer to its columns.
    targets : np.ndarray
        Targets of shape (n,).
    feature_indices : Sequence[int], optional
        Columns the split search may use. All columns when omitted.
    config : TreeConfig, optional
        Growth and regularization settings.
    bounds : SalaryBounds, optional
        Band every leaf value is clamped into.

    Returns
    -------
    RegressionTree
        A single-leaf tree when no valid split exists anywhere.

    Raises
    ------
    ValueError
        If there are no rows, the inputs are misaligned or a feature index is
        out of range.
    """
    X = np.asarray(features, dtype=float)
    y = np.asarray(targets, dtype=float).ravel()
    if X.ndim != 2 or X.shape[0] != y.shape[0]:
        raise ValueError(f"features {X.shape} and targets {y.shape} are not aligned")
    if y.shape[0] == 0:
        raise ValueError("cannot grow a tree without rows")

    if feature_indices is None:
        indices = np.arange(X.shape[1], dtype=np.int64)
    else:
        indices = np.asarray(sorted(set(int(i) for i in feature_indices)), dtype=np.int64)
        if indices.size and (indices.min() < 0 or indices.max() >= X.shape[1]):
            raise ValueError(f"feature indices out of range for {X.shape[1]} columns")

    builder = _TreeBuilder(X, y, indices, config or TreeConfig(), bounds or SalaryBounds())
    return builder.build()
