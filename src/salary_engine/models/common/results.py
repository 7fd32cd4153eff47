"""Result types shared by the linear and forest trainers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Sequence

import numpy as np

from salary_engine.metrics.regression import RegressionMetrics


@dataclass(frozen=True)
class ModelResult:
    """Output of one training call.

    ``predictions`` are in-sample (one per training row), ``accuracy`` is the
    headline R² (the OOB score for forests when available) and ``model`` is
    the trained model, or ``None`` when no model could be trained.
    """

    predictions: np.ndarray
    accuracy: float
    feature_importance: Dict[str, float]
    metrics: RegressionMetrics
    model: Any = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return self.model is None

    def to_dict(self) -> Dict[str, Any]:
        """Summary for JSON reports (predictions are left out)."""
        return {
            "accuracy": self.accuracy,
            "n_predictions": int(len(self.predictions)),
            "metrics": self.metrics.to_dict(),
            "feature_importance": dict(self.feature_importance),
            "metadata": dict(self.metadata),
        }


def uniform_importance(feature_names: Sequence[str]) -> Dict[str, float]:
    if not feature_names:
        return {}
    share = 1.0 / len(feature_names)
    return {name: share for name in feature_names}


def normalize_importance(scores: np.ndarray, feature_names: Sequence[str]) -> Dict[str, float]:
    """Map non-negative scores to ``name -> weight`` summing to 1.

    Falls back to uniform weights when every score is zero or non-finite.
    """
    scores = np.asarray(scores, dtype=float).ravel()
    if scores.shape[0] != len(feature_names):
        raise ValueError(
            f"{scores.shape[0]} importance scores for {len(feature_names)} features"
        )
    scores = np.where(np.isfinite(scores), np.abs(scores), 0.0)
    total = float(scores.sum())
    if total <= 0.0:
        return uniform_importance(feature_names)
    return {name: float(value / total) for name, value in zip(feature_names, scores)}


def empty_result(feature_names: Sequence[str], **metadata: Any) -> ModelResult:
    """Well-typed result for inputs no model can be trained on."""

    return ModelResult(
        predictions=np.empty(0, dtype=float),
        accuracy=0.0,
        feature_importance=uniform_importance(feature_names),
        metrics=RegressionMetrics.empty(),
        model=None,
        metadata=dict(metadata),
    )


def default_feature_names(n_features: int, feature_names: Sequence[str] | None) -> tuple[str, ...]:
    """Use the given names, or ``feature_0 .. feature_{p-1}``.

    Raises
    ------
    ValueError
        If the number of names does not match ``n_features``.
    """
    if feature_names is None:
        return tuple(f"feature_{i}" for i in range(n_features))
    names = tuple(feature_names)
    if len(names) != n_features:
        raise ValueError(f"{len(names)} feature names for {n_features} feature columns")
    return names


def as_training_arrays(features: Any, targets: Any) -> tuple[np.ndarray, np.ndarray]:
    """Coerce a (features, targets) pair to float arrays of shape (n, p) and (n,).

    Raises
    ------
    ValueError
        If the two are not index-aligned.
    """
    X = np.asarray(features, dtype=float)
    y = np.asarray(targets, dtype=float).ravel()
    if X.ndim == 1:
        X = X.reshape(len(y), -1) if len(y) else X.reshape(0, 0)
    if X.ndim != 2:
        raise ValueError(f"features must be 2-dimensional (got ndim={X.ndim})")
    if X.shape[0] != y.shape[0]:
        raise ValueError(f"features has {X.shape[0]} rows but targets has {y.shape[0]}")
    return X, y


def describe_importance(importance: Mapping[str, float], top: int = 5) -> str:
    ranked = sorted(importance.items(), key=lambda kv: kv[1], reverse=True)[:top]
    return ", ".join(f"{name}={weight:.3f}" for name, weight in ranked)
