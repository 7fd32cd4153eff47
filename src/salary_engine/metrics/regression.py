"""Regression metrics for the salary models.

The metrics consist of:
1. R² (coefficient of determination), clamped to [-1, 1]
2. Mean absolute error and root-mean-square error
3. Out-of-bag metrics for ensembles: OOB R², average prediction variance,
   feature stability and a 95% confidence half-width

Non-finite (actual, predicted) pairs are dropped before anything is computed,
so a single bad entry cannot zero out a whole metric.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Sequence, Tuple

import numpy as np
from sklearn.metrics import mean_absolute_error, mean_squared_error

R2_MIN = -1.0
R2_MAX = 1.0
Z_95 = 1.96
EPS = 1e-12


@dataclass(frozen=True)
class RegressionMetrics:
    """Result container for regression metrics."""

    r2_score: float
    mean_absolute_error: float
    root_mean_square_error: float
    n_samples: int = 0
    oob_score: float | None = None
    prediction_variance: float | None = None
    feature_stability: float | None = None
    confidence_interval: float | None = None

    @classmethod
    def empty(cls) -> "RegressionMetrics":
        return cls(r2_score=0.0, mean_absolute_error=0.0, root_mean_square_error=0.0)

    def to_dict(self) -> Dict[str, float | int | None]:
        """Convert to dictionary for JSON serialization."""
        return {
            "r2_score": self.r2_score,
            "mean_absolute_error": self.mean_absolute_error,
            "root_mean_square_error": self.root_mean_square_error,
            "n_samples": self.n_samples,
            "oob_score": self.oob_score,
            "prediction_variance": self.prediction_variance,
            "feature_stability": self.feature_stability,
            "confidence_interval": self.confidence_interval,
        }


def finite_pairs(actual: Sequence[float], predicted: Sequence[float]) -> Tuple[np.ndarray, np.ndarray]:
    """Return the aligned pairs where both values are finite.

    Raises
    ------
    ValueError
        If ``actual`` and ``predicted`` differ in length.
    """
    actual = np.asarray(actual, dtype=float).ravel()
    predicted = np.asarray(predicted, dtype=float).ravel()
    if actual.shape != predicted.shape:
        raise ValueError(
            f"actual and predicted must be aligned: {actual.shape[0]} != {predicted.shape[0]}"
        )
    mask = np.isfinite(actual) & np.isfinite(predicted)
    return actual[mask], predicted[mask]


def _r2(actual: np.ndarray, predicted: np.ndarray) -> float:
    if actual.size < 2:
        return 0.0
    ss_res = float(np.sum((actual - predicted) ** 2))
    ss_tot = float(np.sum((actual - actual.mean()) ** 2))
    if ss_tot <= EPS:
        # Constant truth: only an exact reproduction explains it.
        return 1.0 if ss_res <= EPS else 0.0
    return float(np.clip(1.0 - ss_res / ss_tot, R2_MIN, R2_MAX))


def r2_score(actual: Sequence[float], predicted: Sequence[float]) -> float:
    """R² of ``predicted`` against ``actual``, clamped to [-1, 1]."""
    return _r2(*finite_pairs(actual, predicted))


def regression_metrics(actual: Sequence[float], predicted: Sequence[float]) -> RegressionMetrics:
    """Compute R², MAE and RMSE.

    Parameters
    ----------
    actual : Sequence[float]
        True target values.
    predicted : Sequence[float]
        Predicted values aligned with ``actual``.

    Returns
    -------
    RegressionMetrics
        Zero metrics when no finite pair remains.
    """
    actual_f, predicted_f = finite_pairs(actual, predicted)
    if actual_f.size == 0:
        return RegressionMetrics.empty()

    mae = float(mean_absolute_error(actual_f, predicted_f))
    rmse = float(np.sqrt(mean_squared_error(actual_f, predicted_f)))
    return RegressionMetrics(
        r2_score=_r2(actual_f, predicted_f),
        mean_absolute_error=max(0.0, mae),
        root_mean_square_error=max(0.0, rmse),
        n_samples=int(actual_f.size),
    )


def _finite_votes(votes: Sequence[float]) -> np.ndarray:
    arr = np.asarray(votes, dtype=float).ravel()
    return arr[np.isfinite(arr)]


def oob_estimates(oob_predictions: Sequence[Sequence[float]]) -> np.ndarray:
    """Median of each row's out-of-bag votes (NaN for rows without votes)."""

    estimates = np.full(len(oob_predictions), np.nan)
    for i, votes in enumerate(oob_predictions):
        finite = _finite_votes(votes)
        if finite.size:
            estimates[i] = float(np.median(finite))
    return estimates


def oob_score(actual: Sequence[float], oob_predictions: Sequence[Sequence[float]]) -> float | None:
    """R² of the per-row OOB medians; ``None`` when no row was ever out of bag."""

    estimates = oob_estimates(oob_predictions)
    if not np.isfinite(estimates).any():
        return None
    return r2_score(actual, estimates)


def prediction_variance(oob_predictions: Sequence[Sequence[float]]) -> float | None:
    """Average variance of the OOB votes over rows with at least two votes."""

    variances = [
        float(np.var(finite))
        for finite in map(_finite_votes, oob_predictions)
        if finite.size >= 2
    ]
    if not variances:
        return None
    return float(np.mean(variances))


def feature_stability(oob_predictions: Sequence[Sequence[float]]) -> float | None:
    """Mean of ``1 / (1 + var / mean²)`` over rows with at least two OOB votes.

    1.0 means every tree agreed on every row; the score decays toward 0 as
    the votes spread relative to their level.
    """
    scores = []
    for finite in map(_finite_votes, oob_predictions):
        if finite.size < 2:
            continue
        mean = float(np.mean(finite))
        normalized_var = float(np.var(finite)) / max(mean * mean, EPS)
        scores.append(1.0 / (1.0 + normalized_var))
    if not scores:
        return None
    return float(np.mean(scores))


def enhanced_metrics(
    actual: Sequence[float],
    predicted: Sequence[float],
    oob_predictions: Sequence[Sequence[float]],
) -> RegressionMetrics:
    """Base metrics plus the OOB-derived ensemble diagnostics."""

    base = regression_metrics(actual, predicted)
    variance = prediction_variance(oob_predictions)
    return RegressionMetrics(
        r2_score=base.r2_score,
        mean_absolute_error=base.mean_absolute_error,
        root_mean_square_error=base.root_mean_square_error,
        n_samples=base.n_samples,
        oob_score=oob_score(actual, oob_predictions),
        prediction_variance=variance,
        feature_stability=feature_stability(oob_predictions),
        confidence_interval=None if variance is None else Z_95 * math.sqrt(variance),
    )
