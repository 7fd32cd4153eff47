"""Closed-form linear regression trained through the normal equation.

Key design decisions:
- Features are z-normalized; a zero standard deviation is treated as 1
- A constant bias column is prepended and solved jointly with the weights
- A small ridge term keeps the Gram matrix invertible when one-hot blocks
  are collinear with the bias column
- Predictions are clamped into the salary band
- Importance is the share of each normalized weight's magnitude
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Sequence

import numpy as np

from salary_engine.config import LinearConfig, SalaryBounds
from salary_engine.metrics.regression import regression_metrics
from salary_engine.models.common.matrix import invert, multiply, transpose
from salary_engine.models.common.results import (
    ModelResult,
    as_training_arrays,
    default_feature_names,
    describe_importance,
    empty_result,
    normalize_importance,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LinearModel:
    """Trained linear model in normalized feature space.

    ``weights[i]`` applies to ``(x[i] - means[i]) / stds[i]``. ``singular``
    is set when the Gram matrix could not be inverted and the solution came
    from the identity fallback.
    """

    weights: np.ndarray
    bias: float
    means: np.ndarray
    stds: np.ndarray
    feature_names: tuple[str, ...]
    bounds: SalaryBounds = field(default_factory=SalaryBounds)
    singular: bool = False

    @property
    def n_features(self) -> int:
        return int(self.weights.shape[0])

    @property
    def raw_weights(self) -> np.ndarray:
        """Weights applicable to un-normalized features."""
        return self.weights / self.stds

    @property
    def raw_bias(self) -> float:
        return float(self.bias - np.sum(self.weights * self.means / self.stds))

    def _check_width(self, width: int) -> None:
        if width != self.n_features:
            raise ValueError(f"expected {self.n_features} features, got {width}")

    def predict_many(self, features: np.ndarray) -> np.ndarray:
        X = np.asarray(features, dtype=float)
        if X.ndim == 1:
            X = X.reshape(1, -1)
        self._check_width(X.shape[1])
        raw = (X - self.means) / self.stds @ self.weights + self.bias
        return np.clip(raw, self.bounds.lower, self.bounds.upper)

    def predict_one(self, features: Sequence[float]) -> float:
        vector = np.asarray(features, dtype=float).ravel()
        self._check_width(vector.shape[0])
        return float(self.predict_many(vector.reshape(1, -1))[0])


def normalization_params(features: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Per-column mean and population std; zero std becomes 1."""

    means = features.mean(axis=0)
    stds = features.std(axis=0)
    stds = np.where(stds > 0.0, stds, 1.0)
    return means, stds


def solve_normal_equation(
    design: np.ndarray,
    targets: np.ndarray,
    ridge: float = 0.0,
) -> tuple[np.ndarray, bool]:
    """Solve ``w = (XᵗX + ridge·I')⁻¹ Xᵗy`` where column 0 of ``design`` is the bias.

    Returns
    -------
    tuple[np.ndarray, bool]
        Weight vector (bias first) and the singular flag from :func:`invert`.
    """
    design_t = transpose(design)
    gram = multiply(design_t, design)
    if ridge > 0.0:
        penalty = np.full(gram.shape[0], ridge)
        penalty[0] = 0.0
        gram = gram + np.diag(penalty)
    gram_inv, singular = invert(gram)
    moment = multiply(design_t, targets.reshape(-1, 1))
    weights = multiply(gram_inv, moment).ravel()
    return weights, singular


def train_linear(
    features: np.ndarray,
    targets: np.ndarray,
    feature_names: Sequence[str] | None = None,
    *,
    config: LinearConfig | None = None,
    bounds: SalaryBounds | None = None,
) -> ModelResult:
    """Train the normal-equation linear regression.

    Parameters
    ----------
    features : np.ndarray
        Feature matrix of shape (n, p).
    targets : np.ndarray
        Salary targets of shape (n,).
    feature_names : Sequence[str], optional
        Names for the p columns; generic names when omitted.
    config : LinearConfig, optional
        Ridge settings. Defaults to :class:`LinearConfig`.
    bounds : SalaryBounds, optional
        Clamp band for predictions. Defaults to :class:`SalaryBounds`.

    Returns
    -------
    ModelResult
        ``model`` is a :class:`LinearModel`. Empty or zero-width input yields
        an empty result instead of raising.
    """
    config = config or LinearConfig()
    bounds = bounds or SalaryBounds()
    X, y = as_training_arrays(features, targets)
    n_samples, n_features = X.shape
    names = default_feature_names(n_features, feature_names)

    if n_samples == 0 or n_features == 0:
        logger.warning("Linear regression skipped: empty input (%d x %d)", n_samples, n_features)
        return empty_result(names, model_type="linear")

    start = time.perf_counter()
    means, stds = normalization_params(X)
    normalized = (X - means) / stds
    design = np.hstack([np.ones((n_samples, 1)), normalized])

    solution, singular = solve_normal_equation(design, y, ridge=config.ridge_penalty * n_samples)
    if singular:
        logger.warning("Linear regression used the identity fallback; treat the model as low confidence")
    if not np.all(np.isfinite(solution)):
        logger.warning("Non-finite linear weights replaced by zero")
        solution = np.where(np.isfinite(solution), solution, 0.0)

    bias, weights = float(solution[0]), solution[1:]
    model = LinearModel(
        weights=weights,
        bias=bias,
        means=means,
        stds=stds,
        feature_names=names,
        bounds=bounds,
        singular=singular,
    )

    predictions = np.clip(design @ solution, bounds.lower, bounds.upper)
    metrics = regression_metrics(y, predictions)
    importance = normalize_importance(np.abs(weights), names)

    elapsed = time.perf_counter() - start
    logger.info(
        "Linear regression trained on %d x %d in %.3fs: R2=%.4f MAE=%.1f RMSE=%.1f",
        n_samples, n_features, elapsed,
        metrics.r2_score, metrics.mean_absolute_error, metrics.root_mean_square_error,
    )
    logger.debug("Linear importance (top): %s", describe_importance(importance))

    return ModelResult(
        predictions=predictions,
        accuracy=metrics.r2_score,
        feature_importance=importance,
        metrics=metrics,
        model=model,
        metadata={"model_type": "linear", "singular": singular, "training_seconds": elapsed},
    )
