"""Model-agnostic inference entry points."""

from __future__ import annotations

from typing import Any, Sequence

import numpy as np

from salary_engine.models.common.results import ModelResult


def _unwrap(model: Any) -> Any:
    trained = model.model if isinstance(model, ModelResult) else model
    if trained is None:
        raise ValueError("no trained model: the training input was empty")
    if not hasattr(trained, "predict_one"):
        raise ValueError(f"unsupported model type: {type(trained).__name__}")
    return trained


def predict_one(model: Any, features: Sequence[float]) -> float:
    """Predict a single salary with a trained model (or the result holding it).

    A :class:`~salary_engine.models.linear.train_linear.LinearModel` applies
    its normalized dot product; a
    :class:`~salary_engine.models.randomforest.train_randomforest.ForestModel`
    runs the ensemble vote.
    """
    return _unwrap(model).predict_one(features)


def predict_many(model: Any, features: np.ndarray) -> np.ndarray:
    """Batch variant of :func:`predict_one`."""
    return _unwrap(model).predict_many(features)
