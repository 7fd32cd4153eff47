"""Model training and inference.

This package provides the two salary models and their shared utilities:
- linear: normal-equation linear regression
- randomforest: regression trees, sampling and the OOB-scored forest
- common: dense matrix primitives and result types
"""

from salary_engine.models.inference import predict_many, predict_one
from salary_engine.models.linear.train_linear import LinearModel, train_linear
from salary_engine.models.randomforest.train_randomforest import (
    ForestModel,
    aggregate_votes,
    train_forest,
)

__all__ = [
    "ForestModel",
    "LinearModel",
    "aggregate_votes",
    "predict_many",
    "predict_one",
    "train_forest",
    "train_linear",
]
