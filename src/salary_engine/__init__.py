"""Salary regression engine.

The engine exposes four operations:
- :func:`encode` turns employee records into a feature matrix and targets
- :func:`train_linear` fits the normal-equation linear regression
- :func:`train_forest` fits the OOB-scored random forest
- :func:`predict_one` predicts one salary with either trained model
"""

from salary_engine.config import EngineConfig, load_engine_config
from salary_engine.features.encoder import EncodedDataset, encode
from salary_engine.features.schema import FEATURE_NAMES, Record
from salary_engine.models.common.results import ModelResult
from salary_engine.models.inference import predict_many, predict_one
from salary_engine.models.linear.train_linear import train_linear
from salary_engine.models.randomforest.train_randomforest import train_forest

__version__ = "0.1.0"

__all__ = [
    "EncodedDataset",
    "EngineConfig",
    "FEATURE_NAMES",
    "ModelResult",
    "Record",
    "encode",
    "load_engine_config",
    "predict_many",
    "predict_one",
    "train_forest",
    "train_linear",
]
