"""Common utilities shared by the linear and forest trainers."""

from salary_engine.models.common.matrix import (
    invert,
    multiply,
    transpose,
)
from salary_engine.models.common.results import (
    ModelResult,
    empty_result,
    normalize_importance,
    uniform_importance,
)

__all__ = [
    # matrix
    "invert",
    "multiply",
    "transpose",
    # results
    "ModelResult",
    "empty_result",
    "normalize_importance",
    "uniform_importance",
]
