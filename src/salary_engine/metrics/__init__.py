"""Metrics package for model evaluation.

This package provides the regression metrics shared by both trainers:
- R², MAE and RMSE on aligned (actual, predicted) pairs
- OOB score, prediction variance and feature stability for the forest
"""

from salary_engine.metrics.regression import (
    RegressionMetrics,
    enhanced_metrics,
    feature_stability,
    finite_pairs,
    oob_estimates,
    oob_score,
    prediction_variance,
    r2_score,
    regression_metrics,
)

__all__ = [
    "RegressionMetrics",
    "enhanced_metrics",
    "feature_stability",
    "finite_pairs",
    "oob_estimates",
    "oob_score",
    "prediction_variance",
    "r2_score",
    "regression_metrics",
]
