#!/usr/bin/env python
"""Consensus salary prediction from the linear and forest models.

Trains both models on the given employee CSV files and predicts one salary
for the attributes passed on the command line.

Usage:
    python -m salary_engine.predict_salary --data-file data/employees.csv \
        --experience 6 --department "Data Science" --education Master --location Pune
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Sequence, Tuple

from salary_engine.config import EngineConfig, load_engine_config
from salary_engine.features.encoder import encode, encode_record, load_records
from salary_engine.features.schema import (
    CATEGORICAL_ATTRIBUTES,
    FEATURE_NAMES,
    EducationLevel,
    Record,
    prediction_record,
)
from salary_engine.models.common.results import ModelResult
from salary_engine.models.inference import predict_one
from salary_engine.models.linear.train_linear import train_linear
from salary_engine.models.randomforest.train_randomforest import train_forest

CONFIDENCE_FLOOR = 25.0
CONFIDENCE_CEILING = 95.0

# feature name (or indicator prefix) -> reported group
_NUMERIC_GROUPS: Dict[str, str] = {
    "years_of_experience": "experience",
    "age": "age",
    "performance_rating": "performance",
    "certifications": "certifications",
}
_CATEGORICAL_GROUPS: Dict[str, str] = {
    "education": "education",
    "gender": "gender",
    "dept": "department",
    "location": "location",
    "employment": "employment_type",
}


def feature_group(feature_name: str) -> str:
    """Attribute group a feature column belongs to."""
    if feature_name in _NUMERIC_GROUPS:
        return _NUMERIC_GROUPS[feature_name]
    prefix = feature_name.split("_", 1)[0]
    return _CATEGORICAL_GROUPS.get(prefix, feature_name)


def group_importance(importance_maps: Iterable[Mapping[str, float]]) -> Dict[str, float]:
    """Average several importance maps and sum the result by attribute group."""

    maps = list(importance_maps)
    if not maps:
        return {}
    names = sorted({name for mapping in maps for name in mapping})
    grouped: Dict[str, float] = {}
    for name in names:
        mean_weight = sum(mapping.get(name, 0.0) for mapping in maps) / len(maps)
        group = feature_group(name)
        grouped[group] = grouped.get(group, 0.0) + mean_weight
    return dict(sorted(grouped.items(), key=lambda kv: kv[1], reverse=True))


def consensus_confidence(
    linear_prediction: float,
    forest_prediction: float,
    record: Record,
    linear_r2: float,
    forest_r2: float,
) -> float:
    """Confidence percentage in [25, 95].

    Weighted blend of model agreement (0.4), experience depth (0.2), how
    familiar the input categories are (0.2) and model fit (0.2).
    """
    average = (linear_prediction + forest_prediction) / 2.0
    agreement = 1.0 - abs(linear_prediction - forest_prediction) / max(average, 1.0)
    experience = min(1.0, max(0.0, record.years_of_experience / 15.0))

    domain = 0.5
    if record.department.name != "UNMAPPED":
        domain += 0.2
    if record.education_level in (EducationLevel.BACHELOR, EducationLevel.MASTER):
        domain += 0.2
    if 1.0 <= record.years_of_experience <= 25.0:
        domain += 0.1

    fit = (max(0.0, linear_r2) + max(0.0, forest_r2)) / 2.0
    total = agreement * 0.4 + experience * 0.2 + domain * 0.2 + fit * 0.2
    return float(min(CONFIDENCE_CEILING, max(CONFIDENCE_FLOOR, total * 100.0)))


@dataclass(frozen=True)
class SalaryPrediction:
    linear_prediction: float
    forest_prediction: float
    confidence: float
    feature_importance: Dict[str, float]
    unmapped_attributes: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "linear_regression_prediction": round(self.linear_prediction),
            "random_forest_prediction": round(self.forest_prediction),
            "confidence": round(self.confidence),
            "feature_importance": {k: round(v, 4) for k, v in self.feature_importance.items()},
            "unmapped_attributes": list(self.unmapped_attributes),
        }


def predict_salary(
    linear_result: ModelResult,
    forest_result: ModelResult,
    record: Record,
    feature_names: Sequence[str] = FEATURE_NAMES,
) -> SalaryPrediction:
    """Predict with both models and attach confidence and grouped importance.

    Raises
    ------
    ValueError
        If either result carries no trained model.
    """
    vector = encode_record(record, feature_names)
    linear_prediction = predict_one(linear_result, vector)
    forest_prediction = predict_one(forest_result, vector)
    return SalaryPrediction(
        linear_prediction=linear_prediction,
        forest_prediction=forest_prediction,
        confidence=consensus_confidence(
            linear_prediction,
            forest_prediction,
            record,
            linear_result.metrics.r2_score,
            forest_result.accuracy,
        ),
        feature_importance=group_importance(
            [linear_result.feature_importance, forest_result.feature_importance]
        ),
        unmapped_attributes=record.unmapped_attributes(),
    )


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    ap = argparse.ArgumentParser(description="Predict one salary with both trained models.")
    ap.add_argument("--data-file", nargs="+", required=True, help="Employee CSV file(s) to train on")
    ap.add_argument("--config-path", type=str, default=None, help="Path to salary_engine.yaml")
    ap.add_argument("--n-trees", type=int, default=None)
    ap.add_argument("--random-state", type=int, default=None)
    ap.add_argument("--log-level", type=str, default="WARNING")
    # Prediction input
    ap.add_argument("--experience", type=float, required=True)
    ap.add_argument("--department", type=str, default=None)
    ap.add_argument("--education", type=str, default=None)
    ap.add_argument("--location", type=str, default=None)
    ap.add_argument("--employment-type", type=str, default=None)
    ap.add_argument("--gender", type=str, default=None)
    ap.add_argument("--age", type=float, default=None)
    ap.add_argument("--performance-rating", type=float, default=None)
    ap.add_argument("--certifications", type=float, default=None)
    return ap.parse_args(argv)


def _input_mapping(args: argparse.Namespace) -> Dict[str, Any]:
    raw = {
        "years_of_experience": args.experience,
        "department": args.department,
        "education_level": args.education,
        "location": args.location,
        "employment_type": args.employment_type,
        "gender": args.gender,
        "age": args.age,
        "performance_rating": args.performance_rating,
        "certifications": args.certifications,
    }
    return {key: value for key, value in raw.items() if value is not None}


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    config = load_engine_config(args.config_path) if args.config_path else EngineConfig()

    records = load_records(args.data_file)
    if not records:
        print("[error] no valid training records found", file=sys.stderr)
        return 1

    dataset = encode(records)
    print(f"[info] training on {dataset.n_samples} records", file=sys.stderr)
    linear_result = train_linear(
        dataset.features, dataset.targets, dataset.feature_names,
        config=config.linear, bounds=config.bounds,
    )
    forest_result = train_forest(
        dataset.features, dataset.targets, args.n_trees, dataset.feature_names,
        config=config.forest, tree_config=config.tree, bounds=config.bounds,
        random_state=args.random_state,
    )

    record = prediction_record(_input_mapping(args))
    unknown = [
        name for name in record.unmapped_attributes()
        if getattr(args, {"education_level": "education"}.get(name, name), None) is not None
    ]
    for name in unknown:
        known = ", ".join(m.value for m in CATEGORICAL_ATTRIBUTES[name][1].known())
        print(f"[warn] unrecognized {name}; expected one of: {known}", file=sys.stderr)

    prediction = predict_salary(linear_result, forest_result, record, dataset.feature_names)
    print(json.dumps(prediction.to_dict(), indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
