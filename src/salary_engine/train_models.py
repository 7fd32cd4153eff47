#!/usr/bin/env python
"""Train the linear and random forest salary models on employee CSV files.

Outputs (when ``--out-dir`` is given):
- ``metrics.json``: training and hold-out metrics of both models plus run metadata
- ``feature_importance.csv``: per-feature importance of both models

Usage:
    python -m salary_engine.train_models --data-file data/employees.csv \
        --holdout-fraction 0.2 --random-state 42 --out-dir artifacts/salary
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Sequence

import pandas as pd

from salary_engine.config import EngineConfig, load_engine_config
from salary_engine.features.encoder import EncodedDataset, encode, load_records
from salary_engine.features.schema import FEATURE_SCHEMA_VERSION
from salary_engine.metrics.regression import RegressionMetrics, regression_metrics
from salary_engine.models.common.results import ModelResult
from salary_engine.models.inference import predict_many
from salary_engine.models.linear.train_linear import train_linear
from salary_engine.models.randomforest.train_randomforest import train_forest


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    ap = argparse.ArgumentParser(description="Train the linear and random forest salary models.")
    ap.add_argument(
        "--data-file",
        nargs="+",
        required=True,
        help="One or more employee CSV files",
    )
    ap.add_argument(
        "--config-path",
        type=str,
        default=None,
        help="Path to salary_engine.yaml (dataclass defaults when omitted)",
    )
    ap.add_argument(
        "--max-records",
        type=int,
        default=None,
        help="Use only the first N encoded records",
    )
    ap.add_argument(
        "--holdout-fraction",
        type=float,
        default=0.0,
        help="Trailing fraction of records kept out of training for evaluation",
    )
    ap.add_argument("--n-trees", type=int, default=None, help="Override the requested tree count")
    ap.add_argument("--n-jobs", type=int, default=None, help="Override forest n_jobs")
    ap.add_argument("--random-state", type=int, default=None, help="Override forest random_state")
    ap.add_argument(
        "--out-dir",
        type=str,
        default=None,
        help="Directory for metrics.json and feature_importance.csv",
    )
    ap.add_argument("--log-level", type=str, default="INFO")
    return ap.parse_args(argv)


def _evaluate(result: ModelResult, holdout: EncodedDataset) -> RegressionMetrics:
    if result.is_empty or holdout.n_samples == 0:
        return RegressionMetrics.empty()
    return regression_metrics(holdout.targets, predict_many(result, holdout.features))


def importance_frame(linear_result: ModelResult, forest_result: ModelResult) -> pd.DataFrame:
    """Side-by-side importance table sorted by the forest column."""
    frame = pd.DataFrame(
        {
            "feature": list(forest_result.feature_importance),
            "linear": [linear_result.feature_importance.get(name, 0.0) for name in forest_result.feature_importance],
            "random_forest": list(forest_result.feature_importance.values()),
        }
    )
    return frame.sort_values("random_forest", ascending=False).reset_index(drop=True)


def _print_metrics(label: str, metrics: RegressionMetrics) -> None:
    print(
        f"[{label}] R2={metrics.r2_score:.4f} MAE={metrics.mean_absolute_error:,.0f} "
        f"RMSE={metrics.root_mean_square_error:,.0f} n={metrics.n_samples}"
    )


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    missing = [path for path in args.data_file if not Path(path).exists()]
    if missing:
        raise FileNotFoundError(f"Data file(s) not found: {', '.join(missing)}")
    if not 0.0 <= args.holdout_fraction < 1.0:
        raise ValueError(f"--holdout-fraction must be within [0, 1) (got {args.holdout_fraction})")

    config = load_engine_config(args.config_path) if args.config_path else EngineConfig()
    forest_config = config.forest
    if args.n_jobs is not None:
        forest_config = replace(forest_config, n_jobs=args.n_jobs)

    records = load_records(args.data_file)
    print(f"[info] loaded {len(records)} valid records from {len(args.data_file)} file(s)")
    if not records:
        print("[error] nothing to train on", file=sys.stderr)
        return 1

    dataset = encode(records)
    if args.max_records is not None:
        dataset = dataset.head(args.max_records)
    if dataset.unmapped_counts:
        print(f"[warn] unmapped categorical values: {dataset.unmapped_counts}")

    train, holdout = dataset.split(1.0 - args.holdout_fraction)
    print(f"[info] train rows: {train.n_samples}, hold-out rows: {holdout.n_samples}")

    print("[info] training linear regression...")
    linear_result = train_linear(
        train.features, train.targets, train.feature_names,
        config=config.linear, bounds=config.bounds,
    )
    print("[info] training random forest...")
    forest_result = train_forest(
        train.features, train.targets, args.n_trees, train.feature_names,
        config=forest_config, tree_config=config.tree, bounds=config.bounds,
        random_state=args.random_state,
    )

    linear_holdout = _evaluate(linear_result, holdout)
    forest_holdout = _evaluate(forest_result, holdout)

    print(f"\n{'=' * 60}")
    _print_metrics("linear/train", linear_result.metrics)
    _print_metrics("forest/train", forest_result.metrics)
    if forest_result.metrics.oob_score is not None:
        print(f"[forest/oob] R2={forest_result.metrics.oob_score:.4f}")
    if holdout.n_samples:
        _print_metrics("linear/holdout", linear_holdout)
        _print_metrics("forest/holdout", forest_holdout)
    print(f"{'=' * 60}\n")

    if args.out_dir:
        out_dir = Path(args.out_dir)
        out_dir.mkdir(parents=True, exist_ok=True)

        report: Dict[str, Any] = {
            "created_at": datetime.now(timezone.utc).isoformat(),
            "feature_schema_version": FEATURE_SCHEMA_VERSION,
            "data_files": [str(Path(p)) for p in args.data_file],
            "n_train": train.n_samples,
            "n_holdout": holdout.n_samples,
            "linear": {**linear_result.to_dict(), "holdout": linear_holdout.to_dict()},
            "random_forest": {**forest_result.to_dict(), "holdout": forest_holdout.to_dict()},
        }
        metrics_path = out_dir / "metrics.json"
        with metrics_path.open("w", encoding="utf-8") as fh:
            json.dump(report, fh, indent=2, default=str)
        print(f"[info] Saved metrics to {metrics_path}")

        importance_path = out_dir / "feature_importance.csv"
        importance_frame(linear_result, forest_result).to_csv(importance_path, index=False)
        print(f"[info] Saved feature importance to {importance_path}")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
