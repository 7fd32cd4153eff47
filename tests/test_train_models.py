"""Tests for the training CLI."""

from __future__ import annotations

import json

import pandas as pd
import pytest

from salary_engine.features.schema import FEATURE_NAMES
from salary_engine.train_models import main, parse_args


class TestParseArgs:
    """Tests for parse_args."""

    def test_defaults(self):
        args = parse_args(["--data-file", "a.csv", "b.csv"])

        assert args.data_file == ["a.csv", "b.csv"]
        assert args.holdout_fraction == 0.0
        assert args.n_trees is None
        assert args.out_dir is None


class TestMain:
    """End-to-end runs of main."""

    def test_writes_artifacts(self, tmp_path, salary_csv, capsys):
        out_dir = tmp_path / "artifacts"
        code = main(
            [
                "--data-file", str(salary_csv),
                "--holdout-fraction", "0.25",
                "--n-trees", "8",
                "--random-state", "0",
                "--out-dir", str(out_dir),
            ]
        )

        assert code == 0
        report = json.loads((out_dir / "metrics.json").read_text())
        assert report["n_train"] == 180
        assert report["n_holdout"] == 60
        assert report["feature_schema_version"] == "v1"
        assert report["random_forest"]["metadata"]["n_trees"] == 8
        assert report["linear"]["holdout"]["n_samples"] == 60
        assert report["linear"]["holdout"]["r2_score"] > 0.5

        importance = pd.read_csv(out_dir / "feature_importance.csv")
        assert list(importance.columns) == ["feature", "linear", "random_forest"]
        assert set(importance["feature"]) == set(FEATURE_NAMES)
        assert importance["random_forest"].sum() == pytest.approx(1.0)

        out = capsys.readouterr().out
        assert "[linear/holdout]" in out

    def test_max_records(self, tmp_path, salary_csv):
        out_dir = tmp_path / "small"
        code = main(
            [
                "--data-file", str(salary_csv),
                "--max-records", "100",
                "--n-trees", "5",
                "--random-state", "1",
                "--out-dir", str(out_dir),
            ]
        )

        assert code == 0
        report = json.loads((out_dir / "metrics.json").read_text())
        assert report["n_train"] == 100
        assert report["n_holdout"] == 0

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            main(["--data-file", str(tmp_path / "nope.csv")])

    def test_no_valid_records(self, tmp_path):
        path = tmp_path / "bad.csv"
        pd.DataFrame({"YearsOfExperience": [1, 2], "Salary": [0, -5]}).to_csv(path, index=False)

        assert main(["--data-file", str(path)]) == 1

    def test_bad_holdout_fraction(self, salary_csv):
        with pytest.raises(ValueError):
            main(["--data-file", str(salary_csv), "--holdout-fraction", "1.0"])
