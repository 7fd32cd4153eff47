"""Tests for feature encoding and CSV ingestion."""

from __future__ import annotations

import logging

import numpy as np
import pandas as pd
import pytest

from salary_engine.features.encoder import (
    EncodedDataset,
    encode,
    encode_record,
    load_records,
    records_from_frame,
    resolve_columns,
)
from salary_engine.features.schema import FEATURE_NAMES, Record


@pytest.fixture
def it_engineer() -> Record:
    return Record.from_mapping(
        {
            "Age": 29,
            "Gender": "Male",
            "EducationLevel": "Bachelor",
            "YearsOfExperience": 5,
            "Department": "IT",
            "Location": "Pune",
            "EmploymentType": "Contract",
            "PerformanceRating": 4,
            "Certifications": 1,
            "Salary": 900000,
        }
    )


class TestEncodeRecord:
    """Tests for encode_record."""

    def test_vector_layout(self, it_engineer):
        vector = encode_record(it_engineer)
        as_map = dict(zip(FEATURE_NAMES, vector))

        assert vector.shape == (28,)
        assert as_map["age"] == 29.0
        assert as_map["years_of_experience"] == 5.0
        assert as_map["dept_it"] == 1.0
        assert as_map["location_pune"] == 1.0
        assert as_map["employment_contract"] == 1.0
        assert as_map["employment_full_time"] == 0.0

    def test_one_indicator_per_known_block(self, it_engineer):
        """Each categorical block has exactly one active indicator."""
        as_map = dict(zip(FEATURE_NAMES, encode_record(it_engineer)))
        for prefix in ("education_", "gender_", "dept_", "location_", "employment_"):
            assert sum(v for k, v in as_map.items() if k.startswith(prefix)) == 1.0

    def test_unmapped_block_is_all_zero(self):
        record = Record.from_mapping({"Department": "Legal", "Salary": 1})
        as_map = dict(zip(FEATURE_NAMES, encode_record(record)))
        assert sum(v for k, v in as_map.items() if k.startswith("dept_")) == 0.0

    def test_custom_order(self, it_engineer):
        vector = encode_record(it_engineer, ["dept_it", "age"])
        np.testing.assert_array_equal(vector, [1.0, 29.0])

    def test_unknown_feature_name(self, it_engineer):
        with pytest.raises(ValueError, match="Unknown feature names"):
            encode_record(it_engineer, ["age", "shoe_size"])


class TestEncode:
    """Tests for encode and EncodedDataset."""

    def test_shapes_and_alignment(self, salary_frame):
        records = records_from_frame(salary_frame)
        dataset = encode(records)

        assert isinstance(dataset, EncodedDataset)
        assert dataset.features.shape == (len(records), 28)
        assert dataset.targets.shape == (len(records),)
        assert dataset.feature_names == FEATURE_NAMES
        assert dataset.schema_version == "v1"
        np.testing.assert_array_equal(dataset.targets, salary_frame["Salary"].to_numpy(dtype=float))
        np.testing.assert_array_equal(
            dataset.features[:, 1], salary_frame["YearsOfExperience"].to_numpy(dtype=float)
        )

    def test_unmapped_counts(self, caplog):
        records = [
            Record.from_mapping({"Department": "Legal", "Location": "Pune", "Salary": 1}),
            Record.from_mapping({"Department": "IT", "Location": "Tokyo", "Salary": 1}),
            Record.from_mapping({"Department": "Legal", "Location": "Pune", "Salary": 1}),
        ]
        with caplog.at_level(logging.INFO):
            dataset = encode(records)

        assert dataset.unmapped_counts == {"department": 2, "location": 1}
        assert "Unmapped categorical values" in caplog.text

    def test_empty(self):
        dataset = encode([])
        assert dataset.features.shape == (0, 28)
        assert dataset.n_samples == 0

    def test_resolve_columns_lists_unknown(self):
        with pytest.raises(ValueError, match="2"):
            resolve_columns(["age", "foo", "bar"])

    def test_head_and_split(self, salary_frame):
        dataset = encode(records_from_frame(salary_frame))
        head = dataset.head(10)
        train, holdout = dataset.split(0.75)

        assert head.n_samples == 10
        assert train.n_samples == 180
        assert holdout.n_samples == 60
        np.testing.assert_array_equal(holdout.targets, dataset.targets[180:])
        assert train.feature_names == dataset.feature_names

    def test_split_rejects_bad_fraction(self, salary_frame):
        dataset = encode(records_from_frame(salary_frame))
        with pytest.raises(ValueError):
            dataset.split(0.0)


class TestIngestion:
    """Tests for records_from_frame and load_records."""

    def test_invalid_rows_dropped(self):
        frame = pd.DataFrame(
            {
                "YearsOfExperience": [1, -2, 3, 4],
                "Salary": [500000, 600000, None, 0],
            }
        )

        assert len(records_from_frame(frame)) == 1
        assert len(records_from_frame(frame, drop_invalid=False)) == 4

    def test_load_multiple_files(self, tmp_path, salary_frame):
        first = tmp_path / "a.csv"
        second = tmp_path / "b.csv"
        salary_frame.iloc[:100].to_csv(first, index=False)
        salary_frame.iloc[100:].to_csv(second, index=False)

        records = load_records([first, second])
        assert len(records) == len(salary_frame)

    def test_broken_file_skipped(self, tmp_path, salary_csv, caplog):
        with caplog.at_level(logging.WARNING):
            records = load_records([tmp_path / "missing.csv", salary_csv])

        assert len(records) == 240
        assert "Failed to load" in caplog.text
