"""Tests for the employee record schema and the feature-name contract."""

from __future__ import annotations

import math

import numpy as np
import pytest

from salary_engine.features.schema import (
    FEATURE_NAMES,
    FEATURE_SCHEMA_VERSION,
    Department,
    EducationLevel,
    EmploymentType,
    Gender,
    Location,
    Record,
    prediction_record,
)


class TestCategoricalParse:
    """Tests for CategoricalAttribute.parse."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("Full-Time", EmploymentType.FULL_TIME),
            ("full time", EmploymentType.FULL_TIME),
            ("FULL_TIME", EmploymentType.FULL_TIME),
            ("contract", EmploymentType.CONTRACT),
        ],
    )
    def test_normalized_matching(self, raw, expected):
        """Case, spaces and punctuation are ignored."""
        assert EmploymentType.parse(raw) is expected

    def test_aliases(self):
        assert EducationLevel.parse("Masters") is EducationLevel.MASTER
        assert EducationLevel.parse("Doctorate") is EducationLevel.PHD
        assert Department.parse("Engineering") is Department.IT
        assert Department.parse("data science") is Department.DATA_SCIENCE

    def test_unknown_values_are_unmapped(self):
        assert Department.parse("Legal") is Department.UNMAPPED
        assert Location.parse("Tokyo") is Location.UNMAPPED
        assert Gender.parse(None) is Gender.UNMAPPED
        assert Gender.parse(float("nan")) is Gender.UNMAPPED

    def test_member_passthrough(self):
        assert Location.parse(Location.PUNE) is Location.PUNE

    def test_known_excludes_unmapped(self):
        assert Gender.UNMAPPED not in Gender.known()
        assert len(Department.known()) == 7


class TestFeatureNames:
    """Tests for the FEATURE_NAMES contract."""

    def test_layout(self):
        """Four numeric columns followed by the indicator blocks."""
        assert FEATURE_SCHEMA_VERSION == "v1"
        assert len(FEATURE_NAMES) == 28
        assert FEATURE_NAMES[:4] == ("age", "years_of_experience", "performance_rating", "certifications")
        assert FEATURE_NAMES[4] == "education_bachelor"
        assert "dept_data_science" in FEATURE_NAMES
        assert FEATURE_NAMES[-1] == "employment_contract"

    def test_unique(self):
        assert len(set(FEATURE_NAMES)) == len(FEATURE_NAMES)

    def test_no_unmapped_columns(self):
        assert not [name for name in FEATURE_NAMES if name.endswith("unmapped")]


class TestRecord:
    """Tests for Record.from_mapping and friends."""

    def test_csv_headers(self):
        record = Record.from_mapping(
            {
                "Age": 35,
                "Gender": "Female",
                "EducationLevel": "Master",
                "YearsOfExperience": 8,
                "Department": "IT",
                "Location": "Bangalore",
                "EmploymentType": "Full-Time",
                "PerformanceRating": 4,
                "Certifications": 3,
                "Salary": 1200000,
            }
        )

        assert record.age == 35.0
        assert record.years_of_experience == 8.0
        assert record.education_level is EducationLevel.MASTER
        assert record.department is Department.IT
        assert record.salary == 1200000.0
        assert record.unmapped_attributes() == ()

    def test_training_defaults(self):
        """Missing columns fall back to the training defaults."""
        record = Record.from_mapping({"Salary": 500000, "Department": np.nan})

        assert record.age == 30.0
        assert record.performance_rating == 3.0
        assert record.education_level is EducationLevel.BACHELOR
        assert record.gender is Gender.OTHER
        assert record.employment_type is EmploymentType.FULL_TIME
        assert record.department is Department.UNMAPPED
        assert set(record.unmapped_attributes()) == {"department", "location"}

    def test_unparseable_numbers_use_defaults(self):
        record = Record.from_mapping({"Age": "n/a", "YearsOfExperience": "", "Salary": "abc"})

        assert record.age == 30.0
        assert record.years_of_experience == 0.0
        assert math.isnan(record.salary)

    def test_unknown_keys_ignored(self):
        record = Record.from_mapping({"EmployeeID": 17, "Salary": 1})
        assert record.salary == 1.0

    @pytest.mark.parametrize(
        "salary, experience, valid",
        [
            (500000, 3, True),
            (0, 3, False),
            (-1, 3, False),
            (float("nan"), 3, False),
            (500000, -1, False),
        ],
    )
    def test_is_valid_training_example(self, salary, experience, valid):
        record = Record.from_mapping({"Salary": salary, "YearsOfExperience": experience})
        assert record.is_valid_training_example() is valid

    def test_prediction_record_defaults(self):
        record = prediction_record({"years_of_experience": 5, "department": "Sales"})

        assert record.years_of_experience == 5.0
        assert record.performance_rating == 4.0
        assert record.certifications == 2.0
        assert record.department is Department.SALES
        assert record.education_level is EducationLevel.UNMAPPED
        assert record.employment_type is EmploymentType.FULL_TIME
        assert math.isnan(record.salary)
