"""Pytest 設定: テスト実行時に src を import パスへ追加し、共通フィクスチャを定義します。

パッケージを editable install していない環境でも
`from salary_engine ...` でインポートできるようにするための最小設定です。
"""

import os
import sys

import numpy as np
import pandas as pd
import pytest


def _add_src_to_path() -> None:
    root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    src = os.path.join(root, "src")
    if src not in sys.path:
        sys.path.insert(0, src)


_add_src_to_path()


DEPARTMENT_BONUS = {
    "IT": 60000,
    "Data Science": 80000,
    "Finance": 40000,
    "Sales": 10000,
    "HR": 0,
}
EDUCATION_BONUS = {"High School": 0, "Bachelor": 20000, "Master": 40000, "PhD": 60000}


@pytest.fixture
def salary_frame() -> pd.DataFrame:
    """Synthetic employee table with the CSV headers of the upload format."""
    rng = np.random.default_rng(42)
    n_samples = 240

    departments = rng.choice(list(DEPARTMENT_BONUS), size=n_samples)
    education = rng.choice(list(EDUCATION_BONUS), size=n_samples)
    experience = rng.integers(0, 16, size=n_samples)
    salary = (
        300000
        + 35000 * experience
        + np.array([DEPARTMENT_BONUS[d] for d in departments])
        + np.array([EDUCATION_BONUS[e] for e in education])
        + rng.normal(0.0, 15000.0, size=n_samples)
    )

    return pd.DataFrame(
        {
            "Age": 22 + experience + rng.integers(0, 5, size=n_samples),
            "Gender": rng.choice(["Male", "Female", "Other"], size=n_samples),
            "EducationLevel": education,
            "YearsOfExperience": experience,
            "Department": departments,
            "Location": rng.choice(["Bangalore", "Pune", "Remote", "Delhi"], size=n_samples),
            "EmploymentType": rng.choice(["Full-Time", "Contract"], size=n_samples),
            "PerformanceRating": rng.integers(1, 6, size=n_samples),
            "Certifications": rng.integers(0, 5, size=n_samples),
            "Salary": salary.round(),
        }
    )


@pytest.fixture
def salary_csv(tmp_path, salary_frame: pd.DataFrame):
    """``salary_frame`` written to a CSV file."""
    path = tmp_path / "employees.csv"
    salary_frame.to_csv(path, index=False)
    return path
