# Model tests conftest
"""Shared fixtures for model tests."""

import numpy as np
import pytest

from salary_engine.config import SalaryBounds
from salary_engine.features.encoder import EncodedDataset, encode, records_from_frame


@pytest.fixture
def wide_bounds() -> SalaryBounds:
    """Band wide enough that small synthetic targets are never clamped."""
    return SalaryBounds(lower=-1e9, upper=1e9)


@pytest.fixture
def experience_data() -> tuple[np.ndarray, np.ndarray]:
    """Noise-free salaries that depend on experience only."""
    rng = np.random.default_rng(7)
    experience = rng.uniform(0.0, 20.0, size=400)
    salary = 300000.0 + 30000.0 * experience
    return experience.reshape(-1, 1), salary


@pytest.fixture
def linear_data() -> tuple[np.ndarray, np.ndarray]:
    """Three Gaussian features with an exact linear salary."""
    rng = np.random.default_rng(11)
    X = rng.normal(size=(200, 3))
    y = 500000.0 + 20000.0 * X[:, 0] - 10000.0 * X[:, 1] + 5000.0 * X[:, 2]
    return X, y


@pytest.fixture
def encoded_dataset(salary_frame) -> EncodedDataset:
    return encode(records_from_frame(salary_frame))
