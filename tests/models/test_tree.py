"""Tests for the regularized regression tree."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from salary_engine.config import SalaryBounds, TreeConfig
from salary_engine.models.randomforest.tree import (
    LEAF,
    build_tree,
    candidate_thresholds,
    leaf_confidence,
    leaf_value,
)


@pytest.fixture
def step_data() -> tuple[np.ndarray, np.ndarray]:
    """One feature; targets jump from 10 to 20 at x = 20."""
    X = np.arange(40, dtype=float).reshape(-1, 1)
    y = np.where(X[:, 0] < 20, 10.0, 20.0)
    return X, y


class TestLeafHelpers:
    """Tests for leaf_value, leaf_confidence and candidate_thresholds."""

    def test_leaf_value_blends_median_and_mean(self, wide_bounds):
        """0.9 * median + 0.1 * mean for the default regularization."""
        value = leaf_value(np.array([1.0, 2.0, 3.0, 10.0]), 0.1, wide_bounds)
        assert value == pytest.approx(0.9 * 2.5 + 0.1 * 4.0)

    def test_leaf_value_is_clamped(self):
        assert leaf_value(np.array([10.0, 20.0]), 0.1, SalaryBounds()) == SalaryBounds().lower

    def test_leaf_confidence_saturates(self):
        config = TreeConfig()
        assert leaf_confidence(1000, 0, config) == pytest.approx(1.0)
        assert leaf_confidence(1000, 2, config) == pytest.approx(0.98 ** 2)

    def test_leaf_confidence_grows_with_samples(self):
        config = TreeConfig(min_samples_leaf=5)
        assert leaf_confidence(1, 0, config) < leaf_confidence(4, 0, config) < 1.0

    def test_thresholds_are_midpoints(self):
        """Midpoints between consecutive distinct values."""
        out = candidate_thresholds(np.array([1.0, 1.0, 2.0, 3.0]), 25)
        np.testing.assert_allclose(out, [1.5, 2.5])

    def test_thresholds_capped(self):
        """At most max_thresholds candidates, spread over the whole range."""
        out = candidate_thresholds(np.arange(100, dtype=float), 25)
        assert out.shape[0] == 25
        assert out[0] == pytest.approx(0.5)
        assert out[-1] == pytest.approx(98.5)

    def test_constant_feature_has_no_thresholds(self):
        assert candidate_thresholds(np.ones(10), 25).size == 0


class TestBuildTree:
    """Tests for build_tree."""

    def test_step_function(self, step_data, wide_bounds):
        """A single clean split should separate the two levels."""
        X, y = step_data
        tree = build_tree(X, y, bounds=wide_bounds)

        assert tree.n_nodes == 3
        assert tree.n_leaves == 2
        assert tree.feature[0] == 0
        assert tree.threshold[0] == pytest.approx(19.5)
        assert tree.predict_one([5.0]) == (pytest.approx(10.0), pytest.approx(0.98))
        assert tree.predict_one([30.0])[0] == pytest.approx(20.0)

    def test_importance_goes_to_informative_feature(self, wide_bounds):
        rng = np.random.default_rng(1)
        signal = rng.uniform(0.0, 10.0, size=200)
        noise = rng.uniform(0.0, 10.0, size=200)
        X = np.column_stack([signal, noise])
        y = 100.0 * signal

        tree = build_tree(X, y, bounds=wide_bounds)

        assert tree.importance.sum() == pytest.approx(1.0)
        assert tree.importance[0] > tree.importance[1]

    def test_homogeneous_targets_make_a_single_leaf(self, wide_bounds):
        X = np.arange(20, dtype=float).reshape(-1, 1)
        tree = build_tree(X, np.full(20, 7.0), bounds=wide_bounds)

        assert tree.n_nodes == 1
        assert tree.feature[0] == LEAF
        assert tree.value[0] == pytest.approx(7.0)
        np.testing.assert_array_equal(tree.importance, [0.0])

    def test_max_depth(self, wide_bounds):
        X = np.arange(200, dtype=float).reshape(-1, 1)
        y = X[:, 0] ** 2
        tree = build_tree(X, y, config=TreeConfig(max_depth=2), bounds=wide_bounds)

        assert tree.max_depth_reached <= 2
        assert tree.n_leaves <= 4

    def test_min_samples_leaf(self, wide_bounds):
        """Every leaf should keep at least min_samples_leaf rows."""
        rng = np.random.default_rng(5)
        X = rng.normal(size=(300, 3))
        y = X[:, 0] * 10.0 + rng.normal(size=300)
        config = TreeConfig(min_samples_leaf=5, min_samples_split=10)

        tree = build_tree(X, y, config=config, bounds=wide_bounds)
        leaves = tree.feature == LEAF

        assert tree.n_samples[leaves].min() >= 5
        assert tree.n_samples[leaves].sum() == 300

    def test_feature_indices_restrict_splits(self, wide_bounds):
        rng = np.random.default_rng(2)
        X = rng.uniform(size=(100, 2))
        y = 50.0 * X[:, 0] + 5.0 * X[:, 1]

        tree = build_tree(X, y, feature_indices=[1], bounds=wide_bounds)

        assert set(np.unique(tree.feature)) <= {LEAF, 1}
        assert tree.importance[0] == 0.0
        np.testing.assert_array_equal(tree.feature_indices, [1])

    def test_leaf_values_within_bounds(self, step_data):
        """Leaves are clamped into the salary band."""
        X, y = step_data
        tree = build_tree(X, y * 1e5)
        leaves = tree.feature == LEAF

        assert np.all(tree.value[leaves] >= SalaryBounds().lower)
        assert np.all(tree.value[leaves] <= SalaryBounds().upper)

    def test_children_are_acyclic(self, wide_bounds):
        """Children always have a larger index than their parent."""
        rng = np.random.default_rng(4)
        X = rng.normal(size=(150, 2))
        tree = build_tree(X, X[:, 0] + X[:, 1], bounds=wide_bounds)
        internal = np.nonzero(tree.feature != LEAF)[0]

        assert np.all(tree.left[internal] > internal)
        assert np.all(tree.right[internal] > internal)

    def test_predict_many_matches_predict_one(self, step_data, wide_bounds):
        X, y = step_data
        tree = build_tree(X, y, bounds=wide_bounds)
        values, confidences = tree.predict_many(X)

        assert values.shape == (40,)
        assert confidences.shape == (40,)
        assert values[3] == tree.predict_one(X[3])[0]

    def test_width_mismatch(self, step_data, wide_bounds):
        X, y = step_data
        tree = build_tree(X, y, bounds=wide_bounds)
        with pytest.raises(ValueError, match="expected 1 features"):
            tree.predict_many(np.ones((2, 3)))

    def test_to_frame(self, step_data, wide_bounds):
        X, y = step_data
        frame = build_tree(X, y, bounds=wide_bounds).to_frame()

        assert isinstance(frame, pd.DataFrame)
        assert len(frame) == 3
        assert {"feature", "threshold", "value", "confidence"} <= set(frame.columns)

    def test_invalid_inputs(self):
        """No rows, misaligned inputs and bad indices should raise."""
        with pytest.raises(ValueError):
            build_tree(np.empty((0, 2)), np.empty(0))
        with pytest.raises(ValueError):
            build_tree(np.ones((3, 2)), np.ones(2))
        with pytest.raises(ValueError, match="out of range"):
            build_tree(np.ones((3, 2)), np.ones(3), feature_indices=[2])
