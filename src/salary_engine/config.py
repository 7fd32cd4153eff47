"""Engine configuration.

All tunable constants of the salary engine live here as frozen dataclasses.
The values that were tuned empirically (modified-Z threshold, leaf
regularization, number of bootstrap strata) are exposed as named fields so
they can be overridden from ``configs/salary_engine.yaml`` without touching
the algorithms.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping

import yaml


def _check_positive(name: str, value: float) -> None:
    if value <= 0:
        raise ValueError(f"{name} must be > 0 (got {value!r})")


def _check_fraction(name: str, value: float) -> None:
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{name} must be within [0, 1] (got {value!r})")


def _coerce_section(cls: type, mapping: Mapping[str, Any] | None) -> dict[str, Any]:
    """Pick the keys of ``mapping`` that are fields of ``cls`` and cast them."""

    if not mapping:
        return {}
    known = {f.name: f for f in fields(cls)}
    unknown = sorted(set(mapping).difference(known))
    if unknown:
        raise ValueError(f"Unknown {cls.__name__} keys: {', '.join(unknown)}")

    values: dict[str, Any] = {}
    for key, raw in mapping.items():
        default = getattr(cls, key, None)
        if raw is None or isinstance(default, bool) or default is None:
            values[key] = raw
        elif isinstance(default, int):
            values[key] = int(raw)
        elif isinstance(default, float):
            values[key] = float(raw)
        else:
            values[key] = raw
    return values


@dataclass(frozen=True)
class SalaryBounds:
    """Plausible salary band every prediction is clamped into."""

    lower: float = 25_000.0
    upper: float = 1_000_000.0

    def __post_init__(self) -> None:
        if not self.lower < self.upper:
            raise ValueError(f"lower bound {self.lower} must be below upper bound {self.upper}")

    def clip(self, value: float) -> float:
        return float(min(self.upper, max(self.lower, value)))

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any] | None) -> "SalaryBounds":
        return cls(**_coerce_section(cls, mapping))


@dataclass(frozen=True)
class LinearConfig:
    """Settings of the normal-equation trainer.

    ``ridge_penalty`` is multiplied by the number of rows and added to the
    diagonal of the normalized Gram matrix (bias excluded). Set it to 0 for
    the plain normal equation.
    """

    ridge_penalty: float = 1e-6

    def __post_init__(self) -> None:
        if self.ridge_penalty < 0:
            raise ValueError("ridge_penalty must be >= 0")

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any] | None) -> "LinearConfig":
        return cls(**_coerce_section(cls, mapping))


@dataclass(frozen=True)
class TreeConfig:
    """Growth, regularization and confidence settings of one regression tree.

    Parameters
    ----------
    max_depth : int
        Nodes at this depth always become leaves.
    min_samples_leaf : int
        Minimum number of rows on each side of a split.
    min_samples_split : int
        Nodes with fewer rows are not split.
    regularization : float
        Shared lambda: mean weight in the leaf blend, node-balance penalty and
        scale of the depth-scaled variance penalty.
    max_thresholds : int
        Upper bound on candidate thresholds evaluated per feature.
    min_gain : float
        Absolute floor on the split score (fractional variance reduction).
    depth_gain_step : float
        The split score must also reach ``depth * depth_gain_step``.
    variance_penalty : float
        A node stops when its variance falls below
        ``regularization * variance_penalty * depth * root_variance``.
    importance_decay : float
        Geometric down-weighting of importance credit per depth level.
    confidence_decay : float
        Multiplicative confidence loss per internal hop.
    confidence_saturation : float
        Leaf confidence saturates at ``confidence_saturation * min_samples_leaf`` rows.
    homogeneity_tol : float
        Relative target spread under which a node counts as homogeneous.
    """

    max_depth: int = 10
    min_samples_leaf: int = 2
    min_samples_split: int = 5
    regularization: float = 0.1
    max_thresholds: int = 25
    min_gain: float = 0.005
    depth_gain_step: float = 0.002
    variance_penalty: float = 0.005
    importance_decay: float = 0.9
    confidence_decay: float = 0.98
    confidence_saturation: float = 3.0
    homogeneity_tol: float = 1e-9

    def __post_init__(self) -> None:
        _check_positive("max_depth", self.max_depth)
        _check_positive("min_samples_leaf", self.min_samples_leaf)
        _check_positive("min_samples_split", self.min_samples_split)
        _check_positive("max_thresholds", self.max_thresholds)
        _check_fraction("regularization", self.regularization)
        _check_fraction("importance_decay", self.importance_decay)
        _check_fraction("confidence_decay", self.confidence_decay)
        _check_positive("confidence_saturation", self.confidence_saturation)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any] | None) -> "TreeConfig":
        return cls(**_coerce_section(cls, mapping))


@dataclass(frozen=True)
class ForestConfig:
    """Ensemble-level settings of the random forest trainer."""

    n_trees: int = 100
    min_trees: int = 50
    tree_scale: float = 1.2
    feature_fraction_scale: float = 1.1
    min_feature_fraction: float = 0.4
    max_feature_fraction: float = 0.7
    min_depth: int = 10
    max_depth: int = 20
    depth_offset: int = 3
    n_strata: int = 6
    mad_threshold: float = 3.0
    min_votes_for_filter: int = 8
    min_vote_confidence: float = 0.1
    clamp_sigma: float = 3.5
    correlation_weight: float = 0.2
    max_importance_weight: float = 0.7
    rank_decay: float = 0.3
    late_tree_boost: float = 0.5
    n_jobs: int = 1
    random_state: int | None = None

    def __post_init__(self) -> None:
        _check_positive("n_trees", self.n_trees)
        _check_positive("min_trees", self.min_trees)
        _check_positive("n_strata", self.n_strata)
        _check_positive("mad_threshold", self.mad_threshold)
        _check_positive("clamp_sigma", self.clamp_sigma)
        _check_fraction("min_feature_fraction", self.min_feature_fraction)
        _check_fraction("max_feature_fraction", self.max_feature_fraction)
        if self.min_feature_fraction > self.max_feature_fraction:
            raise ValueError("min_feature_fraction must not exceed max_feature_fraction")
        if self.min_depth > self.max_depth:
            raise ValueError("min_depth must not exceed max_depth")
        if self.correlation_weight + self.max_importance_weight > 1.0:
            raise ValueError("correlation_weight + max_importance_weight must be <= 1")
        if self.n_jobs == 0:
            raise ValueError("n_jobs must be non-zero")

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any] | None) -> "ForestConfig":
        values = _coerce_section(cls, mapping)
        if values.get("random_state") is not None:
            values["random_state"] = int(values["random_state"])
        return cls(**values)


@dataclass(frozen=True)
class EngineConfig:
    """Bundle of every engine section."""

    bounds: SalaryBounds = field(default_factory=SalaryBounds)
    linear: LinearConfig = field(default_factory=LinearConfig)
    tree: TreeConfig = field(default_factory=TreeConfig)
    forest: ForestConfig = field(default_factory=ForestConfig)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any] | None) -> "EngineConfig":
        mapping = mapping or {}
        unknown = sorted(set(mapping).difference({"bounds", "linear", "tree", "forest"}))
        if unknown:
            raise ValueError(f"Unknown engine config sections: {', '.join(unknown)}")
        return cls(
            bounds=SalaryBounds.from_mapping(mapping.get("bounds")),
            linear=LinearConfig.from_mapping(mapping.get("linear")),
            tree=TreeConfig.from_mapping(mapping.get("tree")),
            forest=ForestConfig.from_mapping(mapping.get("forest")),
        )


def load_engine_config(config_path: str | Path) -> EngineConfig:
    """Read the ``salary_engine`` section of a YAML file into :class:`EngineConfig`."""

    path = Path(config_path).resolve()
    with path.open("r", encoding="utf-8") as fh:
        full_cfg: Mapping[str, Any] = yaml.safe_load(fh) or {}

    try:
        section = full_cfg["salary_engine"]
    except KeyError as exc:
        raise KeyError(f"'salary_engine' section is required in {path.name}") from exc

    return EngineConfig.from_mapping(section)
