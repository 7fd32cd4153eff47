"""Feature encoding: records -> (feature matrix, target vector).

Numeric attributes are copied verbatim. Each categorical attribute expands
into one indicator column per known category; ``UNMAPPED`` values leave their
block at zero and are counted in :attr:`EncodedDataset.unmapped_counts`.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Sequence, Tuple

import numpy as np
import pandas as pd

from salary_engine.features.schema import (
    CATEGORICAL_ATTRIBUTES,
    FEATURE_NAMES,
    FEATURE_SCHEMA_VERSION,
    NUMERIC_ATTRIBUTES,
    Record,
)

logger = logging.getLogger(__name__)

_ColumnFn = Callable[[Record], float]


def _numeric_column(attribute: str) -> _ColumnFn:
    return lambda record: float(getattr(record, attribute))


def _indicator_column(attribute: str, member: object) -> _ColumnFn:
    return lambda record: 1.0 if getattr(record, attribute) is member else 0.0


def _build_column_registry() -> Dict[str, _ColumnFn]:
    registry: Dict[str, _ColumnFn] = {name: _numeric_column(name) for name in NUMERIC_ATTRIBUTES}
    for attribute, (prefix, enum_cls) in CATEGORICAL_ATTRIBUTES.items():
        for member in enum_cls.known():
            registry[f"{prefix}_{member.slug}"] = _indicator_column(attribute, member)
    return registry


_COLUMNS: Dict[str, _ColumnFn] = _build_column_registry()


@dataclass(frozen=True)
class EncodedDataset:
    """Index-aligned training set.

    ``features[i]`` belongs to ``targets[i]`` and every row has
    ``len(feature_names)`` columns.
    """

    features: np.ndarray
    targets: np.ndarray
    feature_names: Tuple[str, ...]
    schema_version: str = FEATURE_SCHEMA_VERSION
    unmapped_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def n_samples(self) -> int:
        return int(self.features.shape[0])

    @property
    def n_features(self) -> int:
        return len(self.feature_names)

    def head(self, n_rows: int) -> "EncodedDataset":
        """First ``n_rows`` rows; the feature schema is unchanged."""
        return EncodedDataset(
            features=self.features[:n_rows],
            targets=self.targets[:n_rows],
            feature_names=self.feature_names,
            schema_version=self.schema_version,
            unmapped_counts=dict(self.unmapped_counts),
        )

    def split(self, train_fraction: float) -> Tuple["EncodedDataset", "EncodedDataset"]:
        """Split into leading (train) and trailing (hold-out) parts."""
        if not 0.0 < train_fraction <= 1.0:
            raise ValueError(f"train_fraction must be within (0, 1] (got {train_fraction})")
        cut = int(np.floor(self.n_samples * train_fraction))
        head = self.head(cut)
        tail = EncodedDataset(
            features=self.features[cut:],
            targets=self.targets[cut:],
            feature_names=self.feature_names,
            schema_version=self.schema_version,
            unmapped_counts=dict(self.unmapped_counts),
        )
        return head, tail


def resolve_columns(feature_names: Sequence[str]) -> List[_ColumnFn]:
    """Look up the column extractors for ``feature_names``.

    Raises
    ------
    ValueError
        If a name is not part of the feature schema.
    """
    unknown = [name for name in feature_names if name not in _COLUMNS]
    if unknown:
        preview = ", ".join(unknown[:5])
        raise ValueError(f"Unknown feature names ({len(unknown)}): {preview}")
    return [_COLUMNS[name] for name in feature_names]


def encode_record(record: Record, feature_names: Sequence[str] = FEATURE_NAMES) -> np.ndarray:
    """Encode a single record to a vector ordered like ``feature_names``."""

    columns = resolve_columns(feature_names)
    return np.array([column(record) for column in columns], dtype=float)


def encode(records: Iterable[Record], feature_names: Sequence[str] = FEATURE_NAMES) -> EncodedDataset:
    """Encode records into an :class:`EncodedDataset`.

    Parameters
    ----------
    records : Iterable[Record]
        Training examples, in order.
    feature_names : Sequence[str], optional
        Column order of the output matrix. Defaults to :data:`FEATURE_NAMES`.

    Returns
    -------
    EncodedDataset
        ``features`` has shape ``(n, len(feature_names))`` and ``targets``
        shape ``(n,)``.
    """
    names = tuple(feature_names)
    columns = resolve_columns(names)
    records = list(records)

    features = np.empty((len(records), len(names)), dtype=float)
    targets = np.empty(len(records), dtype=float)
    unmapped: Counter[str] = Counter()

    for i, record in enumerate(records):
        features[i] = [column(record) for column in columns]
        targets[i] = record.salary
        unmapped.update(record.unmapped_attributes())

    if unmapped:
        logger.info("Unmapped categorical values while encoding: %s", dict(unmapped))

    return EncodedDataset(
        features=features,
        targets=targets,
        feature_names=names,
        unmapped_counts=dict(unmapped),
    )


def records_from_frame(frame: pd.DataFrame, *, drop_invalid: bool = True) -> List[Record]:
    """Convert a raw employee table into records.

    Rows with a missing/non-positive salary or a negative experience are
    dropped when ``drop_invalid`` is set.
    """
    records = [Record.from_mapping(row) for row in frame.to_dict(orient="records")]
    if not drop_invalid:
        return records
    valid = [record for record in records if record.is_valid_training_example()]
    dropped = len(records) - len(valid)
    if dropped:
        logger.info("Dropped %d invalid records out of %d", dropped, len(records))
    return valid


def load_records(paths: Iterable[str | Path]) -> List[Record]:
    """Read and concatenate several employee CSV files.

    Files that cannot be read are skipped with a warning so one broken
    upload does not prevent training on the others.
    """
    all_records: List[Record] = []
    for path in paths:
        csv_path = Path(path)
        try:
            frame = pd.read_csv(csv_path)
        except (OSError, ValueError, pd.errors.ParserError) as exc:
            logger.warning("Failed to load %s: %s", csv_path, exc)
            continue
        records = records_from_frame(frame)
        logger.info("Loaded %d records from %s", len(records), csv_path)
        all_records.extend(records)
    return all_records
