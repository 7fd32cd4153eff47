"""Employee record schema and feature encoding."""

from salary_engine.features.encoder import (
    EncodedDataset,
    encode,
    encode_record,
    load_records,
    records_from_frame,
)
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

__all__ = [
    # encoder
    "EncodedDataset",
    "encode",
    "encode_record",
    "load_records",
    "records_from_frame",
    # schema
    "FEATURE_NAMES",
    "FEATURE_SCHEMA_VERSION",
    "Department",
    "EducationLevel",
    "EmploymentType",
    "Gender",
    "Location",
    "Record",
    "prediction_record",
]
