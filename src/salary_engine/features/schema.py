"""Employee record schema and the versioned feature-name contract.

Every categorical attribute is a closed :class:`enum.Enum` with an explicit
``UNMAPPED`` member. Raw values outside the vocabulary parse to ``UNMAPPED``
instead of raising, and the encoder reports how often that happened.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Tuple, Type, TypeVar

FEATURE_SCHEMA_VERSION = "v1"

_E = TypeVar("_E", bound="CategoricalAttribute")


def _normalize_token(value: str) -> str:
    return "".join(ch for ch in value.lower() if ch.isalnum())


class CategoricalAttribute(Enum):
    """Base class for the closed categorical vocabularies."""

    @classmethod
    def parse(cls: Type[_E], raw: Any) -> _E:
        """Map a raw value onto a member, ``UNMAPPED`` when unknown.

        Matching ignores case, spaces and punctuation so ``"Full-Time"``,
        ``"full time"`` and ``"FULL_TIME"`` are the same category.
        """
        if isinstance(raw, cls):
            return raw
        if raw is None or (isinstance(raw, float) and math.isnan(raw)):
            return cls["UNMAPPED"]
        token = _normalize_token(str(raw))
        for member in cls:
            if member.name == "UNMAPPED":
                continue
            if token in member.aliases():
                return member
        return cls["UNMAPPED"]

    @classmethod
    def known(cls: Type[_E]) -> Tuple[_E, ...]:
        return tuple(m for m in cls if m.name != "UNMAPPED")

    def aliases(self) -> Tuple[str, ...]:
        return (_normalize_token(self.value), _normalize_token(self.name))

    @property
    def slug(self) -> str:
        return self.name.lower()


class EducationLevel(CategoricalAttribute):
    BACHELOR = "Bachelor"
    MASTER = "Master"
    PHD = "PhD"
    HIGH_SCHOOL = "High School"
    UNMAPPED = "unmapped"

    def aliases(self) -> Tuple[str, ...]:
        extra = {
            "BACHELOR": ("bachelors", "bsc", "ba"),
            "MASTER": ("masters", "msc", "ma"),
            "PHD": ("doctorate",),
        }.get(self.name, ())
        return super().aliases() + extra


class Gender(CategoricalAttribute):
    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Other"
    UNMAPPED = "unmapped"


class Department(CategoricalAttribute):
    IT = "IT"
    SALES = "Sales"
    MARKETING = "Marketing"
    FINANCE = "Finance"
    HR = "HR"
    OPERATIONS = "Operations"
    DATA_SCIENCE = "Data Science"
    UNMAPPED = "unmapped"

    def aliases(self) -> Tuple[str, ...]:
        extra = {"IT": ("engineering",), "HR": ("humanresources",)}.get(self.name, ())
        return super().aliases() + extra


class Location(CategoricalAttribute):
    BANGALORE = "Bangalore"
    DELHI = "Delhi"
    MUMBAI = "Mumbai"
    CHENNAI = "Chennai"
    PUNE = "Pune"
    HYDERABAD = "Hyderabad"
    REMOTE = "Remote"
    UNMAPPED = "unmapped"


class EmploymentType(CategoricalAttribute):
    FULL_TIME = "Full-Time"
    PART_TIME = "Part-Time"
    CONTRACT = "Contract"
    UNMAPPED = "unmapped"


# attribute name on Record -> (feature prefix, enum class)
CATEGORICAL_ATTRIBUTES: Dict[str, Tuple[str, Type[CategoricalAttribute]]] = {
    "education_level": ("education", EducationLevel),
    "gender": ("gender", Gender),
    "department": ("dept", Department),
    "location": ("location", Location),
    "employment_type": ("employment", EmploymentType),
}

NUMERIC_ATTRIBUTES: Tuple[str, ...] = (
    "age",
    "years_of_experience",
    "performance_rating",
    "certifications",
)


def _build_feature_names() -> Tuple[str, ...]:
    names = list(NUMERIC_ATTRIBUTES)
    for prefix, enum_cls in CATEGORICAL_ATTRIBUTES.values():
        names.extend(f"{prefix}_{member.slug}" for member in enum_cls.known())
    return tuple(names)


# Positional contract shared by every trained model. Changing the order
# invalidates previously trained models; bump FEATURE_SCHEMA_VERSION.
FEATURE_NAMES: Tuple[str, ...] = _build_feature_names()


# CSV header -> Record field
_COLUMN_ALIASES: Dict[str, str] = {
    "age": "age",
    "gender": "gender",
    "educationlevel": "education_level",
    "education": "education_level",
    "yearsofexperience": "years_of_experience",
    "experience": "years_of_experience",
    "department": "department",
    "location": "location",
    "employmenttype": "employment_type",
    "performancerating": "performance_rating",
    "certifications": "certifications",
    "salary": "salary",
}

# Defaults applied while ingesting training data.
TRAINING_DEFAULTS: Mapping[str, Any] = {
    "age": 30.0,
    "years_of_experience": 0.0,
    "performance_rating": 3.0,
    "certifications": 0.0,
    "education_level": EducationLevel.BACHELOR,
    "gender": Gender.OTHER,
    "department": Department.UNMAPPED,
    "location": Location.UNMAPPED,
    "employment_type": EmploymentType.FULL_TIME,
}

# Defaults for a single prediction request (fields the request form does not collect).
PREDICTION_DEFAULTS: Mapping[str, Any] = {
    "age": 30.0,
    "years_of_experience": 0.0,
    "performance_rating": 4.0,
    "certifications": 2.0,
    "education_level": EducationLevel.UNMAPPED,
    "gender": Gender.UNMAPPED,
    "department": Department.UNMAPPED,
    "location": Location.UNMAPPED,
    "employment_type": EmploymentType.FULL_TIME,
}


def _to_float(raw: Any, default: float) -> float:
    if raw is None:
        return float(default)
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return float(default)
    return float(default) if math.isnan(value) else value


@dataclass(frozen=True)
class Record:
    """One employee with its salary target."""

    age: float
    years_of_experience: float
    performance_rating: float
    certifications: float
    education_level: EducationLevel
    gender: Gender
    department: Department
    location: Location
    employment_type: EmploymentType
    salary: float = math.nan

    @classmethod
    def from_mapping(
        cls,
        mapping: Mapping[str, Any],
        *,
        defaults: Mapping[str, Any] = TRAINING_DEFAULTS,
    ) -> "Record":
        """Build a record from CSV-style (``YearsOfExperience``) or snake_case keys."""

        fields: Dict[str, Any] = {}
        for key, raw in mapping.items():
            target = _COLUMN_ALIASES.get(_normalize_token(str(key)))
            if target is not None:
                fields[target] = raw

        values: Dict[str, Any] = {}
        for name in NUMERIC_ATTRIBUTES:
            values[name] = _to_float(fields.get(name), defaults[name])
        for name, (_, enum_cls) in CATEGORICAL_ATTRIBUTES.items():
            raw = fields.get(name)
            missing = raw is None or (isinstance(raw, float) and math.isnan(raw)) or raw == ""
            values[name] = enum_cls.parse(defaults[name] if missing else raw)
        values["salary"] = _to_float(fields.get("salary"), math.nan)
        return cls(**values)

    def is_valid_training_example(self) -> bool:
        return (
            math.isfinite(self.salary)
            and self.salary > 0
            and math.isfinite(self.years_of_experience)
            and self.years_of_experience >= 0
        )

    def unmapped_attributes(self) -> Tuple[str, ...]:
        return tuple(
            name
            for name in CATEGORICAL_ATTRIBUTES
            if getattr(self, name).name == "UNMAPPED"
        )


def prediction_record(mapping: Mapping[str, Any]) -> Record:
    """Record for a single prediction request, filled with inference defaults."""

    return Record.from_mapping(mapping, defaults=PREDICTION_DEFAULTS)
