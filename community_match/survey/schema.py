"""
Input schema for community survey responses.

Defines the data structures for the questionnaire that prospective
community members fill in, and the derived per-response profile types.

Survey Composition:
- Contact: email, names, age, phone, social links, preferred contact times
- Narrative (8 free-text answers)
- Core values (11 Likert questions, 1-10)
- Community interests (7 Likert questions, 1-10)
"""

import re
from dataclasses import dataclass, field, fields
from enum import Enum
from types import MappingProxyType
from typing import Optional, Dict, Any, List, Mapping, Sequence, Tuple

import numpy as np

from ..errors import ValidationError, RecordIntegrityError

LIKERT_MIN = 1
LIKERT_MAX = 10

CORE_DIMENSIONS: Tuple[str, ...] = (
    "start_village",
    "spirituality",
    "ambition",
    "family_orientation",
    "wealth_orientation",
    "teamwork",
    "agency",
    "preparedness",
    "location_freedom",
    "existing_community",
    "empathy",
)

INTEREST_DIMENSIONS: Tuple[str, ...] = (
    "interest_off_grid",
    "interest_nomadic",
    "interest_business",
    "interest_wellness",
    "interest_spiritual",
    "interest_tech_hub",
    "interest_startup_nation",
)

ALL_DIMENSIONS: Tuple[str, ...] = CORE_DIMENSIONS + INTEREST_DIMENSIONS

READINESS_DIMENSIONS: Tuple[str, ...] = ("agency", "preparedness", "location_freedom")

FREE_TEXT_FIELDS: Tuple[str, ...] = (
    "job_career",
    "life_achievements",
    "dream_building",
    "community_space",
    "core_values",
    "qualities_seek",
    "deal_breakers",
    "skills_abilities",
)

# Contact basics plus every free-text answer
REQUIRED_FIELDS: Tuple[str, ...] = ("email", "first_name", "last_name") + FREE_TEXT_FIELDS

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class ContactTime(Enum):
    """Preferred times to connect."""
    MORNING = "Morning"
    AFTERNOON = "Afternoon"
    EVENING = "Evening"


def check_likert(name: str, value: Any) -> None:
    """
    Validate a single Likert rating.

    Raises:
        ValidationError: If the value is missing, not an integer, or outside [1, 10]
    """
    # bool is a subclass of int but never a rating
    if value is None or isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise ValidationError(
            f"{name} must be an integer between {LIKERT_MIN} and {LIKERT_MAX}, got {value!r}"
        )
    if not LIKERT_MIN <= value <= LIKERT_MAX:
        raise ValidationError(
            f"{name} must be an integer between {LIKERT_MIN} and {LIKERT_MAX}, got {value}"
        )


@dataclass
class ContactInfo:
    """
    Identity and contact fields.

    Attributes:
        email: Contact email (format checked when non-empty)
        first_name: Given name
        last_name: Family name
        age: Age in years, or None when not given
        phone: Free-form phone number
        social_links: Free-text social profile links
        preferred_times: Set of preferred contact times
    """
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    age: Optional[int] = None
    phone: str = ""
    social_links: str = ""
    preferred_times: frozenset = frozenset()

    def __post_init__(self):
        """Validate email shape, age type and contact time tags."""
        if self.email and not _EMAIL_RE.match(self.email):
            raise ValidationError(f"Malformed email address: {self.email!r}")

        if self.age is not None:
            if isinstance(self.age, bool) or not isinstance(self.age, (int, np.integer)):
                raise ValidationError(f"age must be an integer or absent, got {self.age!r}")
            if self.age < 0:
                raise ValidationError(f"age must be non-negative, got {self.age}")
            self.age = int(self.age)

        try:
            self.preferred_times = frozenset(ContactTime(t) for t in self.preferred_times)
        except ValueError as e:
            raise ValidationError(f"Unknown preferred contact time: {e}") from e

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "age": self.age,
            "phone": self.phone,
            "social_links": self.social_links,
            "preferred_times": sorted(t.value for t in self.preferred_times),
        }


@dataclass
class NarrativeAnswers:
    """Free-text answers. Empty strings mean the question was skipped."""
    job_career: str = ""
    life_achievements: str = ""
    dream_building: str = ""
    community_space: str = ""
    core_values: str = ""
    qualities_seek: str = ""
    deal_breakers: str = ""
    skills_abilities: str = ""

    def to_dict(self) -> Dict[str, str]:
        """Convert to dictionary."""
        return {name: getattr(self, name) for name in FREE_TEXT_FIELDS}


@dataclass
class CoreRatings:
    """
    Core values questionnaire (11 Likert questions).

    All answers are on a 1-10 scale where 1 is "not at all" and
    10 is "completely". Defaults are applied upstream, never here.
    """
    start_village: int
    spirituality: int
    ambition: int
    family_orientation: int
    wealth_orientation: int
    teamwork: int
    agency: int
    preparedness: int
    location_freedom: int
    existing_community: int
    empathy: int

    def __post_init__(self):
        """Validate Likert scale bounds."""
        for name in CORE_DIMENSIONS:
            check_likert(name, getattr(self, name))

    def to_dict(self) -> Dict[str, int]:
        """Convert to dictionary."""
        return {name: getattr(self, name) for name in CORE_DIMENSIONS}


@dataclass
class InterestRatings:
    """Community interest questionnaire (7 Likert questions, 1-10)."""
    interest_off_grid: int
    interest_nomadic: int
    interest_business: int
    interest_wellness: int
    interest_spiritual: int
    interest_tech_hub: int
    interest_startup_nation: int

    def __post_init__(self):
        """Validate Likert scale bounds."""
        for name in INTEREST_DIMENSIONS:
            check_likert(name, getattr(self, name))

    def to_dict(self) -> Dict[str, int]:
        """Convert to dictionary."""
        return {name: getattr(self, name) for name in INTEREST_DIMENSIONS}


@dataclass
class SurveyResponse:
    """
    Complete survey response for one person.

    Attributes:
        contact: ContactInfo instance
        narrative: NarrativeAnswers instance
        core: CoreRatings instance
        interests: InterestRatings instance
    """
    contact: ContactInfo
    narrative: NarrativeAnswers
    core: CoreRatings
    interests: InterestRatings

    def __post_init__(self):
        """Validate nested objects."""
        if isinstance(self.contact, dict):
            self.contact = ContactInfo(**self.contact)
        if isinstance(self.narrative, dict):
            self.narrative = NarrativeAnswers(**self.narrative)
        if isinstance(self.core, dict):
            self.core = CoreRatings(**self.core)
        if isinstance(self.interests, dict):
            self.interests = InterestRatings(**self.interests)

    def likert_values(self) -> Dict[str, int]:
        """All 18 ratings keyed by dimension name."""
        return {**self.core.to_dict(), **self.interests.to_dict()}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to nested dictionary."""
        return {
            "contact": self.contact.to_dict(),
            "narrative": self.narrative.to_dict(),
            "core": self.core.to_dict(),
            "interests": self.interests.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SurveyResponse":
        """Create from nested dictionary."""
        return cls(
            contact=ContactInfo(**data.get("contact", {})),
            narrative=NarrativeAnswers(**data.get("narrative", {})),
            core=CoreRatings(**data["core"]),
            interests=InterestRatings(**data["interests"]),
        )

    @classmethod
    def from_flat_dict(cls, data: Mapping[str, Any]) -> "SurveyResponse":
        """
        Create from a flat mapping of field name to value.

        This is the shape of one CSV row or one submitted web form.

        Raises:
            ValidationError: If a Likert field is missing or out of range
        """
        missing = [name for name in ALL_DIMENSIONS if name not in data]
        if missing:
            raise ValidationError(f"Missing Likert fields: {missing}")

        contact_fields = {f.name for f in fields(ContactInfo)}
        contact = {k: v for k, v in data.items() if k in contact_fields}
        narrative = {k: data[k] for k in FREE_TEXT_FIELDS if k in data}

        return cls(
            contact=ContactInfo(**contact),
            narrative=NarrativeAnswers(**narrative),
            core=CoreRatings(**{k: data[k] for k in CORE_DIMENSIONS}),
            interests=InterestRatings(**{k: data[k] for k in INTEREST_DIMENSIONS}),
        )


@dataclass(frozen=True)
class AttributeVector:
    """
    Normalized numeric profile derived from a survey response.

    Immutable once computed. Dimension values stay on the 1-10 input scale.

    Attributes:
        dimensions: Read-only mapping of dimension name to value
        readiness_score: Mean of agency, preparedness and location_freedom
        community_interest_avg: Mean of the 7 interest dimensions
    """
    dimensions: Mapping[str, float]
    readiness_score: float
    community_interest_avg: float

    def __post_init__(self):
        object.__setattr__(self, "dimensions", MappingProxyType(dict(self.dimensions)))

    def __getitem__(self, name: str) -> float:
        return self.dimensions[name]

    def as_array(self, order: Sequence[str] = ALL_DIMENSIONS) -> np.ndarray:
        """
        Return dimension values as a float array in the given order.

        Raises:
            RecordIntegrityError: If any requested dimension is missing
        """
        missing = [name for name in order if name not in self.dimensions]
        if missing:
            raise RecordIntegrityError(f"Attribute vector is missing dimensions: {missing}")
        return np.array([self.dimensions[name] for name in order], dtype=float)

    def to_dict(self) -> Dict[str, float]:
        """Flat dictionary as stored under a record's attribute_scores."""
        result = dict(self.dimensions)
        result["readiness_score"] = self.readiness_score
        result["community_interest_avg"] = self.community_interest_avg
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AttributeVector":
        """
        Rebuild a vector from stored attribute scores.

        No completeness check is done here: a stored vector with missing
        dimensions is kept as-is and reported when it is scored.
        """
        dims = {name: float(data[name]) for name in ALL_DIMENSIONS if data.get(name) is not None}
        return cls(
            dimensions=dims,
            readiness_score=float(data.get("readiness_score") or 0.0),
            community_interest_avg=float(data.get("community_interest_avg") or 0.0),
        )


@dataclass(frozen=True)
class QualityMetrics:
    """
    Data-quality signals for one response.

    Attributes:
        completeness: Percentage of required fields that are non-empty [0, 100]
        response_length_avg: Mean character length of non-empty free-text answers
        consistency_score: Percentage of alignment checks that pass [0, 100]
        failed_checks: Labels of the alignment checks that did not pass
    """
    completeness: float
    response_length_avg: float
    consistency_score: float
    failed_checks: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "completeness": self.completeness,
            "response_length_avg": self.response_length_avg,
            "consistency_score": self.consistency_score,
            "failed_checks": list(self.failed_checks),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "QualityMetrics":
        """Create from dictionary."""
        return cls(
            completeness=float(d["completeness"]),
            response_length_avg=float(d["response_length_avg"]),
            consistency_score=float(d["consistency_score"]),
            failed_checks=tuple(d.get("failed_checks", ())),
        )


def dimension_labels(names: List[str]) -> List[str]:
    """Human-readable labels for dimension names (used in reports)."""
    return [name.replace("interest_", "").replace("_", " ") for name in names]
