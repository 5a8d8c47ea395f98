"""Pytest configuration and fixtures for test suite."""

from collections.abc import Callable
from typing import Any, Dict, List, Optional

import numpy as np
import pytest

from community_match.configs import load_default_config
from community_match.persistence import InMemoryRecordStore
from community_match.ranking import CandidateProfile
from community_match.scoring import ScoringConfig
from community_match.survey import AttributeVector, SurveyResponse
from community_match.survey.schema import (
    ALL_DIMENSIONS,
    INTEREST_DIMENSIONS,
    READINESS_DIMENSIONS,
)

FIXED_TIMESTAMP = "2026-01-01T00:00:00+00:00"

_NARRATIVE_TEXT = {
    "job_career": "Carpenter and part-time permaculture instructor.",
    "life_achievements": "Built a straw-bale house with friends.",
    "dream_building": "A shared workshop and a seed library.",
    "community_space": "Small cabins around a common kitchen.",
    "core_values": "Honesty, generosity and hard work.",
    "qualities_seek": "Reliable people who finish what they start.",
    "deal_breakers": "Dishonesty and unwillingness to share chores.",
    "skills_abilities": "Woodworking, gardening, basic solar wiring.",
}


def flat_survey(fill: int = 5, **overrides: Any) -> Dict[str, Any]:
    """Flat survey mapping with every field filled in."""
    data: Dict[str, Any] = {
        "email": "ada@example.org",
        "first_name": "Ada",
        "last_name": "Lovelace",
        "age": 30,
        "phone": "",
        "social_links": "",
        "preferred_times": ["Morning"],
    }
    data.update(_NARRATIVE_TEXT)
    data.update({name: fill for name in ALL_DIMENSIONS})
    data.update(overrides)
    return data


@pytest.fixture
def make_response() -> Callable[..., SurveyResponse]:
    """Factory for complete survey responses.

    Every Likert answer defaults to ``fill``; keyword overrides replace
    any flat field (contact, narrative or rating).
    """

    def _factory(fill: int = 5, **overrides: Any) -> SurveyResponse:
        return SurveyResponse.from_flat_dict(flat_survey(fill, **overrides))

    return _factory


def build_vector(fill: float = 5.0, drop: Optional[List[str]] = None, **overrides: float) -> AttributeVector:
    """Attribute vector with every dimension at ``fill`` unless overridden."""
    dims = {name: float(fill) for name in ALL_DIMENSIONS}
    dims.update({k: float(v) for k, v in overrides.items()})
    for name in drop or []:
        del dims[name]
    return AttributeVector(
        dimensions=dims,
        readiness_score=float(np.mean([dims.get(d, 0.0) for d in READINESS_DIMENSIONS])),
        community_interest_avg=float(np.mean([dims.get(d, 0.0) for d in INTEREST_DIMENSIONS])),
    )


@pytest.fixture
def make_vector() -> Callable[..., AttributeVector]:
    """Factory for attribute vectors (see build_vector)."""
    return build_vector


@pytest.fixture
def make_candidate() -> Callable[..., CandidateProfile]:
    """Factory for pool entries whose dimensions all sit at ``fill``."""

    def _factory(candidate_id: str, fill: float = 5.0, age: Optional[int] = 30, **overrides: float) -> CandidateProfile:
        return CandidateProfile(
            candidate_id=candidate_id,
            vector=build_vector(fill, **overrides),
            age=age,
            name=f"Person {candidate_id}",
            email=f"{candidate_id}@example.org",
        )

    return _factory


@pytest.fixture
def default_config() -> Dict[str, Any]:
    """Packaged default configuration."""
    return load_default_config()


@pytest.fixture
def scoring_config(default_config: Dict[str, Any]) -> ScoringConfig:
    """Validated scoring configuration from the packaged defaults."""
    return ScoringConfig.from_config(default_config)


@pytest.fixture
def store() -> InMemoryRecordStore:
    """Empty in-memory record store."""
    return InMemoryRecordStore()


@pytest.fixture
def fixed_clock() -> Callable[[], str]:
    """Clock returning a constant timestamp."""
    return lambda: FIXED_TIMESTAMP


@pytest.fixture
def survey_row() -> Callable[..., Dict[str, Any]]:
    """Factory for flat survey mappings (one CSV row or web form)."""
    return flat_survey
