"""
Profile vectorization for survey responses.

Maps a raw survey response into a fixed-schema numeric attribute vector.

Vectorization Rules:
- The 18 Likert answers are copied verbatim (no rescaling)
- readiness_score = mean(agency, preparedness, location_freedom)
- community_interest_avg = mean of the 7 interest dimensions
- Means are computed in floating point and never rounded here
"""

import logging
from typing import List

import numpy as np

from .schema import (
    SurveyResponse,
    AttributeVector,
    ALL_DIMENSIONS,
    INTEREST_DIMENSIONS,
    READINESS_DIMENSIONS,
    check_likert,
)

logger = logging.getLogger(__name__)


def vectorize(response: SurveyResponse) -> AttributeVector:
    """
    Compute the attribute vector for one survey response.

    Pure function: the same response always yields the same vector.

    Args:
        response: Validated survey response

    Returns:
        AttributeVector with 18 dimensions and two derived scores

    Raises:
        ValidationError: If any Likert field is missing or outside [1, 10]
    """
    values = response.likert_values()

    # Responses are mutable dataclasses, so ranges are re-checked here
    for name in ALL_DIMENSIONS:
        check_likert(name, values.get(name))

    dimensions = {name: float(values[name]) for name in ALL_DIMENSIONS}

    readiness = np.mean([dimensions[name] for name in READINESS_DIMENSIONS])
    interest_avg = np.mean([dimensions[name] for name in INTEREST_DIMENSIONS])

    return AttributeVector(
        dimensions=dimensions,
        readiness_score=float(readiness),
        community_interest_avg=float(interest_avg),
    )


def vectorize_batch(responses: List[SurveyResponse]) -> List[AttributeVector]:
    """Vectorize several responses in input order."""
    vectors = [vectorize(r) for r in responses]
    logger.info(f"Vectorized {len(vectors)} survey responses")
    return vectors
