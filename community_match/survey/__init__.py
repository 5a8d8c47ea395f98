"""
Survey module: response schema, profile vectorization and quality scoring.
"""

from .schema import (
    SurveyResponse,
    ContactInfo,
    NarrativeAnswers,
    CoreRatings,
    InterestRatings,
    ContactTime,
    AttributeVector,
    QualityMetrics,
)
from .vectorizer import vectorize
from .quality import assess, review, QualityConfig, QualityStatus

__all__ = [
    "SurveyResponse",
    "ContactInfo",
    "NarrativeAnswers",
    "CoreRatings",
    "InterestRatings",
    "ContactTime",
    "AttributeVector",
    "QualityMetrics",
    "vectorize",
    "assess",
    "review",
    "QualityConfig",
    "QualityStatus",
]
