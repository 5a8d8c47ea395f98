"""
Data-quality assessment for single survey responses.

Quality signals are computed per response, independent of any other
profile, and feed the review gate that decides whether a profile enters
the candidate pool.

Signals:
- completeness: share of the required-field checklist that is filled in
- response_length_avg: mean length of the free-text answers given
- consistency_score: share of alignment checks that pass, where each
  check is a pair of ratings expected to move together
"""

import logging
from dataclasses import dataclass, asdict, field
from enum import Enum
from typing import Dict, Any, List, Optional, Tuple

from ..errors import ValidationError
from .schema import (
    SurveyResponse,
    QualityMetrics,
    ALL_DIMENSIONS,
    FREE_TEXT_FIELDS,
    REQUIRED_FIELDS,
)

logger = logging.getLogger(__name__)

DEFAULT_ALIGNMENT_CHECKS: Tuple[Tuple[str, str], ...] = (
    ("start_village", "interest_off_grid"),
    ("spirituality", "interest_spiritual"),
    ("ambition", "interest_business"),
)


class QualityStatus(Enum):
    """Outcome of the quality review."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass
class QualityConfig:
    """
    Configuration for quality assessment and review.

    Attributes:
        consistency_tolerance: Max absolute difference for a check to pass
        alignment_checks: Pairs of dimensions expected to move together
        min_completeness: Review gate on completeness
        min_consistency: Review gate on consistency_score
        min_response_length: Review gate on response_length_avg
    """
    consistency_tolerance: int = 3
    alignment_checks: List[Tuple[str, str]] = field(
        default_factory=lambda: list(DEFAULT_ALIGNMENT_CHECKS)
    )
    min_completeness: float = 80.0
    min_consistency: float = 33.33
    min_response_length: float = 20.0

    def __post_init__(self):
        self.alignment_checks = [tuple(pair) for pair in self.alignment_checks]

    def validate(self) -> None:
        """Validate configuration values."""
        if self.consistency_tolerance < 0:
            raise ValidationError(
                f"consistency_tolerance must be non-negative, got {self.consistency_tolerance}"
            )
        for pair in self.alignment_checks:
            if len(pair) != 2:
                raise ValidationError(f"Alignment check must name two dimensions, got {pair}")
            unknown = [d for d in pair if d not in ALL_DIMENSIONS]
            if unknown:
                raise ValidationError(f"Unknown dimensions in alignment check: {unknown}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        d = asdict(self)
        d["alignment_checks"] = [list(pair) for pair in self.alignment_checks]
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "QualityConfig":
        """Create from dictionary."""
        return cls(**d)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "QualityConfig":
        """Create from main config dictionary."""
        quality_config = config.get("quality", {})
        review_config = quality_config.get("review", {})

        return cls(
            consistency_tolerance=quality_config.get("consistency_tolerance", 3),
            alignment_checks=quality_config.get("alignment_checks", list(DEFAULT_ALIGNMENT_CHECKS)),
            min_completeness=review_config.get("min_completeness", 80.0),
            min_consistency=review_config.get("min_consistency", 33.33),
            min_response_length=review_config.get("min_response_length", 20.0),
        )


def _is_filled(value: Any) -> bool:
    if isinstance(value, str):
        return bool(value.strip())
    return value is not None


def compute_completeness(response: SurveyResponse) -> float:
    """
    Percentage of required fields that are non-empty.

    Args:
        response: Survey response

    Returns:
        Completeness in [0, 100]
    """
    values = {**response.contact.to_dict(), **response.narrative.to_dict()}
    filled = sum(1 for name in REQUIRED_FIELDS if _is_filled(values.get(name)))
    return filled / len(REQUIRED_FIELDS) * 100


def compute_response_length_avg(response: SurveyResponse) -> float:
    """Mean character length of the non-empty free-text answers (0 if none)."""
    answers = response.narrative.to_dict()
    lengths = [
        len(answers[name]) for name in FREE_TEXT_FIELDS
        if isinstance(answers[name], str) and answers[name]
    ]
    if not lengths:
        return 0.0
    return sum(lengths) / len(lengths)


def compute_consistency(
    response: SurveyResponse,
    alignment_checks: List[Tuple[str, str]],
    tolerance: int
) -> Tuple[float, Tuple[str, ...]]:
    """
    Evaluate the alignment checks for one response.

    Args:
        response: Survey response
        alignment_checks: Pairs of dimensions expected to move together
        tolerance: Maximum absolute difference for a pass

    Returns:
        Tuple of (consistency_score in [0, 100], labels of failed checks)
    """
    if not alignment_checks:
        return 100.0, ()

    values = response.likert_values()
    failed = tuple(
        f"{a}~{b}" for a, b in alignment_checks
        if abs(values[a] - values[b]) > tolerance
    )
    passed = len(alignment_checks) - len(failed)
    return passed / len(alignment_checks) * 100, failed


def assess(
    response: SurveyResponse,
    config: Optional[QualityConfig] = None
) -> QualityMetrics:
    """
    Compute quality metrics for a single response.

    Args:
        response: Survey response
        config: Quality configuration (defaults when omitted)

    Returns:
        QualityMetrics instance
    """
    config = config or QualityConfig()

    consistency, failed = compute_consistency(
        response, config.alignment_checks, config.consistency_tolerance
    )

    return QualityMetrics(
        completeness=compute_completeness(response),
        response_length_avg=compute_response_length_avg(response),
        consistency_score=consistency,
        failed_checks=failed,
    )


def review(metrics: QualityMetrics, config: Optional[QualityConfig] = None) -> QualityStatus:
    """
    Decide whether a profile is fit to enter the candidate pool.

    Args:
        metrics: Quality metrics of the response
        config: Quality configuration with the review gates

    Returns:
        QualityStatus.APPROVED or QualityStatus.REJECTED
    """
    config = config or QualityConfig()

    reasons = []
    if metrics.completeness < config.min_completeness:
        reasons.append(f"completeness {metrics.completeness:.2f} < {config.min_completeness}")
    if metrics.consistency_score < config.min_consistency:
        reasons.append(f"consistency {metrics.consistency_score:.2f} < {config.min_consistency}")
    if metrics.response_length_avg < config.min_response_length:
        reasons.append(
            f"response length {metrics.response_length_avg:.1f} < {config.min_response_length}"
        )

    if reasons:
        logger.info(f"Quality review rejected profile: {'; '.join(reasons)}")
        return QualityStatus.REJECTED
    return QualityStatus.APPROVED
