"""
Pairwise compatibility scoring.

This module compares two attribute vectors and produces a decomposed,
explainable similarity score. Every component of the score is kept on the
result so that the final number can be audited and re-derived.

Score Formula:
    weighted_distance = sum_d w_d * |A_d - B_d|
    base_similarity   = max(0, 100 - weighted_distance * k)
    final_score       = clip(base_similarity + alignment_bonus
                             - alignment_penalty - opposition_penalty
                             - age_penalty, 0, 100)

where k = 100 / ((likert_max - likert_min) * sum_d w_d), so that two
maximally opposite profiles get 0 and identical profiles get 100.

The score is symmetric: score(A, B) and score(B, A) produce identical
numbers, because every component is built from absolute differences or
from conditions tested in both directions.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional

import numpy as np
from scipy.spatial.distance import cityblock

from ..survey.schema import AttributeVector, ALL_DIMENSIONS, INTEREST_DIMENSIONS
from .config import ScoringConfig, PenaltyPair

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatchDetails:
    """
    Decomposed score breakdown for one pair of profiles.

    Attributes:
        base_similarity: Similarity from weighted distance [0, 100]
        weighted_distance: Raw weighted L1 distance (>= 0)
        alignment_bonus: Sum of high-value bonuses (>= 0)
        alignment_penalty: Sum of fired alignment penalties (>= 0)
        opposition_penalty: Sum of fired opposition penalties (>= 0)
        age_penalty: Penalty from the age curve (>= 0)
        final_score: Combined, clamped score [0, 100]
        age_difference: Absolute age gap in years, None if an age is unknown
        shared_high_interests: Dimensions that earned a bonus
        opposing_values: Labels of fired opposition entries
        alignment_issues: Labels of fired alignment entries
    """
    base_similarity: float
    weighted_distance: float
    alignment_bonus: float
    alignment_penalty: float
    opposition_penalty: float
    age_penalty: float
    final_score: float
    age_difference: Optional[int]
    shared_high_interests: List[str] = field(default_factory=list)
    opposing_values: List[str] = field(default_factory=list)
    alignment_issues: List[str] = field(default_factory=list)

    def recompute_final_score(self) -> float:
        """Re-derive final_score from the stored components."""
        return combine_components(
            self.base_similarity,
            self.alignment_bonus,
            self.alignment_penalty,
            self.opposition_penalty,
            self.age_penalty,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "age_penalty": self.age_penalty,
            "final_score": self.final_score,
            "age_difference": self.age_difference,
            "alignment_bonus": self.alignment_bonus,
            "base_similarity": self.base_similarity,
            "opposing_values": list(self.opposing_values),
            "alignment_issues": list(self.alignment_issues),
            "alignment_penalty": self.alignment_penalty,
            "weighted_distance": self.weighted_distance,
            "opposition_penalty": self.opposition_penalty,
            "shared_high_interests": list(self.shared_high_interests),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "MatchDetails":
        """Create from dictionary."""
        return cls(
            base_similarity=d["base_similarity"],
            weighted_distance=d["weighted_distance"],
            alignment_bonus=d["alignment_bonus"],
            alignment_penalty=d["alignment_penalty"],
            opposition_penalty=d["opposition_penalty"],
            age_penalty=d["age_penalty"],
            final_score=d["final_score"],
            age_difference=d.get("age_difference"),
            shared_high_interests=list(d.get("shared_high_interests", [])),
            opposing_values=list(d.get("opposing_values", [])),
            alignment_issues=list(d.get("alignment_issues", [])),
        )


def combine_components(
    base_similarity: float,
    alignment_bonus: float,
    alignment_penalty: float,
    opposition_penalty: float,
    age_penalty: float
) -> float:
    """Combination rule for the final score, clamped to [0, 100]."""
    raw = base_similarity + alignment_bonus - alignment_penalty - opposition_penalty - age_penalty
    return float(np.clip(raw, 0.0, 100.0))


def compute_age_penalty(
    subject_age: Optional[int],
    candidate_age: Optional[int],
    config: ScoringConfig
) -> tuple:
    """
    Compute the age difference and its penalty.

    Returns:
        Tuple of (age_difference or None, age_penalty)
    """
    if subject_age is None or candidate_age is None:
        return None, 0.0

    age_difference = abs(int(subject_age) - int(candidate_age))
    excess = max(0, age_difference - config.age.tolerance_years)
    penalty = min(config.age.max_penalty, config.age.per_year * excess)
    return age_difference, float(penalty)


def _pair_fires(pair: PenaltyPair, subject: AttributeVector, candidate: AttributeVector) -> bool:
    a = pair.dimension_a
    if pair.dimension_b is None:
        return abs(subject[a] - candidate[a]) >= pair.gap

    b = pair.dimension_b
    # One side leans toward a while the other leans toward b
    subject_leads = (subject[a] - candidate[a] >= pair.gap
                     and candidate[b] - subject[b] >= pair.gap)
    candidate_leads = (candidate[a] - subject[a] >= pair.gap
                       and subject[b] - candidate[b] >= pair.gap)
    return subject_leads or candidate_leads


def shared_interests(
    subject: AttributeVector,
    candidate: AttributeVector,
    threshold: float
) -> List[str]:
    """Community-interest dimensions both profiles rate at or above threshold."""
    return [
        dim for dim in INTEREST_DIMENSIONS
        if subject[dim] >= threshold and candidate[dim] >= threshold
    ]


def score(
    subject: AttributeVector,
    candidate: AttributeVector,
    subject_age: Optional[int],
    candidate_age: Optional[int],
    config: Optional[ScoringConfig] = None
) -> MatchDetails:
    """
    Compute the compatibility breakdown between two profiles.

    Args:
        subject: Attribute vector of the person being matched
        candidate: Attribute vector of the candidate
        subject_age: Subject age in years, or None
        candidate_age: Candidate age in years, or None
        config: Scoring configuration (defaults when omitted)

    Returns:
        MatchDetails with every score component

    Raises:
        RecordIntegrityError: If either vector is missing a dimension
    """
    config = config or ScoringConfig()

    values_a = subject.as_array(ALL_DIMENSIONS)
    values_b = candidate.as_array(ALL_DIMENSIONS)
    weights = np.asarray(config.weight_vector(), dtype=float)

    weighted_distance = float(cityblock(values_a, values_b, w=weights))
    base_similarity = max(0.0, 100.0 - weighted_distance * config.distance_scale)

    # High-value bonus
    alignment_bonus = 0.0
    shared_high = []
    for dim in sorted(config.high_value_bonuses):
        if subject[dim] >= config.high_threshold and candidate[dim] >= config.high_threshold:
            alignment_bonus += config.high_value_bonuses[dim]
            shared_high.append(dim)

    # Alignment and opposition penalties
    alignment_penalty = 0.0
    opposition_penalty = 0.0
    alignment_issues = []
    opposing_values = []
    for pair in config.penalty_pairs:
        if not _pair_fires(pair, subject, candidate):
            continue
        if pair.category == "alignment":
            alignment_penalty += pair.penalty
            alignment_issues.append(pair.label)
        else:
            opposition_penalty += pair.penalty
            opposing_values.append(pair.label)

    age_difference, age_penalty = compute_age_penalty(subject_age, candidate_age, config)

    final_score = combine_components(
        base_similarity, alignment_bonus, alignment_penalty, opposition_penalty, age_penalty
    )

    return MatchDetails(
        base_similarity=float(base_similarity),
        weighted_distance=weighted_distance,
        alignment_bonus=float(alignment_bonus),
        alignment_penalty=float(alignment_penalty),
        opposition_penalty=float(opposition_penalty),
        age_penalty=age_penalty,
        final_score=final_score,
        age_difference=age_difference,
        shared_high_interests=shared_high,
        opposing_values=sorted(opposing_values),
        alignment_issues=sorted(alignment_issues),
    )
