"""Pairwise compatibility scoring and its versioned configuration."""

from .config import ScoringConfig, PenaltyPair, AgePenaltyConfig
from .pairwise import MatchDetails, score, shared_interests, combine_components

__all__ = [
    "ScoringConfig",
    "PenaltyPair",
    "AgePenaltyConfig",
    "MatchDetails",
    "score",
    "shared_interests",
    "combine_components",
]
