"""Match ranking module."""

from .ranker import (
    CandidateProfile,
    MatchEntry,
    MatchEnvelope,
    RankingConfig,
    MatchRanker,
    rank,
)

__all__ = [
    "CandidateProfile",
    "MatchEntry",
    "MatchEnvelope",
    "RankingConfig",
    "MatchRanker",
    "rank",
]
