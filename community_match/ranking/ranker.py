"""
Match ranking against a candidate pool.

For one subject, every candidate in the pool is scored as an independent
unit of work, then the ranker performs the single sequential
filter/sort/truncate step and assembles the match envelope.

Ranking Rules:
- The subject is never matched against itself
- Candidates with malformed vectors are logged and excluded from
  total_evaluated (they are never silently zero-scored)
- Entries with final_score >= threshold qualify; above_threshold counts
  all of them even when limit truncates the returned list
- Order is final_score descending, then candidate id ascending
- The pool is read-only
"""

import logging
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional, Sequence, Callable, Tuple

from joblib import Parallel, delayed

from ..errors import ValidationError, RecordIntegrityError
from ..survey.schema import AttributeVector, ALL_DIMENSIONS
from ..scoring.config import ScoringConfig
from ..scoring.pairwise import MatchDetails, score, shared_interests

logger = logging.getLogger(__name__)

_UNSET = object()


@dataclass(frozen=True)
class CandidateProfile:
    """
    One member of the candidate pool.

    Attributes:
        candidate_id: Stable record id
        vector: Attribute vector of the candidate
        age: Age in years, or None
        name: Display name
        email: Contact email
    """
    candidate_id: str
    vector: AttributeVector
    age: Optional[int] = None
    name: str = ""
    email: str = ""


@dataclass(frozen=True)
class MatchEntry:
    """One ranked match inside an envelope."""
    user_id: str
    name: str
    email: str
    score: float
    details: MatchDetails
    shared_interests: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "name": self.name,
            "email": self.email,
            "score": self.score,
            "details": self.details.to_dict(),
            "shared_interests": list(self.shared_interests),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "MatchEntry":
        return cls(
            user_id=d["user_id"],
            name=d.get("name", ""),
            email=d.get("email", ""),
            score=d["score"],
            details=MatchDetails.from_dict(d["details"]),
            shared_interests=list(d.get("shared_interests", [])),
        )


@dataclass(frozen=True)
class MatchEnvelope:
    """
    Complete, versioned result of one matching run for one subject.

    Attributes:
        matches: Ranked entries (already filtered and truncated)
        above_threshold: Number of candidates meeting the threshold
        total_evaluated: Number of candidates actually scored
        algorithm_version: Scoring configuration version
        calculated_at: ISO-8601 UTC timestamp of the run
    """
    matches: List[MatchEntry]
    above_threshold: int
    total_evaluated: int
    algorithm_version: str
    calculated_at: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (the stored user_matches shape)."""
        return {
            "matches": [m.to_dict() for m in self.matches],
            "calculated_at": self.calculated_at,
            "above_threshold": self.above_threshold,
            "total_evaluated": self.total_evaluated,
            "algorithm_version": self.algorithm_version,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "MatchEnvelope":
        """Create from dictionary."""
        return cls(
            matches=[MatchEntry.from_dict(m) for m in d.get("matches", [])],
            above_threshold=int(d["above_threshold"]),
            total_evaluated=int(d["total_evaluated"]),
            algorithm_version=d["algorithm_version"],
            calculated_at=d["calculated_at"],
        )


@dataclass
class RankingConfig:
    """
    Configuration for match ranking.

    Attributes:
        threshold: Minimum final_score for a match to be reported
        limit: Maximum number of matches returned (None for no limit)
        n_jobs: joblib worker count for scoring (1 runs inline)
    """
    threshold: float = 60.0
    limit: Optional[int] = 10
    n_jobs: int = 1

    def validate(self) -> None:
        """Validate configuration values."""
        if not 0 <= self.threshold <= 100:
            raise ValidationError(f"threshold must be in [0, 100], got {self.threshold}")
        if self.limit is not None and self.limit < 0:
            raise ValidationError(f"limit must be non-negative, got {self.limit}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "RankingConfig":
        return cls(**d)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "RankingConfig":
        """Create from main config dictionary."""
        ranking_config = config.get("ranking", {})
        return cls(
            threshold=ranking_config.get("threshold", 60.0),
            limit=ranking_config.get("limit", 10),
            n_jobs=ranking_config.get("n_jobs", 1),
        )


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _score_candidate(
    subject_vector: AttributeVector,
    subject_age: Optional[int],
    candidate: CandidateProfile,
    config: ScoringConfig
) -> Tuple[CandidateProfile, Optional[MatchDetails]]:
    """Score one candidate; integrity faults yield None instead of raising."""
    try:
        details = score(subject_vector, candidate.vector, subject_age, candidate.age, config)
    except RecordIntegrityError as e:
        logger.warning(f"Skipping candidate {candidate.candidate_id}: {e}")
        return candidate, None
    return candidate, details


class MatchRanker:
    """
    Ranks a candidate pool for one subject.

    Attributes:
        scoring_config: Versioned scoring configuration
        ranking_config: Threshold, limit and parallelism
    """

    def __init__(
        self,
        scoring_config: Optional[ScoringConfig] = None,
        ranking_config: Optional[RankingConfig] = None,
        clock: Callable[[], str] = _utc_now
    ):
        """
        Initialize the ranker.

        Args:
            scoring_config: ScoringConfig instance (defaults when omitted)
            ranking_config: RankingConfig instance (defaults when omitted)
            clock: Returns the calculated_at timestamp string
        """
        self.scoring_config = scoring_config or ScoringConfig()
        self.scoring_config.validate()
        self.ranking_config = ranking_config or RankingConfig()
        self.ranking_config.validate()
        self.clock = clock

    def rank(
        self,
        subject_id: str,
        subject_vector: AttributeVector,
        subject_age: Optional[int],
        pool: Sequence[CandidateProfile],
        threshold: Optional[float] = None,
        limit: Any = _UNSET
    ) -> MatchEnvelope:
        """
        Rank the pool for one subject.

        Args:
            subject_id: Record id of the subject (excluded from the pool)
            subject_vector: Attribute vector of the subject
            subject_age: Subject age in years, or None
            pool: Candidate pool, ordered by arrival
            threshold: Override of the configured threshold
            limit: Override of the configured limit (None for no limit)

        Returns:
            MatchEnvelope for the subject

        Raises:
            ValidationError: If an override is out of range
            RecordIntegrityError: If the subject vector itself is malformed
        """
        threshold = self.ranking_config.threshold if threshold is None else threshold
        limit = self.ranking_config.limit if limit is _UNSET else limit
        RankingConfig(threshold=threshold, limit=limit).validate()

        # A malformed subject is not a per-candidate fault
        subject_vector.as_array(ALL_DIMENSIONS)

        candidates = [c for c in pool if c.candidate_id != subject_id]

        results = Parallel(n_jobs=self.ranking_config.n_jobs, prefer="threads")(
            delayed(_score_candidate)(subject_vector, subject_age, c, self.scoring_config)
            for c in candidates
        )

        scored = [(c, d) for c, d in results if d is not None]
        skipped = len(results) - len(scored)
        if skipped:
            logger.warning(f"Excluded {skipped} malformed candidates for subject {subject_id}")

        qualifying = [
            MatchEntry(
                user_id=c.candidate_id,
                name=c.name,
                email=c.email,
                score=d.final_score,
                details=d,
                shared_interests=shared_interests(
                    subject_vector, c.vector, self.scoring_config.high_threshold
                ),
            )
            for c, d in scored
            if d.final_score >= threshold
        ]
        qualifying.sort(key=lambda e: (-e.score, e.user_id))

        matches = qualifying if limit is None else qualifying[:limit]

        logger.info(
            f"Ranked subject {subject_id}: {len(scored)} evaluated, "
            f"{len(qualifying)} above threshold {threshold}, {len(matches)} returned"
        )

        return MatchEnvelope(
            matches=matches,
            above_threshold=len(qualifying),
            total_evaluated=len(scored),
            algorithm_version=self.scoring_config.algorithm_version,
            calculated_at=self.clock(),
        )


def rank(
    subject_id: str,
    subject_vector: AttributeVector,
    subject_age: Optional[int],
    pool: Sequence[CandidateProfile],
    threshold: float,
    limit: Optional[int],
    scoring_config: Optional[ScoringConfig] = None
) -> MatchEnvelope:
    """
    Functional entry point: rank a pool with explicit threshold and limit.

    Args:
        subject_id: Record id of the subject
        subject_vector: Attribute vector of the subject
        subject_age: Subject age in years, or None
        pool: Candidate pool
        threshold: Minimum final_score to qualify
        limit: Maximum number of returned matches (None for no limit)
        scoring_config: Scoring configuration (defaults when omitted)

    Returns:
        MatchEnvelope
    """
    ranker = MatchRanker(scoring_config, RankingConfig(threshold=threshold, limit=limit))
    return ranker.rank(subject_id, subject_vector, subject_age, pool)
