"""
Matching job.

The out-of-band trigger that turns stored submissions into match
envelopes:
1. Review pending submissions against the quality gate
2. Build the candidate pool from approved, matchable records
3. Rank the pool for a subject
4. Attach the envelope to the subject's record under ``user_matches``

Each run replaces the previous envelope of the subject.
"""

import logging
from typing import Dict, Any, List, Optional

from ..errors import RecordIntegrityError
from ..persistence.store import RecordStore, MATCHES_FIELD
from ..ranking.ranker import CandidateProfile, MatchEnvelope, MatchRanker, RankingConfig
from ..scoring.config import ScoringConfig
from ..survey.schema import AttributeVector, QualityMetrics
from ..survey.quality import QualityConfig, QualityStatus, review

logger = logging.getLogger(__name__)

POOL_PREDICATES = {"should_match": True, "quality_status": QualityStatus.APPROVED.value}


def candidate_from_record(record: Dict[str, Any]) -> CandidateProfile:
    """Build a pool entry from a stored record."""
    name = f"{record.get('first_name') or ''} {record.get('last_name') or ''}".strip()
    return CandidateProfile(
        candidate_id=record["id"],
        vector=AttributeVector.from_dict(record.get("attribute_scores") or {}),
        age=record.get("age"),
        name=name,
        email=record.get("email") or "",
    )


def build_candidate_pool(store: RecordStore) -> List[CandidateProfile]:
    """
    Query the matchable records, ordered by arrival.

    Args:
        store: Record store

    Returns:
        List of CandidateProfile
    """
    records = store.query_by_flags(POOL_PREDICATES, order_by="created_at")
    logger.info(f"Built candidate pool of {len(records)} records")
    return [candidate_from_record(r) for r in records]


def review_pending(store: RecordStore, config: Optional[QualityConfig] = None) -> Dict[str, int]:
    """
    Apply the quality gate to every pending record.

    Approved records become matchable (should_match=True). Records whose
    stored metrics are missing or unreadable stay pending.

    Returns:
        Count of records per resulting status
    """
    config = config or QualityConfig()
    counts = {QualityStatus.APPROVED.value: 0, QualityStatus.REJECTED.value: 0}

    pending = store.query_by_flags(
        {"quality_status": QualityStatus.PENDING.value}, order_by="created_at"
    )
    for record in pending:
        stored_metrics = record.get("quality_metrics")
        if not isinstance(stored_metrics, dict):
            logger.warning(f"Skipping review of record {record['id']}: no quality metrics")
            continue
        try:
            metrics = QualityMetrics.from_dict(stored_metrics)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping review of record {record['id']}: unreadable metrics ({e})")
            continue
        status = review(metrics, config)
        store.update(record["id"], {
            "quality_status": status.value,
            "should_match": status == QualityStatus.APPROVED,
        })
        counts[status.value] += 1

    logger.info(
        f"Reviewed {len(pending)} pending records: "
        f"{counts['approved']} approved, {counts['rejected']} rejected"
    )
    return counts


class MatchingJob:
    """
    Computes and stores match envelopes.

    Attributes:
        store: Record store used for reads and the envelope write
        ranker: MatchRanker with the versioned scoring configuration
    """

    def __init__(self, store: RecordStore, ranker: Optional[MatchRanker] = None):
        self.store = store
        self.ranker = ranker or MatchRanker()

    @classmethod
    def from_config(cls, store: RecordStore, config: Dict[str, Any]) -> "MatchingJob":
        """Create from main config dictionary."""
        ranker = MatchRanker(
            ScoringConfig.from_config(config),
            RankingConfig.from_config(config),
        )
        return cls(store, ranker)

    def run_for_subject(
        self,
        subject_id: str,
        pool: Optional[List[CandidateProfile]] = None
    ) -> MatchEnvelope:
        """
        Rank the pool for one subject and attach the envelope.

        Args:
            subject_id: Record id of the subject
            pool: Pre-built pool to reuse across subjects (queried when omitted)

        Returns:
            The stored MatchEnvelope

        Raises:
            RecordNotFound: If the subject does not exist
            RecordIntegrityError: If the subject's stored vector is malformed
        """
        subject = candidate_from_record(self.store.get_by_id(subject_id))
        if pool is None:
            pool = build_candidate_pool(self.store)

        envelope = self.ranker.rank(subject_id, subject.vector, subject.age, pool)
        self.store.update(subject_id, {MATCHES_FIELD: envelope.to_dict(), "status": "matched"})
        return envelope

    def run_for_pool(self) -> Dict[str, MatchEnvelope]:
        """
        Compute envelopes for every matchable record.

        A subject with a malformed stored vector gets no envelope; the rest
        of the batch still runs.
        """
        pool = build_candidate_pool(self.store)
        envelopes = {}
        skipped = []
        for candidate in pool:
            try:
                envelopes[candidate.candidate_id] = self.run_for_subject(candidate.candidate_id, pool)
            except RecordIntegrityError as e:
                logger.error(f"Skipping subject {candidate.candidate_id}: {e}")
                skipped.append(candidate.candidate_id)
        logger.info(f"Computed envelopes for {len(envelopes)} subjects ({len(skipped)} skipped)")
        return envelopes
