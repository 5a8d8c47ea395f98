"""Matching job: quality review, pool construction and envelope storage."""

from .job import (
    MatchingJob,
    build_candidate_pool,
    candidate_from_record,
    review_pending,
    POOL_PREDICATES,
)

__all__ = [
    "MatchingJob",
    "build_candidate_pool",
    "candidate_from_record",
    "review_pending",
    "POOL_PREDICATES",
]
