"""
Survey submission.

Validates a response, derives its attribute vector and quality metrics,
and persists the complete record. A successful insert moves the
submission from SUBMITTED to PENDING_MATCH; matching itself happens later
and elsewhere.

Nothing is written unless validation, vectorization and assessment all
succeed, so a record is never partially persisted.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Any, Optional, Callable

from ..errors import ValidationError, PersistenceError
from ..persistence.store import RecordStore
from ..survey.schema import SurveyResponse, AttributeVector, QualityMetrics
from ..survey.vectorizer import vectorize
from ..survey.quality import assess, QualityConfig, QualityStatus
from .protocol import DeliveryState

logger = logging.getLogger(__name__)

SURVEY_VERSION = 2


@dataclass(frozen=True)
class SubmissionReceipt:
    """What the caller gets back from a successful submission."""
    record_id: str
    state: DeliveryState
    vector: AttributeVector
    quality: QualityMetrics


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def validate_for_submission(response: SurveyResponse) -> None:
    """
    Shape checks that apply to submissions but not to scoring.

    Raises:
        ValidationError: If first name, last name or email is empty
    """
    contact = response.contact
    missing = [
        name for name, value in [("first_name", contact.first_name),
                                 ("last_name", contact.last_name),
                                 ("email", contact.email)]
        if not value or not value.strip()
    ]
    if missing:
        raise ValidationError(f"Missing required contact fields: {missing}")


def build_record(
    response: SurveyResponse,
    vector: AttributeVector,
    quality: QualityMetrics,
    submitted_at: str
) -> Dict[str, Any]:
    """
    Assemble the stored record for a submission.

    Args:
        response: Survey response
        vector: Attribute vector derived from the response
        quality: Quality metrics derived from the response
        submitted_at: ISO-8601 timestamp

    Returns:
        Record dictionary ready for RecordStore.insert
    """
    contact = response.contact.to_dict()
    mc_responses = response.likert_values()
    free_responses = response.narrative.to_dict()

    form_responses = {
        "preferred_times": contact["preferred_times"],
        **mc_responses,
        **free_responses,
        "survey_version": SURVEY_VERSION,
        "submitted_at": submitted_at,
    }

    return {
        "email": contact["email"],
        "first_name": contact["first_name"],
        "last_name": contact["last_name"],
        "age": contact["age"],
        "phone": contact["phone"],
        "social_links": contact["social_links"],
        "form_responses": form_responses,
        "mc_responses": mc_responses,
        "free_responses": free_responses,
        "attribute_scores": vector.to_dict(),
        "quality_metrics": quality.to_dict(),
        # Quality review sets these before the profile joins the pool
        "quality_status": QualityStatus.PENDING.value,
        "should_match": False,
        "status": "new",
        "is_synthetic": False,
        "created_at": submitted_at,
        "updated_at": submitted_at,
    }


def submit_response(
    store: RecordStore,
    response: SurveyResponse,
    quality_config: Optional[QualityConfig] = None,
    clock: Callable[[], str] = _utc_now
) -> SubmissionReceipt:
    """
    Validate, derive and persist one survey response.

    Args:
        store: Record store to insert into
        response: Survey response
        quality_config: Quality configuration (defaults when omitted)
        clock: Returns the submission timestamp

    Returns:
        SubmissionReceipt in state PENDING_MATCH

    Raises:
        ValidationError: Before any write, if the response is invalid
        PersistenceError: If the store rejects the insert (not retried)
    """
    validate_for_submission(response)
    vector = vectorize(response)
    quality = assess(response, quality_config)

    record = build_record(response, vector, quality, clock())

    try:
        record_id = store.insert(record)
    except PersistenceError as e:
        logger.error(f"Error submitting survey for {response.contact.email}: {e}")
        raise

    logger.info(
        f"Submitted survey {record_id} "
        f"({DeliveryState.SUBMITTED.value} -> {DeliveryState.PENDING_MATCH.value}), "
        f"completeness={quality.completeness:.1f}"
    )
    return SubmissionReceipt(
        record_id=record_id,
        state=DeliveryState.PENDING_MATCH,
        vector=vector,
        quality=quality,
    )
