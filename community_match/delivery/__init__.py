"""
Result delivery module.

Submission of survey responses and the bounded polling protocol by which
callers retrieve their match envelope.
"""

from .protocol import (
    DeliveryState,
    PollPolicy,
    PollOutcome,
    MatchPoller,
    poll_for_matches,
)
from .submission import SubmissionReceipt, submit_response, build_record

__all__ = [
    "DeliveryState",
    "PollPolicy",
    "PollOutcome",
    "MatchPoller",
    "poll_for_matches",
    "SubmissionReceipt",
    "submit_response",
    "build_record",
]
