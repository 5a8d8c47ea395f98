"""
Result delivery protocol.

Matching runs asynchronously from submission. The caller learns about the
result by polling the subject's stored record until the match envelope
appears, under a fixed attempt ceiling.

State Machine:
    SUBMITTED -> PENDING_MATCH -> MATCHED
                               -> TIMED_OUT   (attempt ceiling reached)
                               -> FAILED      (store error while polling)
                               -> CANCELLED   (caller stopped polling)

The attempt count, not wall-clock time, is the timeout. Polling is
read-only, so cancellation needs no server-side cleanup.
"""

import logging
import threading
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Dict, Any, Optional

from ..errors import ValidationError, PersistenceError
from ..persistence.store import RecordStore, MATCHES_FIELD
from ..ranking.ranker import MatchEnvelope

logger = logging.getLogger(__name__)


class DeliveryState(Enum):
    """Lifecycle of one submission as seen by the caller."""
    SUBMITTED = "submitted"
    PENDING_MATCH = "pending_match"
    MATCHED = "matched"
    TIMED_OUT = "timed_out"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset({
    DeliveryState.MATCHED,
    DeliveryState.TIMED_OUT,
    DeliveryState.FAILED,
    DeliveryState.CANCELLED,
})

_USER_MESSAGES = {
    DeliveryState.PENDING_MATCH: "Your matches are being calculated.",
    DeliveryState.MATCHED: "Your matches are ready.",
    DeliveryState.TIMED_OUT: (
        "Match calculation is taking longer than expected. Please check back later."
    ),
    DeliveryState.FAILED: "We could not check on your matches right now. Please try again.",
    DeliveryState.CANCELLED: "Stopped checking for matches.",
}


@dataclass
class PollPolicy:
    """
    Polling configuration.

    Attributes:
        interval_seconds: Wait before each poll attempt
        max_attempts: Number of reads after which polling times out
    """
    interval_seconds: float = 3.0
    max_attempts: int = 20

    def validate(self) -> None:
        """Validate configuration values."""
        if self.interval_seconds < 0:
            raise ValidationError(f"interval_seconds must be non-negative, got {self.interval_seconds}")
        if self.max_attempts < 1:
            raise ValidationError(f"max_attempts must be at least 1, got {self.max_attempts}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PollPolicy":
        return cls(**d)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "PollPolicy":
        """Create from main config dictionary."""
        delivery_config = config.get("delivery", {})
        return cls(
            interval_seconds=delivery_config.get("poll_interval_seconds", 3.0),
            max_attempts=delivery_config.get("max_attempts", 20),
        )


@dataclass(frozen=True)
class PollOutcome:
    """
    Terminal result of a polling run.

    Attributes:
        state: Terminal DeliveryState
        attempts: Number of reads performed
        envelope: Match envelope when state is MATCHED
        error: Error description when state is FAILED
    """
    state: DeliveryState
    attempts: int
    envelope: Optional[MatchEnvelope] = None
    error: Optional[str] = None

    @property
    def user_message(self) -> str:
        return _USER_MESSAGES.get(self.state, "")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "attempts": self.attempts,
            "message": self.user_message,
            "envelope": self.envelope.to_dict() if self.envelope else None,
            "error": self.error,
        }


class MatchPoller:
    """
    Bounded poller for one subject's match envelope.

    The poll count is part of the state. Each call to ``poll_once`` is one
    transition; ``run`` drives the loop with the configured interval.
    ``cancel`` may be called from another thread and interrupts the wait.

    Attributes:
        store: Record store to read from
        subject_id: Record id of the subject
        policy: PollPolicy in effect
        state: Current DeliveryState
        attempts: Reads performed so far
    """

    def __init__(
        self,
        store: RecordStore,
        subject_id: str,
        policy: Optional[PollPolicy] = None
    ):
        self.store = store
        self.subject_id = subject_id
        self.policy = policy or PollPolicy()
        self.policy.validate()

        self.state = DeliveryState.PENDING_MATCH
        self.attempts = 0
        self.envelope: Optional[MatchEnvelope] = None
        self.error: Optional[str] = None

        self._lock = threading.Lock()
        self._cancelled = threading.Event()

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def _transition(self, new_state: DeliveryState) -> bool:
        """Move to new_state unless already terminal. Returns True if moved."""
        with self._lock:
            if self.state in TERMINAL_STATES:
                return False
            logger.debug(f"Subject {self.subject_id}: {self.state.value} -> {new_state.value}")
            self.state = new_state
            return True

    def cancel(self) -> None:
        """Stop polling. Has no effect once a terminal state is reached."""
        self._cancelled.set()
        if self._transition(DeliveryState.CANCELLED):
            logger.info(f"Polling cancelled for subject {self.subject_id} after {self.attempts} attempts")

    def poll_once(self) -> DeliveryState:
        """
        Perform one poll attempt.

        Returns:
            The state after this attempt
        """
        if self.is_terminal:
            return self.state

        self.attempts += 1
        try:
            record = self.store.get_by_id(self.subject_id)
        except PersistenceError as e:
            logger.error(f"Error polling for matches of {self.subject_id}: {e}")
            self.error = str(e)
            self._transition(DeliveryState.FAILED)
            return self.state

        payload = record.get(MATCHES_FIELD)
        if payload:
            try:
                envelope = MatchEnvelope.from_dict(payload)
            except (KeyError, TypeError, ValueError) as e:
                logger.error(f"Malformed match envelope for {self.subject_id}: {e}")
                self.error = f"Malformed match envelope: {e}"
                self._transition(DeliveryState.FAILED)
                return self.state
            self.envelope = envelope
            if self._transition(DeliveryState.MATCHED):
                logger.info(
                    f"Matches found for {self.subject_id} on attempt {self.attempts}: "
                    f"{len(envelope.matches)} matches"
                )
        elif self.attempts >= self.policy.max_attempts:
            if self._transition(DeliveryState.TIMED_OUT):
                logger.info(f"Max polling attempts reached for {self.subject_id}")
        else:
            logger.debug(f"Polling attempt {self.attempts} for {self.subject_id}: no matches yet")

        return self.state

    def run(self) -> PollOutcome:
        """
        Poll until a terminal state is reached.

        Waits one interval before every attempt.

        Returns:
            PollOutcome describing the terminal state
        """
        while not self.is_terminal:
            if self._cancelled.wait(self.policy.interval_seconds):
                self._transition(DeliveryState.CANCELLED)
                break
            self.poll_once()
        return self.outcome()

    def outcome(self) -> PollOutcome:
        """Snapshot of the current state as a PollOutcome."""
        return PollOutcome(
            state=self.state,
            attempts=self.attempts,
            envelope=self.envelope if self.state == DeliveryState.MATCHED else None,
            error=self.error,
        )


def poll_for_matches(
    store: RecordStore,
    subject_id: str,
    policy: Optional[PollPolicy] = None
) -> PollOutcome:
    """Convenience wrapper: build a MatchPoller and run it to completion."""
    return MatchPoller(store, subject_id, policy).run()
