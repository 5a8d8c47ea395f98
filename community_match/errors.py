"""Exception hierarchy shared by all community_match modules."""


class CommunityMatchError(Exception):
    """Base class for all errors raised by this package."""


class ValidationError(CommunityMatchError, ValueError):
    """Input failed a shape or range check before any scoring or write."""


class PersistenceError(CommunityMatchError):
    """The record store was unavailable or rejected an operation."""


class RecordNotFound(PersistenceError):
    """No stored record exists for the requested id."""

    def __init__(self, record_id: str):
        super().__init__(f"Record not found: {record_id}")
        self.record_id = record_id


class RecordIntegrityError(PersistenceError):
    """A stored record is malformed (e.g. an attribute dimension is missing)."""
