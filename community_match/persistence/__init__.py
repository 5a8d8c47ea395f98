"""Persistence contract and reference record stores."""

from .store import (
    RecordStore,
    InMemoryRecordStore,
    JsonFileRecordStore,
    MATCHES_FIELD,
)

__all__ = [
    "RecordStore",
    "InMemoryRecordStore",
    "JsonFileRecordStore",
    "MATCHES_FIELD",
]
