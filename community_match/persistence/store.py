"""
Record store contract and reference implementations.

The record store is an external collaborator: the matching core only talks
to it through the narrow ``RecordStore`` protocol and never manages
connections or schemas. Stores are constructed explicitly and passed to
the components that need them.

Implementations:
- InMemoryRecordStore: thread-safe dictionary store (tests, single process)
- JsonFileRecordStore: same semantics, persisted to one JSON document
"""

import copy
import fcntl
import json
import logging
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Any, Iterator, List, Optional, Protocol, runtime_checkable

from ..errors import PersistenceError, RecordNotFound

logger = logging.getLogger(__name__)

MATCHES_FIELD = "user_matches"


@runtime_checkable
class RecordStore(Protocol):
    """Persistence contract used by submission, matching and polling."""

    def insert(self, record: Dict[str, Any]) -> str:
        """Store a new record and return its id."""
        ...

    def get_by_id(self, record_id: str) -> Dict[str, Any]:
        """Return a copy of the record, or raise RecordNotFound."""
        ...

    def query_by_flags(
        self,
        predicates: Dict[str, Any],
        order_by: Optional[str] = None,
        descending: bool = False
    ) -> List[Dict[str, Any]]:
        """Return records whose fields equal every predicate value."""
        ...

    def update(self, record_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Merge fields into an existing record and return the new copy."""
        ...


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class InMemoryRecordStore:
    """
    Dictionary-backed record store.

    Records are deep-copied on the way in and out, so callers can never
    mutate stored state through a returned object.
    """

    def __init__(self, records: Optional[Dict[str, Dict[str, Any]]] = None):
        self._records: Dict[str, Dict[str, Any]] = copy.deepcopy(records) if records else {}
        self._lock = threading.RLock()

    @contextmanager
    def _guard(self) -> Iterator[None]:
        """Hold exclusive access to the records for one operation."""
        with self._lock:
            yield

    def __len__(self) -> int:
        with self._guard():
            return len(self._records)

    def insert(self, record: Dict[str, Any]) -> str:
        record_id = record.get("id") or str(uuid.uuid4())
        with self._guard():
            if record_id in self._records:
                raise PersistenceError(f"Duplicate record id: {record_id}")
            stored = copy.deepcopy(record)
            stored["id"] = record_id
            self._records[record_id] = stored
            try:
                self._commit()
            except PersistenceError:
                del self._records[record_id]
                raise
        logger.debug(f"Inserted record {record_id}")
        return record_id

    def get_by_id(self, record_id: str) -> Dict[str, Any]:
        with self._guard():
            if record_id not in self._records:
                raise RecordNotFound(record_id)
            return copy.deepcopy(self._records[record_id])

    def query_by_flags(
        self,
        predicates: Dict[str, Any],
        order_by: Optional[str] = None,
        descending: bool = False
    ) -> List[Dict[str, Any]]:
        with self._guard():
            rows = [
                copy.deepcopy(r) for r in self._records.values()
                if all(r.get(k) == v for k, v in predicates.items())
            ]
        if order_by is not None:
            # Records lacking the key sort first; id keeps the order total
            rows.sort(
                key=lambda r: (r.get(order_by) is not None, r.get(order_by) or "", r["id"]),
                reverse=descending,
            )
        return rows

    def update(self, record_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        with self._guard():
            if record_id not in self._records:
                raise RecordNotFound(record_id)
            previous = self._records[record_id]
            record = copy.deepcopy(previous)
            record.update(copy.deepcopy(fields))
            record["updated_at"] = _utc_now()
            self._records[record_id] = record
            try:
                self._commit()
            except PersistenceError:
                self._records[record_id] = previous
                raise
            return copy.deepcopy(record)

    def _commit(self) -> None:
        """Hook for durable subclasses; called inside _guard."""


class JsonFileRecordStore(InMemoryRecordStore):
    """
    Record store persisted as a single JSON document.

    Several processes may share the file (``match`` writing while ``poll``
    reads). Every operation takes an exclusive flock on a sidecar
    ``.lock`` file and reloads the document before touching it, so reads
    see other writers and read-modify-write cycles never drop their changes.
    """

    def __init__(self, filepath: str):
        self.filepath = Path(filepath)
        self.lock_path = self.filepath.with_suffix(self.filepath.suffix + ".lock")
        super().__init__()
        with self._guard():
            logger.info(f"Opened record store {filepath} with {len(self._records)} records")

    @contextmanager
    def _guard(self) -> Iterator[None]:
        with self._lock:
            try:
                self.lock_path.parent.mkdir(parents=True, exist_ok=True)
                handle = open(self.lock_path, "a")
            except OSError as e:
                raise PersistenceError(f"Cannot lock record store {self.filepath}: {e}") from e
            with handle:
                fcntl.flock(handle, fcntl.LOCK_EX)
                try:
                    self._records = self._read()
                    yield
                finally:
                    fcntl.flock(handle, fcntl.LOCK_UN)

    def _read(self) -> Dict[str, Dict[str, Any]]:
        if not self.filepath.exists():
            return {}
        try:
            with open(self.filepath, "r") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Cannot read record store {self.filepath}: {e}") from e

    def _commit(self) -> None:
        tmp_path = self.filepath.with_suffix(self.filepath.suffix + ".tmp")
        try:
            self.filepath.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w") as f:
                json.dump(self._records, f, indent=2, sort_keys=True)
            tmp_path.replace(self.filepath)
        except OSError as e:
            raise PersistenceError(f"Cannot write record store {self.filepath}: {e}") from e
