"""Key-value persistence adapters for the serialized report collection."""
from __future__ import annotations

import logging
import threading
from typing import Dict, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models import KeyValueEntry

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """Raised when the backing store cannot be read or written."""


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[bytes]:
        ...

    def set(self, key: str, value: bytes) -> None:
        ...


class MemoryKeyValueStore:
    """Process-local store, used for tests and ephemeral sessions."""

    def __init__(self, initial: Optional[Dict[str, bytes]] = None):
        self._data: Dict[str, bytes] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        with self._lock:
            self._data[key] = bytes(value)


class SQLAlchemyKeyValueStore:
    """Stores each key as one row of ``kv_entries``; a write replaces the whole value in one transaction."""

    def get(self, key: str) -> Optional[bytes]:
        try:
            entry = db.session.get(KeyValueEntry, key)
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise PersistenceError(f"Unable to read {key}") from exc
        return bytes(entry.value) if entry else None

    def set(self, key: str, value: bytes) -> None:
        try:
            entry = db.session.get(KeyValueEntry, key)
            if entry:
                entry.value = value
            else:
                db.session.add(KeyValueEntry(key=key, value=value))
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise PersistenceError(f"Unable to write {key}") from exc
        logger.debug("Stored %s (%d bytes)", key, len(value))
