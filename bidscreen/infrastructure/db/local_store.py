"""Per-device key/value store backed by SQLite.

This is the "local storage" half of the storage adapter: synchronous,
bounded by a byte quota, and holding one JSON blob per key. Key layout:

``display:<eventId>``
    serialised :class:`~bidscreen.domain.models.StorageRecord`
``activeDisplayId``
    id of the last launched event (retargets same-device broadcasts)
``offlineQueue``
    pending remote writes recorded while disconnected
"""

from __future__ import annotations

import json
import sqlite3
from contextlib import AbstractContextManager
from pathlib import Path
from typing import Any, Callable

from bidscreen.infrastructure.observability import get_logger

from .connection import DatabaseError, get_connection
from .repositories import LocalStoreRepository

ConnectionFactory = Callable[[], AbstractContextManager[sqlite3.Connection]]

DISPLAY_KEY_PREFIX = "display:"
ACTIVE_DISPLAY_KEY = "activeDisplayId"
OFFLINE_QUEUE_KEY = "offlineQueue"
DEFAULT_MAX_BYTES = 5 * 1024 * 1024


def display_key(event_id: str) -> str:
    return f"{DISPLAY_KEY_PREFIX}{event_id}"


class LocalStoreError(Exception):
    """Raised when the device store cannot complete an operation."""


class LocalStoreQuotaExceeded(LocalStoreError):
    """Raised when a write would push the store past its byte quota."""


class LocalStoreCorrupted(LocalStoreError):
    """Raised when a stored value can no longer be decoded."""


class LocalStore:
    """Synchronous, quota-bounded key/value persistence for one device.

    Uses the connection factory pattern so tests can point the store at a
    temporary database::

        store = LocalStore.from_sqlite_path(tmp_path / "device.db")
        store.set_json(display_key("k3j9x0ab"), record.to_local())
    """

    def __init__(
        self,
        connection_factory: ConnectionFactory,
        *,
        max_bytes: int = DEFAULT_MAX_BYTES,
    ) -> None:
        self._connection_factory = connection_factory
        self.max_bytes = max_bytes
        self._logger = get_logger(__name__)

    @classmethod
    def from_sqlite_path(
        cls, db_path: str | Path, *, max_bytes: int = DEFAULT_MAX_BYTES
    ) -> "LocalStore":
        def connection_factory() -> AbstractContextManager[sqlite3.Connection]:
            return get_connection(db_path)

        return cls(connection_factory, max_bytes=max_bytes)

    def _with_repository(self, fn: Callable[[LocalStoreRepository], Any]) -> Any:
        try:
            with self._connection_factory() as conn:
                return fn(LocalStoreRepository(conn))
        except (sqlite3.Error, DatabaseError, OSError) as exc:
            raise LocalStoreError(f"Local store failure: {exc}") from exc

    # -------------------- raw strings --------------------
    def get(self, key: str) -> str | None:
        return self._with_repository(lambda repo: repo.get(key))

    def set(self, key: str, value: str) -> None:
        entry_size = len(key.encode("utf-8")) + len(value.encode("utf-8"))

        def _write(repo: LocalStoreRepository) -> None:
            used = repo.used_bytes(excluding=key)
            if used + entry_size > self.max_bytes:
                raise LocalStoreQuotaExceeded(
                    f"Writing {key!r} needs {entry_size} bytes but only "
                    f"{max(self.max_bytes - used, 0)} of {self.max_bytes} remain"
                )
            repo.set(key, value)

        self._with_repository(_write)

    def remove(self, key: str) -> bool:
        return bool(self._with_repository(lambda repo: repo.remove(key)))

    def keys(self, prefix: str = "") -> list[str]:
        return list(self._with_repository(lambda repo: repo.keys(prefix)))

    def used_bytes(self) -> int:
        return int(self._with_repository(lambda repo: repo.used_bytes()))

    # -------------------- JSON blobs --------------------
    def get_json(self, key: str) -> Any:
        raw = self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            self._logger.error("Corrupted value under %s: %s", key, exc)
            raise LocalStoreCorrupted(f"Value under {key!r} is not valid JSON") from exc

    def set_json(self, key: str, value: Any) -> None:
        try:
            encoded = json.dumps(value, separators=(",", ":"))
        except (TypeError, ValueError) as exc:
            raise LocalStoreError(f"Value for {key!r} is not serialisable: {exc}") from exc
        self.set(key, encoded)


__all__ = [
    "ACTIVE_DISPLAY_KEY",
    "DEFAULT_MAX_BYTES",
    "DISPLAY_KEY_PREFIX",
    "LocalStore",
    "LocalStoreCorrupted",
    "LocalStoreError",
    "LocalStoreQuotaExceeded",
    "OFFLINE_QUEUE_KEY",
    "display_key",
]
