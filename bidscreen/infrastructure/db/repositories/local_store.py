from __future__ import annotations

import sqlite3

from bidscreen.domain.models import utc_timestamp

from ..schema import ensure_schema
from .base import BaseRepository


class LocalStoreRepository(BaseRepository):
    """Raw key/value rows of the ``local_store`` table."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        super().__init__(conn)
        ensure_schema(self.conn)

    def get(self, key: str) -> str | None:
        return self._scalar("SELECT value FROM local_store WHERE key = ?", (key,))

    def set(self, key: str, value: str) -> None:
        self._write(
            "INSERT INTO local_store (key, value, updated_at) VALUES (?, ?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value, "
            "updated_at = excluded.updated_at",
            (key, value, utc_timestamp()),
        )

    def remove(self, key: str) -> bool:
        return self._write("DELETE FROM local_store WHERE key = ?", (key,)) > 0

    def keys(self, prefix: str = "") -> list[str]:
        return self._column(
            "SELECT key FROM local_store WHERE substr(key, 1, ?) = ? ORDER BY key",
            (len(prefix), prefix),
        )

    def used_bytes(self, *, excluding: str | None = None) -> int:
        """Total stored size (keys plus values, UTF-8) optionally skipping one key."""

        total = self._scalar(
            "SELECT COALESCE(SUM(length(CAST(key AS BLOB)) + length(CAST(value AS BLOB))), 0) "
            "FROM local_store WHERE key != ?",
            (excluding if excluding is not None else "",),
        )
        return int(total or 0)
