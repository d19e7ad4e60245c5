from __future__ import annotations

import sqlite3
from typing import Any


class BaseRepository:
    """Holds the connection and the few query shapes repositories share."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def _scalar(self, query: str, params: tuple[Any, ...] = ()) -> Any:
        row = self.conn.execute(query, params).fetchone()
        return row[0] if row is not None else None

    def _column(self, query: str, params: tuple[Any, ...] = ()) -> list[Any]:
        return [row[0] for row in self.conn.execute(query, params)]

    def _write(self, query: str, params: tuple[Any, ...] = ()) -> int:
        """Run one statement in its own transaction; returns the affected row count."""

        with self.conn:
            return self.conn.execute(query, params).rowcount
