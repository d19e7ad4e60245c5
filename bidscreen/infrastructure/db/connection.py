"""SQLite connections for the device store."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

DEFAULT_BUSY_TIMEOUT = 5.0


class DatabaseError(Exception):
    """Raised when the device database cannot be opened or configured."""


def _configure(conn: sqlite3.Connection, *, wal: bool, busy_timeout: float) -> None:
    statements = [f"PRAGMA busy_timeout={int(busy_timeout * 1000)}", "PRAGMA foreign_keys=ON"]
    if wal:
        statements.append("PRAGMA journal_mode=WAL")
    try:
        for statement in statements:
            conn.execute(statement)
    except sqlite3.Error as exc:
        raise DatabaseError(f"Could not configure device database: {exc}") from exc


@contextmanager
def get_connection(
    db_path: str | Path,
    *,
    timeout: float = DEFAULT_BUSY_TIMEOUT,
    wal: bool = True,
) -> Iterator[sqlite3.Connection]:
    """Open ``db_path`` (creating its directory), yield it, then close it."""

    path = Path(db_path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(path, timeout=timeout)
    except (OSError, sqlite3.Error) as exc:
        raise DatabaseError(f"Cannot open device database {path}: {exc}") from exc
    conn.row_factory = sqlite3.Row
    try:
        _configure(conn, wal=wal, busy_timeout=timeout)
        yield conn
    finally:
        conn.close()
