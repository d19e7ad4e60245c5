from __future__ import annotations

import sqlite3

from .tables import LOCAL_STORE_TABLE_SQL, SCHEMA_VERSION, SCHEMA_VERSION_TABLE_SQL


def ensure_schema(conn: sqlite3.Connection) -> None:
    """Create the device store tables on first use."""

    with conn:
        conn.execute(SCHEMA_VERSION_TABLE_SQL)
        conn.execute(LOCAL_STORE_TABLE_SQL)
        conn.execute(
            "INSERT OR IGNORE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,)
        )


__all__ = ["SCHEMA_VERSION", "ensure_schema"]
