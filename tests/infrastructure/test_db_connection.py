from pathlib import Path

import pytest

from bidscreen.infrastructure.db import (
    DatabaseError,
    ensure_schema,
    get_connection,
    load_config,
    resolve_db_path,
)


def test_connection_creates_directory_and_applies_pragmas(tmp_path: Path) -> None:
    db_file = tmp_path / "nested" / "device.db"

    with get_connection(db_file, timeout=2.0) as conn:
        journal = conn.execute("PRAGMA journal_mode").fetchone()[0]
        busy = conn.execute("PRAGMA busy_timeout").fetchone()[0]
        foreign_keys = conn.execute("PRAGMA foreign_keys").fetchone()[0]

    assert db_file.exists()
    assert journal == "wal"
    assert busy == 2000
    assert foreign_keys == 1


def test_connection_to_unusable_path_raises(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")

    with pytest.raises(DatabaseError):
        with get_connection(blocker / "device.db"):
            pass


def test_ensure_schema_is_idempotent(tmp_path: Path) -> None:
    with get_connection(tmp_path / "device.db") as conn:
        ensure_schema(conn)
        ensure_schema(conn)
        tables = {
            row["name"]
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
        }
        versions = conn.execute("SELECT COUNT(*) FROM schema_version").fetchone()[0]

    assert {"local_store", "schema_version"} <= tables
    assert versions == 1


def test_missing_config_file_is_empty(tmp_path: Path) -> None:
    assert load_config(tmp_path / "absent.json") == {}


def test_db_path_resolves_relative_to_config(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"

    assert resolve_db_path({}, config_path) == (tmp_path / "bidscreen.db").resolve()
    assert resolve_db_path({"paths": {"db_path": "/srv/screen.db"}}, config_path) == Path(
        "/srv/screen.db"
    )
