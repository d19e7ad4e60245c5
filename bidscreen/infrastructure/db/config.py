"""Locating ``config.json`` and the device database file."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping

DEFAULT_DB_NAME = "bidscreen.db"

PROJECT_ROOT = Path(__file__).resolve().parents[3]
CONFIG_FILE = PROJECT_ROOT / "config.json"


def load_config(config_path: Path | str | None = None) -> dict[str, Any]:
    """Return the parsed config file, or ``{}`` when there is none."""

    path = Path(config_path) if config_path is not None else CONFIG_FILE
    if not path.is_file():
        return {}
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a JSON object")
    return data


def resolve_db_path(
    cfg: Mapping[str, Any], config_path: Path | str | None = None
) -> Path:
    """Resolve ``paths.db_path`` relative to the directory holding the config."""

    base = Path(config_path).parent if config_path is not None else PROJECT_ROOT
    paths = cfg.get("paths")
    raw = paths.get("db_path") if isinstance(paths, Mapping) else None
    db_path = Path(raw or DEFAULT_DB_NAME).expanduser()
    if not db_path.is_absolute():
        db_path = (base / db_path).resolve()
    return db_path


__all__ = ["CONFIG_FILE", "DEFAULT_DB_NAME", "load_config", "resolve_db_path"]
