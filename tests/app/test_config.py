from __future__ import annotations

import json
from pathlib import Path

from bidscreen.app.config import load_settings


def _write_config(tmp_path: Path, data: dict) -> Path:
    path = tmp_path / "config.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def test_missing_provider_config_disables_premium(tmp_path: Path) -> None:
    settings = load_settings(_write_config(tmp_path, {}), environ={})

    assert settings.premium_features_enabled is False
    assert settings.remote_configured is False


def test_file_sections_are_read(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("BIDSCREEN_DB_PATH", raising=False)
    path = _write_config(
        tmp_path,
        {
            "supabase": {"url": "https://x.supabase.co", "anon_key": "anon"},
            "stripe": {"secret_key": "sk_test"},
            "sync": {"max_reconnect_attempts": 3, "base_delay_seconds": 0.5},
            "offline_queue": {"max_replay_attempts": 4},
            "local_store": {"max_bytes": 1024},
            "paths": {"db_path": "data/device.db"},
        },
    )

    settings = load_settings(path, environ={})

    assert settings.remote_configured is True
    assert settings.stripe_secret_key == "sk_test"
    assert settings.sync.max_reconnect_attempts == 3
    assert settings.sync.base_delay_seconds == 0.5
    assert settings.sync.max_delay_seconds == 10.0
    assert settings.max_replay_attempts == 4
    assert settings.local_store_max_bytes == 1024
    assert settings.db_path == (tmp_path / "data" / "device.db").resolve()


def test_environment_overrides_file(tmp_path: Path) -> None:
    path = _write_config(
        tmp_path, {"supabase": {"url": "https://file.supabase.co", "anon_key": "file"}}
    )

    settings = load_settings(
        path,
        environ={
            "SUPABASE_URL": "https://env.supabase.co",
            "BIDSCREEN_PREMIUM_FEATURES_ENABLED": "false",
            "BIDSCREEN_DB_PATH": str(tmp_path / "env.db"),
        },
    )

    assert settings.supabase_url == "https://env.supabase.co"
    assert settings.supabase_anon_key == "file"
    assert settings.premium_features_enabled is False
    assert settings.db_path == tmp_path / "env.db"
