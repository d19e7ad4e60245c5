"""Configuration for Bidscreen.

Settings come from ``config.json`` (optional) with environment variables
taking precedence::

    {
        "premium_features_enabled": true,
        "supabase": {"url": "...", "anon_key": "..."},
        "sync": {"max_reconnect_attempts": 5, "base_delay_seconds": 1,
                 "max_delay_seconds": 10},
        "offline_queue": {"max_replay_attempts": null},
        "local_store": {"max_bytes": 5242880}
    }
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from bidscreen.infrastructure.db import DEFAULT_MAX_BYTES, load_config, resolve_db_path
from bidscreen.infrastructure.observability import get_logger

logger = get_logger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _flag(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_VALUES


def _section(cfg: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = cfg.get(name)
    return value if isinstance(value, Mapping) else {}


@dataclass
class SyncSettings:
    max_reconnect_attempts: int = 5
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 10.0


@dataclass
class Settings:
    premium_features_enabled: bool = True
    supabase_url: str | None = None
    supabase_anon_key: str | None = None
    supabase_service_role_key: str | None = None
    supabase_access_token: str | None = None
    stripe_secret_key: str | None = None
    db_path: Path = Path("bidscreen.db")
    local_store_max_bytes: int = DEFAULT_MAX_BYTES
    max_replay_attempts: int | None = None
    connectivity_interval_seconds: float = 15.0
    sync: SyncSettings = field(default_factory=SyncSettings)

    def validate(self) -> "Settings":
        """Fall back to free/local mode when the provider config is incomplete."""

        if self.premium_features_enabled and not (self.supabase_url and self.supabase_anon_key):
            logger.warning(
                "Premium features enabled but SUPABASE_URL or SUPABASE_ANON_KEY is missing; "
                "running in free mode"
            )
            self.premium_features_enabled = False
        return self

    @property
    def remote_configured(self) -> bool:
        return bool(self.premium_features_enabled and self.supabase_url and self.supabase_anon_key)


def load_settings(
    config_path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Build validated :class:`Settings` from ``config.json`` and the environment."""

    env = os.environ if environ is None else environ
    cfg = load_config(config_path)
    supabase = _section(cfg, "supabase")
    stripe = _section(cfg, "stripe")
    sync_cfg = _section(cfg, "sync")
    queue_cfg = _section(cfg, "offline_queue")
    store_cfg = _section(cfg, "local_store")

    db_path = resolve_db_path(cfg, config_path)
    if env.get("BIDSCREEN_DB_PATH"):
        db_path = Path(env["BIDSCREEN_DB_PATH"]).expanduser()

    max_replay = queue_cfg.get("max_replay_attempts")
    settings = Settings(
        premium_features_enabled=_flag(
            env.get("BIDSCREEN_PREMIUM_FEATURES_ENABLED"),
            _flag(cfg.get("premium_features_enabled"), True),
        ),
        supabase_url=env.get("SUPABASE_URL") or supabase.get("url"),
        supabase_anon_key=env.get("SUPABASE_ANON_KEY") or supabase.get("anon_key"),
        supabase_service_role_key=env.get("SUPABASE_SERVICE_ROLE_KEY")
        or supabase.get("service_role_key"),
        supabase_access_token=env.get("SUPABASE_ACCESS_TOKEN") or supabase.get("access_token"),
        stripe_secret_key=env.get("STRIPE_SECRET_KEY") or stripe.get("secret_key"),
        db_path=db_path,
        local_store_max_bytes=int(
            env.get("BIDSCREEN_LOCAL_STORE_MAX_BYTES")
            or store_cfg.get("max_bytes")
            or DEFAULT_MAX_BYTES
        ),
        max_replay_attempts=int(max_replay) if max_replay is not None else None,
        connectivity_interval_seconds=float(cfg.get("connectivity_interval_seconds", 15.0)),
        sync=SyncSettings(
            max_reconnect_attempts=int(sync_cfg.get("max_reconnect_attempts", 5)),
            base_delay_seconds=float(sync_cfg.get("base_delay_seconds", 1.0)),
            max_delay_seconds=float(sync_cfg.get("max_delay_seconds", 10.0)),
        ),
    )
    return settings.validate()


__all__ = ["Settings", "SyncSettings", "load_settings"]
