"""Device-local persistence: the SQLite file and the key/value store on top of it."""

from .config import CONFIG_FILE, DEFAULT_DB_NAME, load_config, resolve_db_path
from .connection import DEFAULT_BUSY_TIMEOUT, DatabaseError, get_connection
from .local_store import (
    ACTIVE_DISPLAY_KEY,
    DEFAULT_MAX_BYTES,
    DISPLAY_KEY_PREFIX,
    OFFLINE_QUEUE_KEY,
    LocalStore,
    LocalStoreCorrupted,
    LocalStoreError,
    LocalStoreQuotaExceeded,
    display_key,
)
from .schema import ensure_schema

__all__ = [
    "ACTIVE_DISPLAY_KEY",
    "CONFIG_FILE",
    "DEFAULT_BUSY_TIMEOUT",
    "DEFAULT_DB_NAME",
    "DEFAULT_MAX_BYTES",
    "DISPLAY_KEY_PREFIX",
    "DatabaseError",
    "LocalStore",
    "LocalStoreCorrupted",
    "LocalStoreError",
    "LocalStoreQuotaExceeded",
    "OFFLINE_QUEUE_KEY",
    "display_key",
    "ensure_schema",
    "get_connection",
    "load_config",
    "resolve_db_path",
]
