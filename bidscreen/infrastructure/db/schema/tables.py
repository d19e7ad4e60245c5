SCHEMA_VERSION = 1

SCHEMA_VERSION_TABLE_SQL = (
    "CREATE TABLE IF NOT EXISTS schema_version ("
    "version INTEGER PRIMARY KEY, "
    "applied_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')))"
)

# One row per key: display:<eventId>, activeDisplayId, offlineQueue.
LOCAL_STORE_TABLE_SQL = (
    "CREATE TABLE IF NOT EXISTS local_store ("
    "key TEXT PRIMARY KEY, "
    "value TEXT NOT NULL, "
    "updated_at TEXT NOT NULL)"
)
