"""Hosted relational store access: REST client, row mapping and realtime feed."""

from .base import (
    CHANNEL_ERROR,
    CLOSED,
    SUBSCRIBED,
    TIMED_OUT,
    AuthenticationRequired,
    ChangeFeed,
    ChangeFeedFactory,
    RemoteStore,
    RemoteStoreError,
)
from .client import SupabaseRestClient
from .realtime import RealtimeFeed, postgres_changes_config, websocket_url
from .rows import (
    event_to_row,
    items_to_rows,
    record_from_row,
    record_to_rows,
    summary_from_row,
)

__all__ = [
    "AuthenticationRequired",
    "CHANNEL_ERROR",
    "CLOSED",
    "ChangeFeed",
    "ChangeFeedFactory",
    "RealtimeFeed",
    "RemoteStore",
    "RemoteStoreError",
    "SUBSCRIBED",
    "SupabaseRestClient",
    "TIMED_OUT",
    "event_to_row",
    "items_to_rows",
    "record_from_row",
    "record_to_rows",
    "postgres_changes_config",
    "summary_from_row",
    "websocket_url",
]
