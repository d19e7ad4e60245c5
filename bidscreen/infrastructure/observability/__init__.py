"""Logging and metrics shared by every Bidscreen layer."""

from .logging import (
    configure_logging,
    current_log_context,
    get_logger,
    log_context,
    log_exception,
)
from .metrics import (
    Timer,
    format_prometheus,
    get_metrics_summary,
    get_registry,
    increment_counter,
    observe_histogram,
    record_fallback,
    record_listener_error,
    record_queue_replay,
    record_reconnect_attempt,
    record_storage_write,
    record_sync_notification,
    record_webhook_event,
)

__all__ = [
    "Timer",
    "configure_logging",
    "current_log_context",
    "format_prometheus",
    "get_logger",
    "get_metrics_summary",
    "get_registry",
    "increment_counter",
    "log_context",
    "log_exception",
    "observe_histogram",
    "record_fallback",
    "record_listener_error",
    "record_queue_replay",
    "record_reconnect_attempt",
    "record_storage_write",
    "record_sync_notification",
    "record_webhook_event",
]
