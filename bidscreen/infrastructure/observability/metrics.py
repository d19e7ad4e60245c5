"""In-process metrics for Bidscreen.

Counters and histograms are kept in memory and exported at the display
service's ``/metrics`` endpoint. They answer the operational questions of
a live auction night: how often storage fell back to the device, whether
queued writes replayed, and whether the realtime channel keeps reconnecting.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Iterator, Mapping
from dataclasses import dataclass

Labels = Mapping[str, "str | None"]
LabelKey = tuple[tuple[str, "str | None"], ...]


def _key(labels: Labels | None) -> LabelKey:
    return tuple(sorted(labels.items())) if labels else ()


class _Metric:
    kind = "untyped"

    def __init__(self, name: str, help_text: str = "") -> None:
        self.name = name
        self.help_text = help_text
        self._lock = threading.Lock()


class Counter(_Metric):
    """Monotonically increasing value per label set."""

    kind = "counter"

    def __init__(self, name: str, help_text: str = "") -> None:
        super().__init__(name, help_text)
        self._values: dict[LabelKey, float] = {}

    def inc(self, value: float = 1.0, labels: Labels | None = None) -> None:
        key = _key(labels)
        with self._lock:
            self._values[key] = self._values.get(key, 0.0) + value

    def get(self, labels: Labels | None = None) -> float:
        with self._lock:
            return self._values.get(_key(labels), 0.0)

    def samples(self) -> Iterator[tuple[LabelKey, float]]:
        with self._lock:
            items = list(self._values.items())
        yield from items


@dataclass
class _Aggregate:
    count: int = 0
    total: float = 0.0
    minimum: float = float("inf")
    maximum: float = float("-inf")

    def add(self, value: float) -> None:
        self.count += 1
        self.total += value
        self.minimum = min(self.minimum, value)
        self.maximum = max(self.maximum, value)

    def stats(self) -> dict[str, float]:
        if not self.count:
            return {"count": 0, "sum": 0.0, "avg": 0.0, "min": 0.0, "max": 0.0}
        return {
            "count": self.count,
            "sum": self.total,
            "avg": self.total / self.count,
            "min": self.minimum,
            "max": self.maximum,
        }


class Histogram(_Metric):
    """Running count, sum, min and max of observations per label set."""

    kind = "summary"

    def __init__(self, name: str, help_text: str = "") -> None:
        super().__init__(name, help_text)
        self._aggregates: dict[LabelKey, _Aggregate] = {}

    def observe(self, value: float, labels: Labels | None = None) -> None:
        key = _key(labels)
        with self._lock:
            self._aggregates.setdefault(key, _Aggregate()).add(value)

    def get_stats(self, labels: Labels | None = None) -> dict[str, float]:
        with self._lock:
            return self._aggregates.get(_key(labels), _Aggregate()).stats()

    def samples(self) -> Iterator[tuple[LabelKey, dict[str, float]]]:
        with self._lock:
            items = [(key, agg.stats()) for key, agg in self._aggregates.items()]
        yield from items


class MetricRegistry:
    def __init__(self) -> None:
        self._counters: dict[str, Counter] = {}
        self._histograms: dict[str, Histogram] = {}
        self._lock = threading.Lock()

    def counter(self, name: str, help_text: str = "") -> Counter:
        with self._lock:
            if name not in self._counters:
                self._counters[name] = Counter(name, help_text)
            return self._counters[name]

    def histogram(self, name: str, help_text: str = "") -> Histogram:
        with self._lock:
            if name not in self._histograms:
                self._histograms[name] = Histogram(name, help_text)
            return self._histograms[name]

    def all_counters(self) -> dict[str, Counter]:
        with self._lock:
            return dict(self._counters)

    def all_histograms(self) -> dict[str, Histogram]:
        with self._lock:
            return dict(self._histograms)

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._histograms.clear()


_registry = MetricRegistry()


def get_registry() -> MetricRegistry:
    return _registry


def increment_counter(
    name: str, value: float = 1.0, labels: Labels | None = None, help_text: str = ""
) -> None:
    _registry.counter(name, help_text).inc(value, labels)


def observe_histogram(
    name: str, value: float, labels: Labels | None = None, help_text: str = ""
) -> None:
    _registry.histogram(name, help_text).observe(value, labels)


class Timer:
    """Record the wall time of a ``with`` block into a histogram.

    The observation is recorded whether the block returns or raises.
    """

    def __init__(self, histogram_name: str, labels: Labels | None = None, help_text: str = "") -> None:
        self.histogram_name = histogram_name
        self.labels = labels
        self.help_text = help_text
        self.elapsed: float | None = None
        self._start = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.elapsed = time.perf_counter() - self._start
        observe_histogram(self.histogram_name, self.elapsed, self.labels, self.help_text)


STORAGE_WRITES = "storage_writes_total"
STORAGE_FALLBACKS = "storage_fallbacks_total"
REMOTE_CALL_DURATION = "remote_call_duration_seconds"
OFFLINE_QUEUE_REPLAYS = "offline_queue_replays_total"
SYNC_NOTIFICATIONS = "sync_notifications_total"
SYNC_LISTENERS = "sync_listeners_per_notification"
SYNC_LISTENER_ERRORS = "sync_listener_errors_total"
SYNC_RECONNECTS = "sync_reconnect_attempts_total"
WEBHOOK_EVENTS = "webhook_events_total"


def record_storage_write(operation: str, mode: str) -> None:
    """Count a save or delete under the storage mode that served it."""

    increment_counter(
        STORAGE_WRITES,
        labels={"operation": operation, "mode": mode},
        help_text="Storage adapter writes by outcome mode",
    )


def record_fallback(operation: str) -> None:
    increment_counter(
        STORAGE_FALLBACKS,
        labels={"operation": operation},
        help_text="Remote failures recovered from the device store",
    )


def record_queue_replay(action: str, outcome: str) -> None:
    increment_counter(
        OFFLINE_QUEUE_REPLAYS,
        labels={"action": action, "outcome": outcome},
        help_text="Offline queue entries replayed against the remote store",
    )


def record_sync_notification(event_id: str, listeners: int) -> None:
    increment_counter(
        SYNC_NOTIFICATIONS,
        labels={"event_id": event_id},
        help_text="Snapshots fanned out after a change notification",
    )
    observe_histogram(SYNC_LISTENERS, float(listeners), help_text="Listeners reached per fan-out")


def record_listener_error(event_id: str) -> None:
    increment_counter(
        SYNC_LISTENER_ERRORS,
        labels={"event_id": event_id},
        help_text="Listener callbacks that raised",
    )


def record_reconnect_attempt(event_id: str) -> None:
    increment_counter(
        SYNC_RECONNECTS,
        labels={"event_id": event_id},
        help_text="Realtime channel reconnect attempts",
    )


def record_webhook_event(event_type: str, outcome: str) -> None:
    increment_counter(
        WEBHOOK_EVENTS,
        labels={"type": event_type, "outcome": outcome},
        help_text="Subscription webhook events by outcome",
    )


def _summary_label(key: LabelKey) -> str:
    return ",".join(f"{k}={v}" for k, v in key) if key else "default"


def _prometheus_labels(key: LabelKey) -> str:
    if not key:
        return ""
    return "{" + ",".join(f'{k}="{v}"' for k, v in key) + "}"


def get_metrics_summary() -> dict[str, dict[str, dict[str, object]]]:
    """Nested ``{"counters": ..., "histograms": ...}`` view for logs and JSON."""

    return {
        "counters": {
            name: {_summary_label(key): value for key, value in counter.samples()}
            for name, counter in _registry.all_counters().items()
        },
        "histograms": {
            name: {_summary_label(key): stats for key, stats in histogram.samples()}
            for name, histogram in _registry.all_histograms().items()
        },
    }


def format_prometheus() -> str:
    """Render every metric in the Prometheus text exposition format."""

    lines: list[str] = []
    metrics: list[_Metric] = [
        *_registry.all_counters().values(),
        *_registry.all_histograms().values(),
    ]
    for metric in metrics:
        if metric.help_text:
            lines.append(f"# HELP {metric.name} {metric.help_text}")
        lines.append(f"# TYPE {metric.name} {metric.kind}")
        if isinstance(metric, Counter):
            for key, value in metric.samples():
                lines.append(f"{metric.name}{_prometheus_labels(key)} {value}")
        elif isinstance(metric, Histogram):
            for key, stats in metric.samples():
                labels = _prometheus_labels(key)
                lines.append(f"{metric.name}_count{labels} {stats['count']}")
                lines.append(f"{metric.name}_sum{labels} {stats['sum']}")
    return "\n".join(lines) + "\n" if lines else ""
