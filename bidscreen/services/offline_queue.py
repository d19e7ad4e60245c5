"""Durable buffer of remote writes made while disconnected."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Literal

from bidscreen.domain.models import utc_timestamp
from bidscreen.infrastructure.db import OFFLINE_QUEUE_KEY, LocalStore, LocalStoreError
from bidscreen.infrastructure.observability import get_logger

QueueAction = Literal["save", "delete"]

logger = get_logger(__name__)


@dataclass
class OfflineQueueEntry:
    """One pending remote write."""

    action: QueueAction
    event_id: str
    payload: dict[str, Any] | None
    timestamp: str
    attempts: int = 0

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["eventId"] = data.pop("event_id")
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OfflineQueueEntry":
        action = data.get("action")
        if action not in ("save", "delete"):
            raise ValueError(f"Unknown queue action {action!r}")
        event_id = data.get("eventId") or data.get("event_id")
        if not event_id:
            raise ValueError("Queue entry has no event id")
        return cls(
            action=action,
            event_id=str(event_id),
            payload=data.get("payload"),
            timestamp=data.get("timestamp") or utc_timestamp(),
            attempts=int(data.get("attempts") or 0),
        )


class OfflineQueue:
    """FIFO queue of :class:`OfflineQueueEntry` mirrored into the device store.

    Mirroring is best-effort: when the device store refuses the write the
    queue keeps working in memory and the failure is logged.

    ``max_replay_attempts`` bounds how often a failing entry is retried;
    ``None`` keeps retrying forever.
    """

    def __init__(
        self,
        local_store: LocalStore | None = None,
        *,
        max_replay_attempts: int | None = None,
    ) -> None:
        self._local_store = local_store
        self.max_replay_attempts = max_replay_attempts
        self._entries: list[OfflineQueueEntry] = self._load()

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> list[OfflineQueueEntry]:
        return list(self._entries)

    def append(
        self, action: QueueAction, event_id: str, payload: dict[str, Any] | None = None
    ) -> OfflineQueueEntry:
        entry = OfflineQueueEntry(
            action=action, event_id=event_id, payload=payload, timestamp=utc_timestamp()
        )
        self._entries.append(entry)
        self._persist()
        logger.info("Queued %s for %s (%d pending)", action, event_id, len(self._entries))
        return entry

    def remove(self, entry: OfflineQueueEntry) -> None:
        """Drop ``entry`` once its replay is confirmed, keeping the rest in order."""

        self._entries = [pending for pending in self._entries if pending is not entry]
        self._persist()

    def record_failure(self, entry: OfflineQueueEntry) -> bool:
        """Count a failed replay of ``entry``, which keeps its place in the queue.

        Returns ``True`` when the entry used up its attempts and was dropped.
        """
        entry.attempts += 1
        if self.max_replay_attempts is not None and entry.attempts >= self.max_replay_attempts:
            logger.error(
                "Dropping %s for %s after %d failed replays",
                entry.action,
                entry.event_id,
                entry.attempts,
            )
            self.remove(entry)
            return True
        self._persist()
        return False

    def clear(self) -> int:
        count = len(self._entries)
        self._entries = []
        self._persist()
        return count

    def _load(self) -> list[OfflineQueueEntry]:
        if self._local_store is None:
            return []
        try:
            raw = self._local_store.get_json(OFFLINE_QUEUE_KEY)
        except LocalStoreError as exc:
            logger.warning("Could not restore offline queue: %s", exc)
            return []
        entries: list[OfflineQueueEntry] = []
        for item in raw or []:
            try:
                entries.append(OfflineQueueEntry.from_dict(item))
            except (TypeError, ValueError, AttributeError) as exc:
                logger.warning("Skipping unreadable offline queue entry: %s", exc)
        return entries

    def _persist(self) -> None:
        if self._local_store is None:
            return
        try:
            if self._entries:
                self._local_store.set_json(
                    OFFLINE_QUEUE_KEY, [entry.to_dict() for entry in self._entries]
                )
            else:
                self._local_store.remove(OFFLINE_QUEUE_KEY)
        except LocalStoreError as exc:
            logger.warning("Offline queue kept in memory only: %s", exc)


__all__ = ["OfflineQueue", "OfflineQueueEntry", "QueueAction"]
