"""Dual-mode persistence for auction events.

The adapter decides once per process whether events live on this device
only (local mode) or in the hosted store (remote mode), based on whether
premium features are enabled and the signed-in account qualifies.

In remote mode the device store is a cache: every remote write and every
remote read is mirrored into it, and it answers for the remote store
whenever that is unreachable. Writes made while disconnected go into the
offline queue and are replayed, oldest first, on reconnection.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from bidscreen.domain.models import Account, StorageRecord, ValidationError, utc_timestamp
from bidscreen.infrastructure.db import (
    ACTIVE_DISPLAY_KEY,
    DISPLAY_KEY_PREFIX,
    LocalStore,
    LocalStoreCorrupted,
    LocalStoreError,
    display_key,
)
from bidscreen.infrastructure.observability import (
    get_logger,
    log_context,
    record_fallback,
    record_queue_replay,
    record_storage_write,
)
from bidscreen.infrastructure.remote import (
    AuthenticationRequired,
    RemoteStore,
    RemoteStoreError,
    record_from_row,
    record_to_rows,
    summary_from_row,
)

from .accounts import AccountService
from .dto import EventPublisher, noop_event_publisher
from .offline_queue import OfflineQueue, OfflineQueueEntry

logger = get_logger(__name__)


class StorageMode(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"


MODE_LOCAL = "local"
MODE_REMOTE = "remote"
MODE_OFFLINE_QUEUED = "offline-queued"
MODE_LOCAL_FALLBACK = "local-fallback"


@dataclass
class SaveResult:
    """Outcome of a save or delete.

    ``mode`` names the path that served it: ``local``, ``remote``,
    ``offline-queued`` or ``local-fallback``.
    """

    success: bool
    mode: str
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"success": self.success, "mode": self.mode, "error": self.error}


@dataclass
class QueueDrainResult:
    replayed: int = 0
    failed: int = 0
    remaining: int = 0
    dropped: list[OfflineQueueEntry] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "replayed": self.replayed,
            "failed": self.failed,
            "remaining": self.remaining,
            "dropped": len(self.dropped),
        }


@dataclass
class EventSummary:
    """Entry of :meth:`StorageAdapter.list_events`."""

    id: str
    name: str
    subtitle: str = ""
    status: str | None = None
    updated_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "subtitle": self.subtitle,
            "status": self.status,
            "updatedAt": self.updated_at,
        }


class StorageAdapter:
    """Persist auction records locally, remotely, or through the offline queue."""

    def __init__(
        self,
        local_store: LocalStore,
        *,
        remote: RemoteStore | None = None,
        accounts: AccountService | None = None,
        queue: OfflineQueue | None = None,
        event_publisher: EventPublisher = noop_event_publisher,
        online: bool = True,
    ) -> None:
        self._local = local_store
        self._remote = remote
        self._accounts = accounts
        self._queue = queue if queue is not None else OfflineQueue(local_store)
        self._event_publisher = event_publisher
        self._online = online
        self._mode: StorageMode | None = None
        self._mode_lock = asyncio.Lock()
        self._drain_lock = asyncio.Lock()

    # -------------------- mode --------------------
    @property
    def mode(self) -> StorageMode | None:
        return self._mode

    @property
    def is_online(self) -> bool:
        return self._online

    @property
    def queue(self) -> OfflineQueue:
        return self._queue

    async def initialize(self) -> StorageMode:
        """Pick the storage mode; the answer is kept until :meth:`reinitialize`."""

        async with self._mode_lock:
            if self._mode is not None:
                return self._mode
            mode = StorageMode.LOCAL
            if (
                self._remote is not None
                and self._accounts is not None
                and await self._accounts.is_premium()
            ):
                mode = StorageMode.REMOTE
            self._mode = mode
        logger.info("Storage mode: %s", mode.value)
        await self._publish({"type": "storage_mode", "mode": mode.value})
        return mode

    async def reinitialize(self) -> StorageMode:
        """Forget the memoized mode (e.g. after sign-in) and choose again."""

        self._mode = None
        if self._accounts is not None:
            self._accounts.invalidate()
        return await self.initialize()

    def set_mode(self, mode: StorageMode | str) -> None:
        resolved = StorageMode(mode)
        if resolved is StorageMode.REMOTE and self._remote is None:
            raise ValueError("Remote mode needs a remote store")
        self._mode = resolved
        logger.info("Storage mode forced to %s", self._mode.value)

    # -------------------- operations --------------------
    async def save_event(self, event_id: str, record: StorageRecord) -> SaveResult:
        if record.event_id != event_id:
            raise ValidationError(
                f"Record belongs to event {record.event_id!r}, not {event_id!r}"
            )
        record.validate()
        mode = await self.initialize()

        with log_context(event_id=event_id):
            if mode is StorageMode.LOCAL:
                self._write_local(record)
                return self._result("save", MODE_LOCAL)

            if not self._online:
                self._queue.append("save", event_id, record.to_local())
                self._write_local(record)
                await self._publish_queue_status()
                return self._result("save", MODE_OFFLINE_QUEUED)

            try:
                await self._push_save(record)
            except AuthenticationRequired:
                self._write_local(record)
                raise
            except RemoteStoreError as exc:
                logger.warning("Remote save failed, keeping local copy: %s", exc)
                record_fallback("save")
                self._write_local(record)
                return self._result("save", MODE_LOCAL_FALLBACK, error=str(exc))

            self._write_local(record)
            return self._result("save", MODE_REMOTE)

    async def load_event(self, event_id: str) -> StorageRecord | None:
        mode = await self.initialize()
        with log_context(event_id=event_id):
            if mode is StorageMode.LOCAL or not self._online:
                return self._read_local(event_id)

            assert self._remote is not None
            try:
                row = await self._remote.fetch_event(event_id)
            except RemoteStoreError as exc:
                logger.warning("Remote load failed, reading local cache: %s", exc)
                record_fallback("load")
                return self._read_local(event_id)

            if row is None:
                return None
            record = record_from_row(row)
            try:
                self._write_local(record)
            except LocalStoreError as exc:
                logger.warning("Could not refresh local cache: %s", exc)
            return record

    async def delete_event(self, event_id: str) -> SaveResult:
        mode = await self.initialize()
        with log_context(event_id=event_id):
            if mode is StorageMode.LOCAL:
                self._delete_local(event_id)
                return self._result("delete", MODE_LOCAL)

            if not self._online:
                self._queue.append("delete", event_id)
                self._delete_local(event_id)
                await self._publish_queue_status()
                return self._result("delete", MODE_OFFLINE_QUEUED)

            try:
                await self._push_delete(event_id)
            except RemoteStoreError as exc:
                logger.warning("Remote delete failed, queued for replay: %s", exc)
                record_fallback("delete")
                self._queue.append("delete", event_id)
                self._delete_local(event_id)
                return self._result("delete", MODE_LOCAL_FALLBACK, error=str(exc))

            self._delete_local(event_id)
            return self._result("delete", MODE_REMOTE)

    async def list_events(self) -> list[EventSummary]:
        """Events owned by this device or account, most recently updated first."""

        mode = await self.initialize()
        if mode is StorageMode.LOCAL or not self._online:
            return self._list_local()

        assert self._remote is not None
        account = await self._require_account()
        try:
            rows = await self._remote.list_events(account.user_id)
        except RemoteStoreError as exc:
            logger.warning("Remote listing failed, reading local cache: %s", exc)
            record_fallback("list")
            return self._list_local()
        return [EventSummary(**_summary_kwargs(summary_from_row(row))) for row in rows]

    # -------------------- active display --------------------
    def set_active_display(self, event_id: str) -> None:
        self._local.set(ACTIVE_DISPLAY_KEY, event_id)

    def active_display(self) -> str | None:
        return self._local.get(ACTIVE_DISPLAY_KEY)

    # -------------------- connectivity / offline queue --------------------
    async def set_online(self, online: bool) -> QueueDrainResult | None:
        """Record a connectivity transition; going online drains the queue."""

        was_online, self._online = self._online, online
        if was_online == online:
            return None
        logger.info("Connectivity changed: %s", "online" if online else "offline")
        await self._publish({"type": "connection_status", "online": online})
        if online and len(self._queue):
            return await self.force_sync_offline_queue()
        return None

    async def force_sync_offline_queue(self) -> QueueDrainResult:
        """Replay queued writes in FIFO order.

        An entry leaves the queue, and the device-store mirror of it, only
        after its own replay succeeds. Failed entries keep their place with
        one more attempt counted, and entries not reached because
        connectivity dropped mid-drain stay as they were. An unexpected
        error counts an attempt against the entry in flight and propagates
        with the queue intact.
        """
        async with self._drain_lock:
            if not self._online or self._remote is None:
                return QueueDrainResult(remaining=len(self._queue))

            result = QueueDrainResult()
            for entry in self._queue.entries:
                if not self._online:
                    break
                with log_context(event_id=entry.event_id, action=entry.action):
                    try:
                        await self._replay(entry)
                    except (RemoteStoreError, AuthenticationRequired) as exc:
                        logger.warning("Replay failed, keeping entry queued: %s", exc)
                        record_queue_replay(entry.action, "failed")
                        result.failed += 1
                        if self._queue.record_failure(entry):
                            result.dropped.append(entry)
                        continue
                    except ValidationError as exc:
                        logger.error("Dropping unreadable queued %s: %s", entry.action, exc)
                        record_queue_replay(entry.action, "dropped")
                        self._queue.remove(entry)
                        result.dropped.append(entry)
                        continue
                    except Exception:
                        self._queue.record_failure(entry)
                        raise
                    self._queue.remove(entry)
                    result.replayed += 1
                    record_queue_replay(entry.action, "replayed")
            result.remaining = len(self._queue)
        logger.info(
            "Offline queue drained: %d replayed, %d failed, %d pending",
            result.replayed,
            result.failed,
            result.remaining,
        )
        await self._publish({"type": "queue_drained", **result.to_dict()})
        return result

    def offline_queue_status(self) -> dict[str, Any]:
        return {
            "isOnline": self._online,
            "queueLength": len(self._queue),
            "entries": [
                {
                    "action": entry.action,
                    "eventId": entry.event_id,
                    "timestamp": entry.timestamp,
                    "attempts": entry.attempts,
                }
                for entry in self._queue.entries
            ],
        }

    def clear_offline_queue(self) -> int:
        cleared = self._queue.clear()
        logger.info("Cleared %d offline queue entries", cleared)
        return cleared

    # -------------------- remote helpers --------------------
    async def _push_save(self, record: StorageRecord) -> None:
        assert self._remote is not None
        account = await self._require_account()
        event_row, item_rows = record_to_rows(record, account.user_id, utc_timestamp())
        await self._remote.upsert_event(event_row)
        await self._remote.upsert_items(item_rows)
        await self._remote.delete_items(
            record.event_id, keep_ids=[item.id for item in record.items]
        )

    async def _push_delete(self, event_id: str) -> None:
        assert self._remote is not None
        await self._remote.delete_items(event_id)
        await self._remote.delete_event(event_id)

    async def _replay(self, entry: OfflineQueueEntry) -> None:
        if entry.action == "save":
            record = StorageRecord.from_local(entry.event_id, entry.payload or {})
            await self._push_save(record)
        else:
            await self._push_delete(entry.event_id)

    async def _require_account(self) -> Account:
        if self._accounts is None:
            raise AuthenticationRequired("No account service configured")
        return await self._accounts.require_account()

    # -------------------- local helpers --------------------
    def _write_local(self, record: StorageRecord) -> None:
        self._local.set_json(display_key(record.event_id), record.to_local())

    def _read_local(self, event_id: str) -> StorageRecord | None:
        data = self._local.get_json(display_key(event_id))
        if data is None:
            return None
        try:
            return StorageRecord.from_local(event_id, data)
        except ValidationError as exc:
            raise LocalStoreCorrupted(str(exc)) from exc

    def _delete_local(self, event_id: str) -> None:
        self._local.remove(display_key(event_id))

    def _list_local(self) -> list[EventSummary]:
        summaries: list[EventSummary] = []
        for key in self._local.keys(DISPLAY_KEY_PREFIX):
            event_id = key[len(DISPLAY_KEY_PREFIX):]
            try:
                record = self._read_local(event_id)
            except LocalStoreError as exc:
                logger.warning("Skipping unreadable local event %s: %s", event_id, exc)
                continue
            if record is None:
                continue
            summaries.append(
                EventSummary(
                    id=event_id,
                    name=record.event.name,
                    subtitle=record.event.subtitle,
                    updated_at=record.updated_at,
                )
            )
        summaries.sort(key=lambda summary: summary.updated_at or "", reverse=True)
        return summaries

    # -------------------- notifications --------------------
    def _result(self, operation: str, mode: str, *, error: str | None = None) -> SaveResult:
        record_storage_write(operation, mode)
        return SaveResult(success=True, mode=mode, error=error)

    async def _publish_queue_status(self) -> None:
        await self._publish({"type": "queue_status", "queueLength": len(self._queue)})

    async def _publish(self, event: dict[str, Any]) -> None:
        try:
            await self._event_publisher(event)
        except Exception:
            logger.exception("Event publisher failed for %s", event.get("type"))


def _summary_kwargs(summary: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": str(summary["id"]),
        "name": summary["name"],
        "subtitle": summary["subtitle"],
        "status": summary["status"],
        "updated_at": summary["updatedAt"],
    }


__all__ = [
    "EventSummary",
    "MODE_LOCAL",
    "MODE_LOCAL_FALLBACK",
    "MODE_OFFLINE_QUEUED",
    "MODE_REMOTE",
    "QueueDrainResult",
    "SaveResult",
    "StorageAdapter",
    "StorageMode",
]
