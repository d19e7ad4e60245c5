"""Messages pushed to display websockets.

Every message travels in the same v1 envelope::

    {"version": "1", "type": "<type>", "timestamp": "<ISO8601>", "payload": {...}}

``snapshot_updated`` carries the bid-sorted state of one auction. The
remaining types mirror status events published by the storage adapter
and the sync channel, so a display can show its offline or reconnecting
banner.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, ClassVar, Literal

from pydantic import BaseModel, ValidationError

from bidscreen.domain.models import DisplaySnapshot

MESSAGE_FORMAT_VERSION = "1"


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class WireMessage(BaseModel):
    version: str = MESSAGE_FORMAT_VERSION
    type: str
    timestamp: str
    payload: dict[str, Any]


class BaseMessage(BaseModel):
    """Typed payload; subclasses name their wire ``type``."""

    message_type: ClassVar[str]

    def to_wire(self) -> dict[str, Any]:
        return create_message(self.message_type, **self.model_dump(exclude_none=True))


class SnapshotUpdatedMessage(BaseMessage):
    message_type: ClassVar[str] = "snapshot_updated"

    event_id: str
    event: dict[str, Any]
    items: list[dict[str, Any]]
    total_raised: float
    updated_at: str | None = None


class SyncStatusMessage(BaseMessage):
    message_type: ClassVar[str] = "sync_status"

    event_id: str
    state: Literal["connecting", "connected", "disconnected", "failed"]
    attempt: int = 0


class StorageModeMessage(BaseMessage):
    message_type: ClassVar[str] = "storage_mode"

    mode: Literal["local", "remote"]


class ConnectionStatusMessage(BaseMessage):
    message_type: ClassVar[str] = "connection_status"

    online: bool


class QueueStatusMessage(BaseMessage):
    message_type: ClassVar[str] = "queue_status"

    queueLength: int


class QueueDrainedMessage(BaseMessage):
    message_type: ClassVar[str] = "queue_drained"

    replayed: int = 0
    failed: int = 0
    remaining: int = 0
    dropped: int = 0


class ConnectionReadyMessage(BaseMessage):
    message_type: ClassVar[str] = "connection_ready"

    server_version: str
    message_format_version: str = MESSAGE_FORMAT_VERSION


class HeartbeatMessage(BaseMessage):
    message_type: ClassVar[str] = "heartbeat"


MESSAGE_TYPE_MAP: dict[str, type[BaseMessage]] = {
    cls.message_type: cls
    for cls in (
        SnapshotUpdatedMessage,
        SyncStatusMessage,
        StorageModeMessage,
        ConnectionStatusMessage,
        QueueStatusMessage,
        QueueDrainedMessage,
        ConnectionReadyMessage,
        HeartbeatMessage,
    )
}


def snapshot_message(snapshot: DisplaySnapshot) -> SnapshotUpdatedMessage:
    data = snapshot.to_dict()
    return SnapshotUpdatedMessage(
        event_id=data["id"],
        event=data["event"],
        items=data["items"],
        total_raised=data["totalRaised"],
        updated_at=data["updatedAt"],
    )


def create_message(message_type: str, **payload: Any) -> dict[str, Any]:
    return WireMessage(type=message_type, timestamp=_timestamp(), payload=payload).model_dump()


def parse_message(data: dict[str, Any]) -> BaseMessage | None:
    """Typed view of a wire message; ``None`` for unknown types or bad payloads."""

    message_cls = MESSAGE_TYPE_MAP.get(data.get("type") or "")
    if message_cls is None:
        return None
    try:
        return message_cls.model_validate(data.get("payload") or {})
    except ValidationError:
        return None


__all__ = [
    "BaseMessage",
    "ConnectionReadyMessage",
    "ConnectionStatusMessage",
    "HeartbeatMessage",
    "MESSAGE_FORMAT_VERSION",
    "MESSAGE_TYPE_MAP",
    "QueueDrainedMessage",
    "QueueStatusMessage",
    "SnapshotUpdatedMessage",
    "StorageModeMessage",
    "SyncStatusMessage",
    "WireMessage",
    "create_message",
    "parse_message",
    "snapshot_message",
]
