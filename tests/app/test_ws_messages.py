"""Tests for WebSocket message types."""

from bidscreen.app.ws_messages import (
    MESSAGE_FORMAT_VERSION,
    ConnectionReadyMessage,
    HeartbeatMessage,
    QueueDrainedMessage,
    QueueStatusMessage,
    SnapshotUpdatedMessage,
    StorageModeMessage,
    SyncStatusMessage,
    WireMessage,
    create_message,
    parse_message,
    snapshot_message,
)
from bidscreen.domain.models import AuctionEvent, AuctionItem, StorageRecord


class TestWireFormat:
    """Tests for the wire message format."""

    def test_wire_message_structure(self):
        """Wire messages have version, type, timestamp, and payload."""
        msg = WireMessage(
            version="1",
            type="test_event",
            timestamp="2025-11-28T12:00:00Z",
            payload={"key": "value"},
        )
        data = msg.model_dump()
        assert data["version"] == "1"
        assert data["type"] == "test_event"
        assert data["payload"] == {"key": "value"}

    def test_message_format_version(self):
        assert MESSAGE_FORMAT_VERSION == "1"


class TestDisplayMessages:
    """Tests for snapshot and status messages."""

    def test_snapshot_message_carries_sorted_items(self):
        record = StorageRecord(
            event=AuctionEvent(id="gala0001", name="Gala"),
            items=[
                AuctionItem(id=1, name="A", current_bid=10),
                AuctionItem(id=2, name="B", current_bid=50),
            ],
            updated_at="2024-05-01T10:00:00Z",
        )

        wire = snapshot_message(record.snapshot()).to_wire()

        assert wire["type"] == "snapshot_updated"
        assert wire["payload"]["event_id"] == "gala0001"
        assert [item["name"] for item in wire["payload"]["items"]] == ["B", "A"]
        assert wire["payload"]["total_raised"] == 60

    def test_sync_status_message(self):
        wire = SyncStatusMessage(event_id="gala0001", state="failed", attempt=5).to_wire()
        assert wire["type"] == "sync_status"
        assert wire["payload"] == {"event_id": "gala0001", "state": "failed", "attempt": 5}

    def test_queue_drained_defaults(self):
        wire = QueueDrainedMessage(replayed=2).to_wire()
        assert wire["payload"] == {"replayed": 2, "failed": 0, "remaining": 0, "dropped": 0}

    def test_connection_ready(self):
        wire = ConnectionReadyMessage(server_version="0.1.0").to_wire()
        assert wire["payload"]["message_format_version"] == "1"

    def test_heartbeat_has_empty_payload(self):
        assert HeartbeatMessage().to_wire()["payload"] == {}


class TestParsing:
    """Tests for create_message and parse_message."""

    def test_create_message_wraps_payload(self):
        data = create_message("connection_status", online=False)
        assert data["version"] == "1"
        assert data["type"] == "connection_status"
        assert data["payload"] == {"online": False}

    def test_parse_known_message(self):
        data = SyncStatusMessage(event_id="e1", state="connected").to_wire()
        parsed = parse_message(data)
        assert isinstance(parsed, SyncStatusMessage)
        assert parsed.state == "connected"

    def test_parse_snapshot_message(self):
        data = create_message(
            "snapshot_updated", event_id="e1", event={}, items=[], total_raised=0
        )
        assert isinstance(parse_message(data), SnapshotUpdatedMessage)

    def test_parse_unknown_or_invalid_returns_none(self):
        assert parse_message({"type": "nope", "payload": {}}) is None
        assert parse_message({"type": "sync_status", "payload": {"state": "weird"}}) is None

    def test_storage_events_parse_into_typed_messages(self):
        mode = parse_message(create_message("storage_mode", mode="remote"))
        queue = parse_message(create_message("queue_status", queueLength=3))

        assert isinstance(mode, StorageModeMessage) and mode.mode == "remote"
        assert isinstance(queue, QueueStatusMessage) and queue.queueLength == 3
