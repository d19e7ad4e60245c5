from __future__ import annotations

from bidscreen.domain.models import AuctionEvent, AuctionItem, Branding, StorageRecord
from bidscreen.infrastructure.remote import record_from_row, record_to_rows, summary_from_row


def _record() -> StorageRecord:
    return StorageRecord(
        event=AuctionEvent(
            id="gala0001",
            name="Gala",
            subtitle="Spring",
            branding=Branding(accent_color="#123456", logo_url="https://cdn/logo.png"),
            hide_watermark=True,
            silent_mode=True,
            updated_at="2024-05-01T10:00:00Z",
        ),
        items=[
            AuctionItem(
                id=1,
                name="A",
                starting_bid=10,
                current_bid=10,
                created_at="2024-05-01T09:00:00Z",
            ),
            AuctionItem(
                id=2,
                name="B",
                description="Signed",
                starting_bid=5,
                current_bid=50,
                is_revealed=True,
                created_at="2024-05-01T09:00:01Z",
            ),
        ],
        updated_at="2024-05-01T10:00:00Z",
    )


def test_record_to_rows_uses_snake_case_columns() -> None:
    event_row, item_rows = record_to_rows(_record(), "U1", "2024-05-01T10:00:00Z")

    assert event_row["owner_id"] == "U1"
    assert event_row["custom_colors"]["accentColor"] == "#123456"
    assert event_row["logo_url"] == "https://cdn/logo.png"
    assert event_row["hide_watermark"] is True
    assert [row["event_id"] for row in item_rows] == ["gala0001", "gala0001"]
    assert item_rows[1]["current_bid"] == 50
    assert item_rows[1]["is_revealed"] is True


def test_remote_round_trip_preserves_fields_and_order() -> None:
    record = _record()
    event_row, item_rows = record_to_rows(record, "U1", "2024-05-01T10:00:00Z")
    row = {**event_row, "auction_items": list(reversed(item_rows))}

    restored = record_from_row(row)

    assert restored.items == record.items
    assert restored.event.branding == record.event.branding
    assert restored.event.hide_watermark and restored.event.silent_mode
    assert [item.name for item in restored.snapshot().items] == ["B", "A"]


def test_record_from_row_without_items_or_branding() -> None:
    restored = record_from_row({"id": "x1", "name": None, "updated_at": None})

    assert restored.event.name == "Auction"
    assert restored.event.branding is None
    assert restored.items == []


def test_logo_url_alone_creates_branding() -> None:
    restored = record_from_row({"id": "x1", "logo_url": "https://cdn/l.png"})
    assert restored.event.branding is not None
    assert restored.event.branding.logo_url == "https://cdn/l.png"


def test_summary_from_row() -> None:
    summary = summary_from_row(
        {"id": "x1", "name": "Gala", "subtitle": None, "status": "active", "updated_at": "t"}
    )
    assert summary == {
        "id": "x1",
        "name": "Gala",
        "subtitle": "",
        "status": "active",
        "updatedAt": "t",
    }
