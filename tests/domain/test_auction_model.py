from __future__ import annotations

import pytest

from bidscreen.domain.models import (
    AuctionEvent,
    AuctionItem,
    Branding,
    StorageRecord,
    ValidationError,
    generate_event_id,
    next_item_id,
    sort_for_display,
)


def test_gala_snapshot_orders_by_current_bid_and_sums_total() -> None:
    record = StorageRecord(
        event=AuctionEvent(id="gala0001", name="Gala"),
        items=[
            AuctionItem(id=1, name="A", starting_bid=10, current_bid=10),
            AuctionItem(id=2, name="B", starting_bid=5, current_bid=50),
        ],
    )

    snapshot = record.snapshot()

    assert [item.name for item in snapshot.items] == ["B", "A"]
    assert snapshot.total_raised == 60
    assert snapshot.to_dict()["totalRaised"] == 60


def test_sort_keeps_insertion_order_on_ties() -> None:
    items = [
        AuctionItem(id=1, name="first", current_bid=20),
        AuctionItem(id=2, name="top", current_bid=30),
        AuctionItem(id=3, name="second", current_bid=20),
        AuctionItem(id=4, name="third", current_bid=20),
    ]

    ordered = sort_for_display(items)

    assert [item.name for item in ordered] == ["top", "first", "second", "third"]
    bids = [item.current_bid for item in ordered]
    assert bids == sorted(bids, reverse=True)


def test_snapshot_does_not_reorder_stored_items() -> None:
    record = StorageRecord(
        event=AuctionEvent(id="gala0001"),
        items=[
            AuctionItem(id=1, name="A", current_bid=1),
            AuctionItem(id=2, name="B", current_bid=2),
        ],
    )
    record.snapshot()
    assert [item.id for item in record.items] == [1, 2]


@pytest.mark.parametrize("bid", ["abc", -1, None, float("nan"), True])
def test_item_validation_rejects_bad_bids(bid) -> None:
    item = AuctionItem(id=1, name="Painting", starting_bid=bid, current_bid=0)
    with pytest.raises(ValidationError):
        item.validate()


def test_item_validation_rejects_blank_name() -> None:
    with pytest.raises(ValidationError):
        AuctionItem(id=1, name="   ").validate()


def test_item_validation_coerces_numeric_strings() -> None:
    item = AuctionItem(id=1, name="Vase", starting_bid="12.5", current_bid="15")
    item.validate()
    assert item.starting_bid == 12.5
    assert item.current_bid == 15.0


def test_record_validation_rejects_duplicate_item_ids() -> None:
    record = StorageRecord(
        event=AuctionEvent(id="gala0001"),
        items=[AuctionItem(id=1, name="A"), AuctionItem(id=1, name="B")],
    )
    with pytest.raises(ValidationError):
        record.validate()


def test_with_bid_returns_updated_copy() -> None:
    item = AuctionItem(id=1, name="A", current_bid=10)
    updated = item.with_bid("25")
    assert updated.current_bid == 25.0
    assert item.current_bid == 10
    with pytest.raises(ValidationError):
        item.with_bid(-5)


def test_local_blob_round_trip_keeps_every_field() -> None:
    record = StorageRecord(
        event=AuctionEvent(
            id="gala0001",
            name="Gala",
            subtitle="Spring benefit",
            branding=Branding(primary_color="#000000", logo_url="https://cdn/logo.png"),
            hide_watermark=True,
            allow_public_bidding=True,
            silent_mode=True,
            updated_at="2024-05-01T10:00:00Z",
        ),
        items=[
            AuctionItem(
                id=7,
                name="Quilt",
                description="Handmade",
                starting_bid=40,
                current_bid=75,
                is_hidden=True,
                is_revealed=True,
                created_at="2024-05-01T09:00:00Z",
            )
        ],
        updated_at="2024-05-01T10:00:00Z",
    )

    blob = record.to_local()
    assert set(blob) == {"event", "items", "updatedAt"}
    assert blob["items"][0]["currentBid"] == 75

    restored = StorageRecord.from_local("gala0001", blob)
    assert restored == record


def test_branding_defaults_fill_missing_colors() -> None:
    branding = Branding.from_dict({"primaryColor": "#ff0000"})
    assert branding is not None
    assert branding.primary_color == "#ff0000"
    assert branding.accent_color == "#10b981"
    assert Branding.from_dict(None) is None


def test_touch_stamps_event_and_record() -> None:
    record = StorageRecord(event=AuctionEvent(id="gala0001"))
    touched = record.touch()
    assert touched.updated_at is not None
    assert touched.event.updated_at == touched.updated_at
    assert record.updated_at is None


def test_generated_event_ids_are_base36() -> None:
    event_id = generate_event_id()
    assert len(event_id) == 8
    assert set(event_id) <= set("0123456789abcdefghijklmnopqrstuvwxyz")


def test_next_item_id_exceeds_existing_ids() -> None:
    far_future = 10**15
    assert next_item_id([far_future]) == far_future + 1
    assert next_item_id() > 0
