"""Mapping between the remote relational rows and the internal record shape.

Remote rows use snake_case columns; the device blob and the domain models
use camelCase. Branding travels as the ``custom_colors`` JSON column with
the logo duplicated into ``logo_url``.
"""

from __future__ import annotations

from typing import Any, Mapping

from bidscreen.domain.models import (
    DEFAULT_EVENT_NAME,
    AuctionEvent,
    AuctionItem,
    Branding,
    StorageRecord,
)

Row = dict[str, Any]


def event_to_row(event: AuctionEvent, owner_id: str, now: str) -> Row:
    branding = event.branding.to_dict() if event.branding else None
    return {
        "id": event.id,
        "owner_id": owner_id,
        "name": event.name or DEFAULT_EVENT_NAME,
        "subtitle": event.subtitle or None,
        "status": "active",
        "custom_colors": branding,
        "logo_url": event.branding.logo_url if event.branding else None,
        "hide_watermark": event.hide_watermark,
        "allow_public_bidding": event.allow_public_bidding,
        "silent_mode": event.silent_mode,
        "updated_at": now,
    }


def items_to_rows(event_id: str, items: list[AuctionItem], now: str) -> list[Row]:
    return [
        {
            "id": item.id,
            "event_id": event_id,
            "name": item.name,
            "description": item.description or None,
            "starting_bid": item.starting_bid,
            "current_bid": item.current_bid,
            "is_hidden": item.is_hidden,
            "is_revealed": item.is_revealed,
            "created_at": item.created_at or now,
        }
        for item in items
    ]


def record_to_rows(record: StorageRecord, owner_id: str, now: str) -> tuple[Row, list[Row]]:
    """Return the ``events`` row and ``auction_items`` rows for a record."""

    return (
        event_to_row(record.event, owner_id, now),
        items_to_rows(record.event_id, record.items, now),
    )


def _item_from_row(row: Mapping[str, Any]) -> AuctionItem:
    return AuctionItem(
        id=int(row["id"]),
        name=row.get("name") or "",
        description=row.get("description") or "",
        starting_bid=float(row.get("starting_bid") or 0),
        current_bid=float(row.get("current_bid") or 0),
        is_hidden=bool(row.get("is_hidden", False)),
        is_revealed=bool(row.get("is_revealed", False)),
        created_at=row.get("created_at"),
    )


def _branding_from_row(row: Mapping[str, Any]) -> Branding | None:
    colors = row.get("custom_colors")
    branding = Branding.from_dict(colors if isinstance(colors, Mapping) else None)
    logo_url = row.get("logo_url")
    if logo_url:
        branding = branding or Branding()
        branding.logo_url = logo_url
    return branding


def record_from_row(row: Mapping[str, Any]) -> StorageRecord:
    """Build a record from an ``events`` row with embedded ``auction_items``.

    Rows arrive in no particular order, so items are put back in insertion
    order (``created_at`` then id) before any display sort is applied.
    """

    updated_at = row.get("updated_at")
    event = AuctionEvent(
        id=str(row["id"]),
        name=row.get("name") or DEFAULT_EVENT_NAME,
        subtitle=row.get("subtitle") or "",
        branding=_branding_from_row(row),
        hide_watermark=bool(row.get("hide_watermark", False)),
        allow_public_bidding=bool(row.get("allow_public_bidding", False)),
        silent_mode=bool(row.get("silent_mode", False)),
        updated_at=updated_at,
    )
    raw_items = row.get("auction_items") or []
    items = [_item_from_row(raw) for raw in raw_items]
    items.sort(key=lambda item: (item.created_at or "", item.id))
    return StorageRecord(event=event, items=items, updated_at=updated_at)


def summary_from_row(row: Mapping[str, Any]) -> dict[str, Any]:
    """Event list entry as returned by ``list_events``."""

    return {
        "id": row.get("id"),
        "name": row.get("name") or DEFAULT_EVENT_NAME,
        "subtitle": row.get("subtitle") or "",
        "status": row.get("status"),
        "updatedAt": row.get("updated_at"),
    }


__all__ = [
    "event_to_row",
    "items_to_rows",
    "record_from_row",
    "record_to_rows",
    "summary_from_row",
]
