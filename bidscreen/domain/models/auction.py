"""Auction domain models: events, items and their persisted record form."""

from __future__ import annotations

import math
import secrets
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

EVENT_ID_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"
EVENT_ID_LENGTH = 8
DEFAULT_EVENT_NAME = "Auction"


class ValidationError(ValueError):
    """Raised when event data is rejected: bad user input or a malformed stored blob."""


def utc_timestamp() -> str:
    """Return an ISO-8601 UTC timestamp with a ``Z`` suffix."""

    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def generate_event_id() -> str:
    """Return a fresh opaque event id made of 8 base36 characters."""

    return "".join(secrets.choice(EVENT_ID_ALPHABET) for _ in range(EVENT_ID_LENGTH))


def next_item_id(existing: Iterable[int] = ()) -> int:
    """Return a millisecond-clock item id greater than every existing id."""

    candidate = int(time.time() * 1000)
    highest = max(existing, default=0)
    return max(candidate, highest + 1)


def _coerce_bid(value: Any, field_name: str) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number")
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a number")
    if math.isnan(amount) or math.isinf(amount):
        raise ValidationError(f"{field_name} must be a number")
    if amount < 0:
        raise ValidationError(f"{field_name} must not be negative")
    return amount


@dataclass
class Branding:
    """Display colours and optional logo for an event."""

    primary_color: str = "#6366f1"
    accent_color: str = "#10b981"
    background_color: str = "#1e293b"
    secondary_background_color: str = "#334155"
    logo_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "primaryColor": self.primary_color,
            "accentColor": self.accent_color,
            "backgroundColor": self.background_color,
            "secondaryBackgroundColor": self.secondary_background_color,
            "logoUrl": self.logo_url,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "Branding | None":
        if not data:
            return None
        defaults = cls()
        return cls(
            primary_color=data.get("primaryColor") or defaults.primary_color,
            accent_color=data.get("accentColor") or defaults.accent_color,
            background_color=data.get("backgroundColor") or defaults.background_color,
            secondary_background_color=data.get("secondaryBackgroundColor")
            or defaults.secondary_background_color,
            logo_url=data.get("logoUrl"),
        )


@dataclass
class AuctionEvent:
    """One fundraising session shown on a display."""

    id: str
    name: str = DEFAULT_EVENT_NAME
    subtitle: str = ""
    branding: Branding | None = None
    hide_watermark: bool = False
    allow_public_bidding: bool = False
    silent_mode: bool = False
    updated_at: str | None = None

    def validate(self) -> None:
        if not self.id or not self.id.strip():
            raise ValidationError("Event id is required")
        if not (self.name or "").strip():
            raise ValidationError("Event name is required")

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "subtitle": self.subtitle,
            "hideWatermark": self.hide_watermark,
            "allowPublicBidding": self.allow_public_bidding,
            "silentMode": self.silent_mode,
            "branding": self.branding.to_dict() if self.branding else None,
        }

    @classmethod
    def from_dict(
        cls, event_id: str, data: Mapping[str, Any] | None, updated_at: str | None = None
    ) -> "AuctionEvent":
        data = data or {}
        return cls(
            id=event_id,
            name=data.get("name") or DEFAULT_EVENT_NAME,
            subtitle=data.get("subtitle") or "",
            branding=Branding.from_dict(data.get("branding")),
            hide_watermark=bool(data.get("hideWatermark", False)),
            allow_public_bidding=bool(data.get("allowPublicBidding", False)),
            silent_mode=bool(data.get("silentMode", False)),
            updated_at=updated_at,
        )


@dataclass
class AuctionItem:
    """A single lot on the auction board."""

    id: int
    name: str
    description: str = ""
    starting_bid: float = 0.0
    current_bid: float = 0.0
    is_hidden: bool = False
    is_revealed: bool = False
    created_at: str | None = None

    def validate(self) -> None:
        """Reject empty names and non-numeric or negative bids."""

        if not isinstance(self.name, str) or not self.name.strip():
            raise ValidationError("Item name is required")
        self.starting_bid = _coerce_bid(self.starting_bid, "Starting bid")
        self.current_bid = _coerce_bid(self.current_bid, "Current bid")

    def with_bid(self, amount: Any) -> "AuctionItem":
        return replace(self, current_bid=_coerce_bid(amount, "Bid"))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "startingBid": self.starting_bid,
            "currentBid": self.current_bid,
            "isHidden": self.is_hidden,
            "isRevealed": self.is_revealed,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AuctionItem":
        return cls(
            id=int(data["id"]),
            name=data.get("name") or "",
            description=data.get("description") or "",
            starting_bid=float(data.get("startingBid") or 0),
            current_bid=float(data.get("currentBid") or 0),
            is_hidden=bool(data.get("isHidden", False)),
            is_revealed=bool(data.get("isRevealed", False)),
            created_at=data.get("createdAt"),
        )


def sort_for_display(items: Iterable[AuctionItem]) -> list[AuctionItem]:
    """Order items by current bid, highest first, keeping insertion order on ties."""

    return sorted(items, key=lambda item: -item.current_bid)


@dataclass
class DisplaySnapshot:
    """Bid-sorted, field-normalised view of an event handed to renderers."""

    event: AuctionEvent
    items: list[AuctionItem]
    updated_at: str | None = None

    @property
    def event_id(self) -> str:
        return self.event.id

    @property
    def total_raised(self) -> float:
        return sum(item.current_bid for item in self.items)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.event.id,
            "event": self.event.to_dict(),
            "items": [item.to_dict() for item in self.items],
            "totalRaised": self.total_raised,
            "updatedAt": self.updated_at,
        }


@dataclass
class StorageRecord:
    """Persisted form of an event and its items, keyed by event id."""

    event: AuctionEvent
    items: list[AuctionItem] = field(default_factory=list)
    updated_at: str | None = None

    @property
    def event_id(self) -> str:
        return self.event.id

    @property
    def total_raised(self) -> float:
        return sum(item.current_bid for item in self.items)

    def validate(self) -> None:
        self.event.validate()
        seen: set[int] = set()
        for item in self.items:
            item.validate()
            if item.id in seen:
                raise ValidationError(f"Duplicate item id {item.id}")
            seen.add(item.id)

    def touch(self) -> "StorageRecord":
        """Return a copy stamped with the current time."""

        now = utc_timestamp()
        return replace(
            self,
            event=replace(self.event, updated_at=now),
            items=list(self.items),
            updated_at=now,
        )

    def snapshot(self) -> DisplaySnapshot:
        return DisplaySnapshot(
            event=self.event,
            items=sort_for_display(self.items),
            updated_at=self.updated_at or self.event.updated_at,
        )

    def to_local(self) -> dict[str, Any]:
        """Serialise to the device blob stored under ``display:<eventId>``.

        Items keep insertion order; readers sort through :meth:`snapshot`.
        """

        return {
            "event": self.event.to_dict(),
            "items": [item.to_dict() for item in self.items],
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_local(cls, event_id: str, data: Mapping[str, Any]) -> "StorageRecord":
        """Rebuild a record from its device-store blob.

        Raises :class:`ValidationError` when the blob does not have the
        shape written by :meth:`to_local`.
        """
        try:
            updated_at = data.get("updatedAt")
            return cls(
                event=AuctionEvent.from_dict(event_id, data.get("event"), updated_at),
                items=[AuctionItem.from_dict(raw) for raw in data.get("items") or []],
                updated_at=updated_at,
            )
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise ValidationError(f"Malformed stored event {event_id}: {exc!r}") from exc


__all__ = [
    "AuctionEvent",
    "AuctionItem",
    "Branding",
    "DEFAULT_EVENT_NAME",
    "DisplaySnapshot",
    "StorageRecord",
    "ValidationError",
    "generate_event_id",
    "next_item_id",
    "sort_for_display",
    "utc_timestamp",
]
