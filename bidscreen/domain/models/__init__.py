"""Domain models for Bidscreen."""

from .account import (
    CAPABILITY_TIERS,
    FREE_ITEM_LIMIT,
    PREMIUM_TIERS,
    Account,
    Capability,
    SubscriptionStatus,
    Tier,
    parse_timestamp,
    qualifying_tiers,
)
from .auction import (
    DEFAULT_EVENT_NAME,
    AuctionEvent,
    AuctionItem,
    Branding,
    DisplaySnapshot,
    StorageRecord,
    ValidationError,
    generate_event_id,
    next_item_id,
    sort_for_display,
    utc_timestamp,
)

__all__ = [
    "Account",
    "DEFAULT_EVENT_NAME",
    "AuctionEvent",
    "AuctionItem",
    "Branding",
    "CAPABILITY_TIERS",
    "Capability",
    "DisplaySnapshot",
    "FREE_ITEM_LIMIT",
    "PREMIUM_TIERS",
    "StorageRecord",
    "SubscriptionStatus",
    "Tier",
    "ValidationError",
    "generate_event_id",
    "next_item_id",
    "parse_timestamp",
    "qualifying_tiers",
    "sort_for_display",
    "utc_timestamp",
]
