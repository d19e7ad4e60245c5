"""Account and subscription domain model.

Tier and status are written only by the subscription reconciler and the
checkout verification path; everything else reads them to decide which
storage mode and which display features an account gets.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping

FREE_ITEM_LIMIT = 10


class Tier(str, Enum):
    FREE = "free"
    PRO = "pro"
    EVENT = "event"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    EXPIRED = "expired"


PREMIUM_TIERS = frozenset({Tier.PRO, Tier.EVENT})


class Capability(Enum):
    """Premium features an account can unlock."""

    HIDE_WATERMARK = "hide_watermark"
    CUSTOM_BRANDING = "custom_branding"
    REMOTE_CONTROL = "remote_control"
    PUBLIC_BIDDING = "public_bidding"
    SILENT_MODE = "silent_mode"
    UNLIMITED_ITEMS = "unlimited_items"
    ANALYTICS = "analytics"


CAPABILITY_TIERS: dict[Capability, frozenset[Tier]] = {
    Capability.HIDE_WATERMARK: PREMIUM_TIERS,
    Capability.CUSTOM_BRANDING: PREMIUM_TIERS,
    Capability.REMOTE_CONTROL: PREMIUM_TIERS,
    Capability.PUBLIC_BIDDING: PREMIUM_TIERS,
    Capability.SILENT_MODE: PREMIUM_TIERS,
    Capability.UNLIMITED_ITEMS: PREMIUM_TIERS,
    Capability.ANALYTICS: frozenset({Tier.PRO}),
}


def qualifying_tiers(capability: Capability) -> frozenset[Tier]:
    """Return the tiers that unlock ``capability``.

    Raises:
        KeyError: if the capability is missing from :data:`CAPABILITY_TIERS`.
    """
    try:
        return CAPABILITY_TIERS[capability]
    except KeyError:
        raise KeyError(f"No tier mapping for capability {capability!r}") from None


def parse_timestamp(value: object) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


@dataclass
class Account:
    """An authenticated user and the subscription attached to it."""

    user_id: str
    email: str | None = None
    tier: Tier = Tier.FREE
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    stripe_customer_id: str | None = None
    stripe_subscription_id: str | None = None
    expires_at: datetime | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or datetime.now(timezone.utc)) >= self.expires_at

    @property
    def is_premium(self) -> bool:
        return (
            self.tier in PREMIUM_TIERS
            and self.status is SubscriptionStatus.ACTIVE
            and not self.is_expired()
        )

    def has_capability(self, capability: Capability) -> bool:
        return self.is_premium and self.tier in qualifying_tiers(capability)

    @classmethod
    def from_profile(
        cls, profile: Mapping[str, Any], *, email: str | None = None
    ) -> "Account":
        """Build an account from a ``profiles`` row."""

        try:
            tier = Tier(profile.get("subscription_tier") or Tier.FREE.value)
        except ValueError:
            tier = Tier.FREE
        try:
            status = SubscriptionStatus(
                profile.get("subscription_status") or SubscriptionStatus.ACTIVE.value
            )
        except ValueError:
            status = SubscriptionStatus.EXPIRED
        return cls(
            user_id=str(profile["id"]),
            email=profile.get("email") or email,
            tier=tier,
            status=status,
            stripe_customer_id=profile.get("stripe_customer_id"),
            stripe_subscription_id=profile.get("stripe_subscription_id"),
            expires_at=parse_timestamp(profile.get("subscription_expires_at")),
        )


__all__ = [
    "Account",
    "CAPABILITY_TIERS",
    "Capability",
    "FREE_ITEM_LIMIT",
    "PREMIUM_TIERS",
    "SubscriptionStatus",
    "Tier",
    "parse_timestamp",
    "qualifying_tiers",
]
