"""Subscription state reconciliation.

Two paths write an account's tier and status:

* :class:`SubscriptionReconciler` applies payment-processor webhook events
  (already parsed and verified by the caller).
* :class:`CheckoutVerifier` confirms a finished checkout session directly
  with the processor and applies the same upgrade.

Both key their writes on identifiers stored in the ``profiles`` table and
never on client-supplied tier values.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from bidscreen.domain.models import SubscriptionStatus, Tier, ValidationError
from bidscreen.infrastructure.observability import get_logger, log_context, record_webhook_event
from bidscreen.infrastructure.payments import PaymentProcessor
from bidscreen.infrastructure.remote import RemoteStore

logger = get_logger(__name__)

Clock = Callable[[], datetime]

EVENT_PLAN_DURATION = timedelta(days=30)
DEFAULT_PLAN = Tier.PRO.value

PROVIDER_STATUS_MAP: dict[str, SubscriptionStatus] = {
    "active": SubscriptionStatus.ACTIVE,
    "trialing": SubscriptionStatus.ACTIVE,
    "past_due": SubscriptionStatus.PAST_DUE,
    "canceled": SubscriptionStatus.CANCELED,
    "incomplete_expired": SubscriptionStatus.CANCELED,
    "unpaid": SubscriptionStatus.EXPIRED,
}


class PaymentNotConfirmed(Exception):
    """Raised when a checkout session has not been paid."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def map_provider_status(status: str | None) -> SubscriptionStatus:
    """Translate a processor subscription status; unknown values count as active."""

    return PROVIDER_STATUS_MAP.get(status or "", SubscriptionStatus.ACTIVE)


def upgrade_fields(
    plan: str,
    *,
    customer_id: str | None,
    subscription_id: str | None,
    now: datetime,
) -> dict[str, Any]:
    """Profile columns written when a checkout completes.

    Only the one-time event plan expires, 30 days after confirmation.
    """
    expires_at = _iso(now + EVENT_PLAN_DURATION) if plan == Tier.EVENT.value else None
    return {
        "stripe_customer_id": customer_id,
        "stripe_subscription_id": subscription_id,
        "subscription_tier": plan,
        "subscription_status": SubscriptionStatus.ACTIVE.value,
        "subscription_expires_at": expires_at,
        "updated_at": _iso(now),
    }


def _session_user_id(session: Mapping[str, Any]) -> str | None:
    metadata = session.get("metadata") or {}
    return session.get("client_reference_id") or metadata.get("user_id")


def _session_plan(session: Mapping[str, Any]) -> str:
    metadata = session.get("metadata") or {}
    plan = metadata.get("plan") or DEFAULT_PLAN
    if plan not in (Tier.PRO.value, Tier.EVENT.value):
        raise ValidationError(f"Unknown plan {plan!r}")
    return plan


@dataclass
class ReconcileOutcome:
    event_type: str
    handled: bool
    user_id: str | None = None
    reason: str | None = None


class SubscriptionReconciler:
    """Apply webhook events to ``profiles`` rows.

    Lookup misses are logged and the event is dropped; the processor
    retries delivery on its own. Write failures propagate so the caller
    can answer the webhook with an error.
    """

    def __init__(self, remote: RemoteStore, *, clock: Clock = _utcnow) -> None:
        self._remote = remote
        self._clock = clock

    async def handle_event(self, event: Mapping[str, Any]) -> ReconcileOutcome:
        event_type = str(event.get("type") or "")
        obj = (event.get("data") or {}).get("object") or {}
        with log_context(webhook=event_type, webhook_id=event.get("id")):
            if event_type == "checkout.session.completed":
                outcome = await self._checkout_completed(obj)
            elif event_type == "customer.subscription.updated":
                outcome = await self._update_by_customer(
                    event_type,
                    obj.get("customer"),
                    {"subscription_status": map_provider_status(obj.get("status")).value},
                )
            elif event_type == "customer.subscription.deleted":
                outcome = await self._update_by_customer(
                    event_type,
                    obj.get("customer"),
                    {
                        "subscription_tier": Tier.FREE.value,
                        "subscription_status": SubscriptionStatus.CANCELED.value,
                        "stripe_subscription_id": None,
                    },
                )
            elif event_type == "invoice.payment_failed":
                outcome = await self._update_by_customer(
                    event_type,
                    obj.get("customer"),
                    {"subscription_status": SubscriptionStatus.PAST_DUE.value},
                )
            elif event_type == "invoice.payment_succeeded":
                outcome = await self._update_by_customer(
                    event_type,
                    obj.get("customer"),
                    {"subscription_status": SubscriptionStatus.ACTIVE.value},
                )
            else:
                logger.info("Ignoring unhandled webhook type %s", event_type)
                outcome = ReconcileOutcome(event_type, handled=False, reason="unhandled")
        record_webhook_event(event_type, "applied" if outcome.handled else "dropped")
        return outcome

    async def _checkout_completed(self, session: Mapping[str, Any]) -> ReconcileOutcome:
        event_type = "checkout.session.completed"
        user_id = _session_user_id(session)
        if not user_id:
            logger.error("No user id in checkout session %s", session.get("id"))
            return ReconcileOutcome(event_type, handled=False, reason="missing user id")
        plan = (session.get("metadata") or {}).get("plan") or DEFAULT_PLAN
        subscription_id = (
            session.get("subscription") if session.get("mode") == "subscription" else None
        )
        fields = upgrade_fields(
            plan,
            customer_id=session.get("customer"),
            subscription_id=subscription_id,
            now=self._clock(),
        )
        await self._remote.update_profile(user_id, fields)
        logger.info("User %s upgraded to %s plan", user_id, plan)
        return ReconcileOutcome(event_type, handled=True, user_id=user_id)

    async def _update_by_customer(
        self, event_type: str, customer_id: str | None, fields: dict[str, Any]
    ) -> ReconcileOutcome:
        profile = (
            await self._remote.find_profile_by_customer(customer_id) if customer_id else None
        )
        if profile is None:
            logger.error("Profile not found for customer %s", customer_id)
            return ReconcileOutcome(event_type, handled=False, reason="profile not found")
        user_id = str(profile["id"])
        await self._remote.update_profile(
            user_id, {**fields, "updated_at": _iso(self._clock())}
        )
        logger.info("Applied %s to user %s", event_type, user_id)
        return ReconcileOutcome(event_type, handled=True, user_id=user_id)


class CheckoutVerifier:
    """Confirm a checkout session with the processor, then upgrade the account."""

    def __init__(
        self,
        payments: PaymentProcessor,
        remote: RemoteStore,
        *,
        clock: Clock = _utcnow,
    ) -> None:
        self._payments = payments
        self._remote = remote
        self._clock = clock

    async def verify(self, session_id: str) -> dict[str, Any]:
        if not session_id:
            raise ValidationError("Missing session id")
        session = await self._payments.retrieve_checkout_session(session_id)
        if not session or (
            session.get("payment_status") != "paid" and session.get("status") != "complete"
        ):
            raise PaymentNotConfirmed(f"Checkout session {session_id} is not paid")

        user_id = _session_user_id(session)
        if not user_id:
            raise ValidationError("No user id found in checkout session")
        plan = _session_plan(session)
        fields = upgrade_fields(
            plan,
            customer_id=session.get("customer"),
            subscription_id=session.get("subscription") or None,
            now=self._clock(),
        )
        await self._remote.update_profile(user_id, fields)
        logger.info("Checkout %s verified: user %s now on %s", session_id, user_id, plan)
        return {"success": True, "plan": plan, "user_id": user_id}


__all__ = [
    "CheckoutVerifier",
    "EVENT_PLAN_DURATION",
    "PROVIDER_STATUS_MAP",
    "PaymentNotConfirmed",
    "ReconcileOutcome",
    "SubscriptionReconciler",
    "map_provider_status",
    "upgrade_fields",
]
