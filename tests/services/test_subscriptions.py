from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from bidscreen.domain.models import Account, ValidationError
from bidscreen.infrastructure.observability import get_registry
from bidscreen.infrastructure.remote import RemoteStoreError
from bidscreen.services import CheckoutVerifier, PaymentNotConfirmed, SubscriptionReconciler
from bidscreen.services.subscriptions import map_provider_status

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _reconciler(remote) -> SubscriptionReconciler:
    return SubscriptionReconciler(remote, clock=lambda: NOW)


def _event(event_type: str, obj: dict) -> dict:
    return {"id": "evt_1", "type": event_type, "data": {"object": obj}}


def test_checkout_completed_event_plan_expires_in_thirty_days(fakes) -> None:
    remote = fakes.RemoteStore()
    before = datetime.now(timezone.utc)
    reconciler = SubscriptionReconciler(remote)

    outcome = asyncio.run(
        reconciler.handle_event(
            _event(
                "checkout.session.completed",
                {
                    "client_reference_id": "U1",
                    "customer": "cus_9",
                    "mode": "payment",
                    "metadata": {"plan": "event"},
                },
            )
        )
    )

    assert outcome.handled and outcome.user_id == "U1"
    account = Account.from_profile(remote.profiles["U1"])
    assert account.tier.value == "event"
    assert account.status.value == "active"
    assert account.stripe_customer_id == "cus_9"
    expected = before + timedelta(days=30)
    assert abs((account.expires_at - expected).total_seconds()) < 5


def test_checkout_completed_subscription_keeps_subscription_id(fakes) -> None:
    remote = fakes.RemoteStore()

    asyncio.run(
        _reconciler(remote).handle_event(
            _event(
                "checkout.session.completed",
                {
                    "metadata": {"user_id": "U1", "plan": "pro"},
                    "customer": "cus_1",
                    "mode": "subscription",
                    "subscription": "sub_1",
                },
            )
        )
    )

    profile = remote.profiles["U1"]
    assert profile["subscription_tier"] == "pro"
    assert profile["stripe_subscription_id"] == "sub_1"
    assert profile["subscription_expires_at"] is None


def test_checkout_without_user_is_dropped(fakes) -> None:
    remote = fakes.RemoteStore()

    outcome = asyncio.run(
        _reconciler(remote).handle_event(_event("checkout.session.completed", {"customer": "c"}))
    )

    assert not outcome.handled
    assert remote.profiles == {}
    counter = get_registry().counter("webhook_events_total")
    assert counter.get({"type": "checkout.session.completed", "outcome": "dropped"}) == 1


def test_subscription_deleted_downgrades_known_customer(fakes) -> None:
    remote = fakes.RemoteStore(
        profile={
            "id": "U1",
            "subscription_tier": "pro",
            "subscription_status": "active",
            "stripe_customer_id": "cus_1",
            "stripe_subscription_id": "sub_1",
        }
    )

    outcome = asyncio.run(
        _reconciler(remote).handle_event(
            _event("customer.subscription.deleted", {"customer": "cus_1"})
        )
    )

    profile = remote.profiles["U1"]
    assert outcome.handled
    assert profile["subscription_tier"] == "free"
    assert profile["subscription_status"] == "canceled"
    assert profile["stripe_subscription_id"] is None


@pytest.mark.parametrize(
    "event_type, obj, expected",
    [
        ("customer.subscription.updated", {"status": "trialing"}, "active"),
        ("customer.subscription.updated", {"status": "unpaid"}, "expired"),
        ("customer.subscription.updated", {"status": "incomplete_expired"}, "canceled"),
        ("invoice.payment_failed", {}, "past_due"),
        ("invoice.payment_succeeded", {}, "active"),
    ],
)
def test_status_updates_by_customer(fakes, event_type, obj, expected) -> None:
    remote = fakes.RemoteStore(profile=fakes.premium_profile())

    asyncio.run(
        _reconciler(remote).handle_event(_event(event_type, {"customer": "cus_1", **obj}))
    )

    assert remote.profiles["U1"]["subscription_status"] == expected


def test_unknown_customer_is_logged_and_dropped(fakes) -> None:
    remote = fakes.RemoteStore(profile=fakes.premium_profile())

    outcome = asyncio.run(
        _reconciler(remote).handle_event(_event("invoice.payment_failed", {"customer": "cus_x"}))
    )

    assert not outcome.handled
    assert outcome.reason == "profile not found"
    assert remote.profiles["U1"]["subscription_status"] == "active"


def test_unhandled_event_types_are_ignored(fakes) -> None:
    outcome = asyncio.run(
        _reconciler(fakes.RemoteStore()).handle_event(_event("charge.refunded", {}))
    )
    assert outcome.handled is False
    assert outcome.reason == "unhandled"


def test_update_failures_propagate(fakes) -> None:
    remote = fakes.RemoteStore(profile=fakes.premium_profile())
    remote.fail.add("update_profile")

    with pytest.raises(RemoteStoreError):
        asyncio.run(
            _reconciler(remote).handle_event(
                _event("invoice.payment_succeeded", {"customer": "cus_1"})
            )
        )


def test_provider_status_defaults_to_active() -> None:
    assert map_provider_status("something_new").value == "active"
    assert map_provider_status(None).value == "active"


class TestCheckoutVerifier:
    """Checkout confirmation against the payment processor."""

    def test_paid_session_upgrades_account(self, fakes):
        remote = fakes.RemoteStore()
        payments = fakes.Payments(
            {
                "cs_1": {
                    "payment_status": "paid",
                    "client_reference_id": "U1",
                    "customer": "cus_1",
                    "subscription": "sub_1",
                    "metadata": {"plan": "pro"},
                }
            }
        )
        verifier = CheckoutVerifier(payments, remote, clock=lambda: NOW)

        result = asyncio.run(verifier.verify("cs_1"))

        assert result == {"success": True, "plan": "pro", "user_id": "U1"}
        assert remote.profiles["U1"]["stripe_subscription_id"] == "sub_1"
        assert remote.profiles["U1"]["subscription_status"] == "active"

    def test_complete_status_counts_as_paid(self, fakes):
        remote = fakes.RemoteStore()
        payments = fakes.Payments(
            {"cs_2": {"status": "complete", "metadata": {"user_id": "U2", "plan": "event"}}}
        )

        result = asyncio.run(CheckoutVerifier(payments, remote, clock=lambda: NOW).verify("cs_2"))

        assert result["plan"] == "event"
        assert remote.profiles["U2"]["subscription_expires_at"] == "2024-05-31T12:00:00Z"
        assert remote.profiles["U2"]["stripe_subscription_id"] is None

    def test_unpaid_session_is_rejected(self, fakes):
        remote = fakes.RemoteStore()
        payments = fakes.Payments({"cs_3": {"payment_status": "unpaid", "status": "open"}})

        with pytest.raises(PaymentNotConfirmed):
            asyncio.run(CheckoutVerifier(payments, remote).verify("cs_3"))
        assert remote.profiles == {}

    def test_missing_user_or_session_is_a_validation_error(self, fakes):
        payments = fakes.Payments({"cs_4": {"payment_status": "paid"}})
        verifier = CheckoutVerifier(payments, fakes.RemoteStore())

        with pytest.raises(ValidationError):
            asyncio.run(verifier.verify(""))
        with pytest.raises(ValidationError):
            asyncio.run(verifier.verify("cs_4"))

    def test_unknown_plan_is_rejected(self, fakes):
        payments = fakes.Payments(
            {"cs_5": {"payment_status": "paid", "client_reference_id": "U1", "metadata": {"plan": "gold"}}}
        )
        with pytest.raises(ValidationError):
            asyncio.run(CheckoutVerifier(payments, fakes.RemoteStore()).verify("cs_5"))
