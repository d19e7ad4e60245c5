"""Shared fakes for the remote store, change feed and payment processor."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from bidscreen.domain.models import AuctionEvent, AuctionItem, StorageRecord
from bidscreen.infrastructure.db import LocalStore
from bidscreen.infrastructure.observability import get_registry
from bidscreen.infrastructure.payments import PaymentProcessor
from bidscreen.infrastructure.remote import (
    SUBSCRIBED,
    ChangeFeed,
    RemoteStore,
    RemoteStoreError,
)


class FakeRemoteStore(RemoteStore):
    """In-memory stand-in for the hosted database.

    ``fail`` holds method names that raise :class:`RemoteStoreError`;
    ``fail_times`` limits a failure to the next N calls of a method.
    """

    def __init__(self, *, user: dict | None = None, profile: dict | None = None) -> None:
        self.user = user
        self.profiles: dict[str, dict[str, Any]] = {}
        if profile is not None:
            self.profiles[str(profile["id"])] = dict(profile)
        self.events: dict[str, dict[str, Any]] = {}
        self.items: dict[str, dict[int, dict[str, Any]]] = {}
        self.calls: list[tuple[str, Any]] = []
        self.fail: set[str] = set()
        self.fail_times: dict[str, int] = {}
        self.online = True
        self.closed = False

    def _check(self, name: str, arg: Any = None) -> None:
        self.calls.append((name, arg))
        remaining = self.fail_times.get(name, 0)
        if remaining:
            self.fail_times[name] = remaining - 1
            raise RemoteStoreError(f"{name} failed")
        if name in self.fail:
            raise RemoteStoreError(f"{name} failed")

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]

    async def get_current_user(self):
        self._check("get_current_user")
        return self.user

    async def get_profile(self, user_id):
        self._check("get_profile", user_id)
        profile = self.profiles.get(user_id)
        return dict(profile) if profile else None

    async def update_profile(self, user_id, fields):
        self._check("update_profile", (user_id, dict(fields)))
        self.profiles.setdefault(user_id, {"id": user_id}).update(fields)

    async def find_profile_by_customer(self, customer_id):
        self._check("find_profile_by_customer", customer_id)
        for profile in self.profiles.values():
            if profile.get("stripe_customer_id") == customer_id:
                return {"id": profile["id"]}
        return None

    async def upsert_event(self, row):
        self._check("upsert_event", row["id"])
        self.events[row["id"]] = {**self.events.get(row["id"], {}), **row}

    async def upsert_items(self, rows):
        self._check("upsert_items", [row["id"] for row in rows])
        for row in rows:
            self.items.setdefault(row["event_id"], {})[row["id"]] = dict(row)

    async def fetch_event(self, event_id):
        self._check("fetch_event", event_id)
        row = self.events.get(event_id)
        if row is None:
            return None
        return {**row, "auction_items": list(self.items.get(event_id, {}).values())}

    async def delete_items(self, event_id, *, keep_ids=None):
        self._check("delete_items", event_id)
        keep = set(keep_ids or [])
        current = self.items.get(event_id, {})
        self.items[event_id] = {
            item_id: row for item_id, row in current.items() if keep and item_id in keep
        }
        if not self.items[event_id]:
            del self.items[event_id]

    async def delete_event(self, event_id):
        self._check("delete_event", event_id)
        self.events.pop(event_id, None)

    async def list_events(self, owner_id):
        self._check("list_events", owner_id)
        rows = [row for row in self.events.values() if row.get("owner_id") == owner_id]
        return sorted(rows, key=lambda row: row.get("updated_at") or "", reverse=True)

    async def ping(self):
        self.calls.append(("ping", None))
        return self.online

    async def close(self):
        self.closed = True


class FakeFeed(ChangeFeed):
    """Change feed whose statuses and notifications are driven by the test."""

    def __init__(self, event_id: str = "evt12345", *, auto_ack: bool = True) -> None:
        self.event_id = event_id
        self.auto_ack = auto_ack
        self.on_change = None
        self.on_status = None
        self.subscribe_calls = 0
        self.resubscribe_calls = 0
        self.unsubscribe_calls = 0
        self.resubscribe_errors = 0

    async def subscribe(self, on_change, on_status):
        self.subscribe_calls += 1
        self.on_change = on_change
        self.on_status = on_status
        if self.auto_ack:
            await on_status(SUBSCRIBED)

    async def resubscribe(self):
        self.resubscribe_calls += 1
        if self.resubscribe_errors:
            self.resubscribe_errors -= 1
            raise RemoteStoreError("socket refused")
        if self.auto_ack:
            await self.on_status(SUBSCRIBED)

    async def unsubscribe(self):
        self.unsubscribe_calls += 1

    async def emit_status(self, status: str) -> None:
        await self.on_status(status)

    async def emit_change(self, payload: dict | None = None) -> None:
        await self.on_change(payload or {"eventType": "UPDATE"})


class FakePayments(PaymentProcessor):
    def __init__(self, sessions: dict[str, dict] | None = None) -> None:
        self.sessions = sessions or {}
        self.closed = False

    async def retrieve_checkout_session(self, session_id):
        return self.sessions.get(session_id, {})

    async def close(self):
        self.closed = True


def premium_profile(user_id: str = "U1", tier: str = "pro") -> dict[str, Any]:
    return {
        "id": user_id,
        "subscription_tier": tier,
        "subscription_status": "active",
        "stripe_customer_id": "cus_1",
    }


def make_record(
    event_id: str = "evt12345",
    name: str = "Gala",
    items: list[tuple[int, str, float, float]] | None = None,
) -> StorageRecord:
    """Build a record from ``(id, name, starting_bid, current_bid)`` tuples."""

    rows = items if items is not None else [(1, "A", 10, 10), (2, "B", 5, 50)]
    return StorageRecord(
        event=AuctionEvent(id=event_id, name=name, updated_at="2024-05-01T10:00:00Z"),
        items=[
            AuctionItem(
                id=item_id,
                name=item_name,
                starting_bid=starting,
                current_bid=current,
                created_at=f"2024-05-01T09:00:{index:02d}Z",
            )
            for index, (item_id, item_name, starting, current) in enumerate(rows)
        ],
        updated_at="2024-05-01T10:00:00Z",
    )


@pytest.fixture(autouse=True)
def _reset_metrics():
    get_registry().reset()
    yield
    get_registry().reset()


@pytest.fixture
def local_store(tmp_path: Path) -> LocalStore:
    return LocalStore.from_sqlite_path(tmp_path / "device.db")


@pytest.fixture
def remote() -> FakeRemoteStore:
    return FakeRemoteStore(user={"id": "U1", "email": "u1@example.com"}, profile=premium_profile())


@pytest.fixture
def fakes():
    """Expose the fake classes and builders to test modules."""

    class _Fakes:
        RemoteStore = FakeRemoteStore
        Feed = FakeFeed
        Payments = FakePayments

    _Fakes.premium_profile = staticmethod(premium_profile)
    _Fakes.make_record = staticmethod(make_record)
    return _Fakes
