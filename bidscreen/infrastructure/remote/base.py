"""Contracts for the hosted relational store and its change feed.

Concrete clients live beside this module (:mod:`.client` over httpx and
:mod:`.realtime` over aiohttp); tests substitute in-memory fakes.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from typing import Any

Row = dict[str, Any]
ChangeHandler = Callable[[Row], Awaitable[None]]
StatusHandler = Callable[[str], Awaitable[None]]

SUBSCRIBED = "SUBSCRIBED"
CLOSED = "CLOSED"
CHANNEL_ERROR = "CHANNEL_ERROR"
TIMED_OUT = "TIMED_OUT"


class RemoteStoreError(Exception):
    """Raised when the remote store is unreachable or rejects a request."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationRequired(Exception):
    """Raised when an operation needs a signed-in account and none is present."""


class RemoteStore:
    """Async access to the ``events``, ``auction_items`` and ``profiles`` tables."""

    async def get_current_user(self) -> Row | None:
        raise NotImplementedError

    async def get_profile(self, user_id: str) -> Row | None:
        raise NotImplementedError

    async def update_profile(self, user_id: str, fields: Row) -> None:
        raise NotImplementedError

    async def find_profile_by_customer(self, customer_id: str) -> Row | None:
        raise NotImplementedError

    async def upsert_event(self, row: Row) -> None:
        raise NotImplementedError

    async def upsert_items(self, rows: list[Row]) -> None:
        raise NotImplementedError

    async def fetch_event(self, event_id: str) -> Row | None:
        """Return the event row with its ``auction_items`` embedded, or None."""
        raise NotImplementedError

    async def delete_items(
        self, event_id: str, *, keep_ids: Iterable[int] | None = None
    ) -> None:
        """Delete the event's item rows, sparing ids listed in ``keep_ids``."""
        raise NotImplementedError

    async def delete_event(self, event_id: str) -> None:
        raise NotImplementedError

    async def list_events(self, owner_id: str) -> list[Row]:
        raise NotImplementedError

    async def ping(self) -> bool:
        raise NotImplementedError

    async def close(self) -> None:
        return None


class ChangeFeed:
    """Change notifications scoped to one auction event id."""

    async def subscribe(
        self, on_change: ChangeHandler, on_status: StatusHandler
    ) -> None:
        raise NotImplementedError

    async def resubscribe(self) -> None:
        raise NotImplementedError

    async def unsubscribe(self) -> None:
        raise NotImplementedError


ChangeFeedFactory = Callable[[str], ChangeFeed]
