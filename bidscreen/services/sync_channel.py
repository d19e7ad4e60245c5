"""Realtime fan-out of display snapshots for one auction event.

A :class:`SyncChannel` owns one change feed for an event id. Change
notifications are only a trigger: the channel re-fetches the canonical
record, derives the bid-sorted snapshot and hands it to every registered
listener in registration order.

Connection state machine::

    CONNECTING --ack--> CONNECTED --closed--> DISCONNECTED
    DISCONNECTED --retry--> CONNECTING
    DISCONNECTED --retries exhausted--> FAILED

``FAILED`` is terminal until a caller subscribes again.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

from bidscreen.domain.models import DisplaySnapshot
from bidscreen.infrastructure.observability import (
    get_logger,
    log_context,
    log_exception,
    record_listener_error,
    record_reconnect_attempt,
    record_sync_notification,
)
from bidscreen.infrastructure.remote import (
    CHANNEL_ERROR,
    CLOSED,
    SUBSCRIBED,
    TIMED_OUT,
    ChangeFeed,
    ChangeFeedFactory,
    RemoteStore,
    RemoteStoreError,
    record_from_row,
)

from .dto import EventPublisher, noop_event_publisher

Listener = Callable[[DisplaySnapshot], "Awaitable[None] | None"]
Sleep = Callable[[float], Awaitable[None]]

CLOSURE_STATUSES = frozenset({CLOSED, CHANNEL_ERROR, TIMED_OUT})


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    FAILED = "failed"


@dataclass(frozen=True)
class ReconnectPolicy:
    """Exponential backoff: 1 s, 2 s, 4 s, 8 s, 10 s, then give up."""

    max_attempts: int = 5
    base_delay: float = 1.0
    max_delay: float = 10.0

    def delay(self, attempt: int) -> float:
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)


class ListenerToken:
    """Handle returned by :meth:`SyncChannel.subscribe`; release it to stop updates.

    Each subscription gets its own token, so registering the same callable
    twice needs two releases. Releasing the last token closes the feed.
    """

    def __init__(self, channel: "SyncChannel", listener: Listener) -> None:
        self._channel = channel
        self.listener = listener
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._channel._remove_token(self)


class SyncChannel:
    def __init__(
        self,
        event_id: str,
        *,
        remote: RemoteStore,
        feed_factory: ChangeFeedFactory,
        policy: ReconnectPolicy | None = None,
        event_publisher: EventPublisher = noop_event_publisher,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.event_id = event_id
        self._remote = remote
        self._feed_factory = feed_factory
        self._policy = policy or ReconnectPolicy()
        self._event_publisher = event_publisher
        self._sleep = sleep
        self._logger = get_logger(__name__)

        self._tokens: list[ListenerToken] = []
        self._feed: ChangeFeed | None = None
        self._state = ConnectionState.CONNECTING
        self._attempts = 0
        self._closed = False
        self._reconnect_task: asyncio.Task[None] | None = None
        self._idle_close_task: asyncio.Task[bool] | None = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def reconnect_attempts(self) -> int:
        return self._attempts

    @property
    def listener_count(self) -> int:
        return len(self._tokens)

    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    # -------------------- public API --------------------
    async def subscribe(self, listener: Listener) -> ListenerToken:
        """Register a listener, opening the feed on first use."""

        token = ListenerToken(self, listener)
        self._tokens.append(token)
        if self._feed is None:
            self._closed = False
            self._attempts = 0
            await self._set_state(ConnectionState.CONNECTING)
            self._feed = self._feed_factory(self.event_id)
            try:
                await self._feed.subscribe(self._on_change, self._on_status)
            except RemoteStoreError as exc:
                self._logger.warning("Initial subscribe failed for %s: %s", self.event_id, exc)
                await self._handle_closure()
        elif self._state is ConnectionState.FAILED:
            self._attempts = 0
            await self._set_state(ConnectionState.CONNECTING)
            try:
                await self._feed.resubscribe()
            except RemoteStoreError as exc:
                self._logger.warning("Re-subscribe failed for %s: %s", self.event_id, exc)
                await self._handle_closure()
        return token

    async def unsubscribe(self) -> None:
        """Tear the channel down; safe to call repeatedly."""

        self._tokens.clear()
        if self._closed and self._feed is None:
            return
        self._closed = True
        task, self._reconnect_task = self._reconnect_task, None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        feed, self._feed = self._feed, None
        if feed is not None:
            try:
                await feed.unsubscribe()
            except Exception as exc:
                log_exception(self._logger, "Feed teardown failed", exc, event_id=self.event_id)
        await self._set_state(ConnectionState.DISCONNECTED)

    async def refresh(self) -> DisplaySnapshot | None:
        """Fetch the canonical record and return its display snapshot."""

        row = await self._remote.fetch_event(self.event_id)
        if row is None:
            return None
        return record_from_row(row).snapshot()

    async def wait_for_reconnect(self) -> None:
        """Wait until a pending reconnect cycle has finished."""

        while self._reconnect_task is not None and not self._reconnect_task.done():
            await self._reconnect_task

    # -------------------- feed callbacks --------------------
    async def _on_change(self, payload: dict) -> None:
        with log_context(event_id=self.event_id):
            self._logger.debug("Change notification: %s", payload.get("type") or payload.get("eventType"))
            await self._fan_out()

    async def _on_status(self, status: str) -> None:
        if self._closed:
            return
        if status == SUBSCRIBED:
            self._attempts = 0
            await self._set_state(ConnectionState.CONNECTED)
        elif status in CLOSURE_STATUSES:
            await self._handle_closure()

    # -------------------- internals --------------------
    async def _fan_out(self) -> None:
        try:
            snapshot = await self.refresh()
        except Exception as exc:
            self._logger.warning("Re-fetch after change failed: %s", exc)
            return
        if snapshot is None:
            return
        listeners = [token.listener for token in self._tokens]
        for listener in listeners:
            try:
                result = listener(snapshot)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                record_listener_error(self.event_id)
                self._logger.exception("Sync listener failed")
        record_sync_notification(self.event_id, len(listeners))

    async def _handle_closure(self) -> None:
        if self._closed:
            return
        await self._set_state(ConnectionState.DISCONNECTED)
        if self._reconnect_task is not None and not self._reconnect_task.done():
            return
        self._reconnect_task = asyncio.create_task(self._reconnect_loop())

    async def _reconnect_loop(self) -> None:
        while not self._closed:
            if self._attempts >= self._policy.max_attempts:
                self._logger.error(
                    "Giving up on %s after %d reconnect attempts", self.event_id, self._attempts
                )
                await self._set_state(ConnectionState.FAILED)
                return
            self._attempts += 1
            delay = self._policy.delay(self._attempts)
            record_reconnect_attempt(self.event_id)
            self._logger.info(
                "Reconnecting %s in %.0fs (attempt %d/%d)",
                self.event_id,
                delay,
                self._attempts,
                self._policy.max_attempts,
            )
            await self._sleep(delay)
            if self._closed or self._feed is None:
                return
            await self._set_state(ConnectionState.CONNECTING)
            try:
                await self._feed.resubscribe()
            except RemoteStoreError as exc:
                self._logger.warning("Reconnect attempt %d failed: %s", self._attempts, exc)
                await self._set_state(ConnectionState.DISCONNECTED)
                continue
            if self._state is not ConnectionState.DISCONNECTED:
                return

    async def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        self._state = state
        try:
            await self._event_publisher(
                {
                    "type": "sync_status",
                    "event_id": self.event_id,
                    "state": state.value,
                    "attempt": self._attempts,
                }
            )
        except Exception:
            self._logger.exception("Publishing sync status failed")

    async def close_if_idle(self) -> bool:
        """Close the feed when no listener is left; returns whether it closed."""

        if self._tokens or self._feed is None:
            return False
        self._logger.info("Last listener of %s released, closing feed", self.event_id)
        await self.unsubscribe()
        return True

    def _remove_token(self, token: ListenerToken) -> None:
        self._tokens = [held for held in self._tokens if held is not token]
        if self._tokens:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._idle_close_task = loop.create_task(self.close_if_idle())


__all__ = [
    "ConnectionState",
    "Listener",
    "ListenerToken",
    "ReconnectPolicy",
    "SyncChannel",
]
