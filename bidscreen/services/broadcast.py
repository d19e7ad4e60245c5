"""Same-process fast path between a control surface and its displays.

Each event gets a named channel ``bidscreen_<eventId>``. Publishing hands
the snapshot straight to every subscriber in this process; the network
sync channel stays the path for other devices.
"""

from __future__ import annotations

import inspect
from collections import defaultdict
from collections.abc import Awaitable, Callable

from bidscreen.domain.models import DisplaySnapshot
from bidscreen.infrastructure.observability import get_logger

CHANNEL_PREFIX = "bidscreen_"

BroadcastCallback = Callable[[DisplaySnapshot], "Awaitable[None] | None"]

logger = get_logger(__name__)


def channel_name(event_id: str) -> str:
    return f"{CHANNEL_PREFIX}{event_id}"


class BroadcastSubscription:
    def __init__(self, hub: "LocalBroadcastHub", channel: str, callback: BroadcastCallback) -> None:
        self._hub = hub
        self.channel = channel
        self._callback = callback
        self._released = False

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._hub._remove(self.channel, self._callback)


class LocalBroadcastHub:
    """In-process pub/sub keyed by channel name."""

    def __init__(self) -> None:
        self._subscribers: dict[str, list[BroadcastCallback]] = defaultdict(list)

    def subscribe(self, event_id: str, callback: BroadcastCallback) -> BroadcastSubscription:
        channel = channel_name(event_id)
        self._subscribers[channel].append(callback)
        return BroadcastSubscription(self, channel, callback)

    def subscriber_count(self, event_id: str) -> int:
        return len(self._subscribers.get(channel_name(event_id), []))

    async def publish(self, event_id: str, snapshot: DisplaySnapshot) -> int:
        """Deliver ``snapshot`` to every subscriber; returns how many succeeded."""

        channel = channel_name(event_id)
        delivered = 0
        for callback in list(self._subscribers.get(channel, [])):
            try:
                result = callback(snapshot)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Broadcast subscriber on %s failed", channel)
                continue
            delivered += 1
        return delivered

    def _remove(self, channel: str, callback: BroadcastCallback) -> None:
        callbacks = self._subscribers.get(channel)
        if not callbacks:
            return
        try:
            callbacks.remove(callback)
        except ValueError:
            return
        if not callbacks:
            del self._subscribers[channel]


__all__ = [
    "BroadcastSubscription",
    "CHANNEL_PREFIX",
    "LocalBroadcastHub",
    "channel_name",
]
