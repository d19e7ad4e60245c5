"""Realtime change feed over the provider's Phoenix-channel websocket.

One :class:`RealtimeFeed` joins the topic ``realtime:event:<id>`` with a
``postgres_changes`` config covering the event row and its item rows.
Change payloads are forwarded untouched; the sync channel only uses them
as a trigger to re-fetch canonical state.

Wire format (Phoenix serializer v1, JSON objects)::

    {"topic": "...", "event": "phx_join", "payload": {...}, "ref": "1"}
"""

from __future__ import annotations

import asyncio
import itertools
import json
from typing import Any

import aiohttp

from bidscreen.infrastructure.observability import get_logger

from .base import (
    CHANNEL_ERROR,
    CLOSED,
    SUBSCRIBED,
    TIMED_OUT,
    ChangeFeed,
    ChangeHandler,
    RemoteStoreError,
    StatusHandler,
)

logger = get_logger(__name__)

HEARTBEAT_INTERVAL_SECONDS = 25.0
EVENTS_PER_SECOND = 10
PHOENIX_TOPIC = "phoenix"


def websocket_url(base_url: str, api_key: str) -> str:
    """Return the realtime endpoint for a project URL."""

    root = base_url.rstrip("/")
    if root.startswith("https://"):
        root = "wss://" + root[len("https://"):]
    elif root.startswith("http://"):
        root = "ws://" + root[len("http://"):]
    return f"{root}/realtime/v1/websocket?apikey={api_key}&vsn=1.0.0"


def postgres_changes_config(event_id: str) -> list[dict[str, str]]:
    return [
        {
            "event": "*",
            "schema": "public",
            "table": "auction_items",
            "filter": f"event_id=eq.{event_id}",
        },
        {
            "event": "*",
            "schema": "public",
            "table": "events",
            "filter": f"id=eq.{event_id}",
        },
    ]


class RealtimeFeed(ChangeFeed):
    """Websocket subscription to changes of a single auction event."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        event_id: str,
        *,
        access_token: str | None = None,
        heartbeat_interval: float = HEARTBEAT_INTERVAL_SECONDS,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.url = websocket_url(base_url, api_key)
        self.api_key = api_key
        self.event_id = event_id
        self.access_token = access_token
        self.heartbeat_interval = heartbeat_interval
        self.topic = f"realtime:event:{event_id}"
        self._session = session
        self._owns_session = session is None
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._heartbeat_task: asyncio.Task[None] | None = None
        self._refs = itertools.count(1)
        self._join_ref: str | None = None
        self._on_change: ChangeHandler | None = None
        self._on_status: StatusHandler | None = None
        self._closing = False

    # -------------------- message helpers --------------------
    def encode(self, event: str, payload: dict[str, Any], *, topic: str | None = None) -> str:
        ref = str(next(self._refs))
        message = {
            "topic": topic or self.topic,
            "event": event,
            "payload": payload,
            "ref": ref,
        }
        if event == "phx_join":
            self._join_ref = ref
        return json.dumps(message)

    def join_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "config": {
                "broadcast": {"ack": False, "self": False},
                "presence": {"key": ""},
                "postgres_changes": postgres_changes_config(self.event_id),
            },
            "params": {"eventsPerSecond": EVENTS_PER_SECOND},
        }
        if self.access_token:
            payload["access_token"] = self.access_token
        return payload

    async def handle_message(self, message: dict[str, Any]) -> None:
        """Dispatch one decoded frame to the registered handlers."""

        if message.get("topic") != self.topic:
            return
        event = message.get("event")
        payload = message.get("payload") or {}
        if event == "phx_reply":
            if message.get("ref") != self._join_ref:
                return
            status = payload.get("status")
            if status == "ok":
                await self._emit_status(SUBSCRIBED)
            elif status == "timeout":
                await self._emit_status(TIMED_OUT)
            else:
                logger.warning("Join rejected for %s: %s", self.topic, payload.get("response"))
                await self._emit_status(CHANNEL_ERROR)
        elif event == "postgres_changes":
            if self._on_change is not None:
                await self._on_change(payload.get("data") or payload)
        elif event == "phx_error":
            await self._emit_status(CHANNEL_ERROR)
        elif event == "phx_close":
            await self._emit_status(CLOSED)
        elif event == "system" and payload.get("status") == "error":
            logger.warning("Realtime system error on %s: %s", self.topic, payload.get("message"))

    async def _emit_status(self, status: str) -> None:
        if self._on_status is not None and not self._closing:
            await self._on_status(status)

    # -------------------- connection lifecycle --------------------
    async def subscribe(self, on_change: ChangeHandler, on_status: StatusHandler) -> None:
        self._on_change = on_change
        self._on_status = on_status
        self._closing = False
        await self._connect()

    async def resubscribe(self) -> None:
        await self._disconnect()
        self._closing = False
        await self._connect()

    async def unsubscribe(self) -> None:
        self._closing = True
        if self._ws is not None and not self._ws.closed:
            try:
                await self._ws.send_str(self.encode("phx_leave", {}))
            except (aiohttp.ClientError, ConnectionError) as exc:
                logger.debug("phx_leave not delivered for %s: %s", self.topic, exc)
        await self._disconnect()
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def _connect(self) -> None:
        if self._session is None:
            self._session = aiohttp.ClientSession()
        try:
            self._ws = await self._session.ws_connect(self.url, heartbeat=None)
            await self._ws.send_str(self.encode("phx_join", self.join_payload()))
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.warning("Realtime connect failed for %s: %s", self.topic, exc)
            raise RemoteStoreError(f"Realtime connect failed: {exc}") from exc
        self._reader_task = asyncio.create_task(self._read_loop(self._ws))
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop(self._ws))

    async def _disconnect(self) -> None:
        current = asyncio.current_task()
        for task in (self._heartbeat_task, self._reader_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._heartbeat_task = None
        self._reader_task = None
        if self._ws is not None and not self._ws.closed:
            await self._ws.close()
        self._ws = None

    async def _read_loop(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        async for msg in ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                try:
                    decoded = json.loads(msg.data)
                except json.JSONDecodeError:
                    logger.warning("Dropping undecodable realtime frame on %s", self.topic)
                    continue
                await self.handle_message(decoded)
            elif msg.type in (aiohttp.WSMsgType.CLOSED, aiohttp.WSMsgType.ERROR):
                break
        if ws is self._ws:
            await self._emit_status(CLOSED)

    async def _heartbeat_loop(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        while not ws.closed:
            await asyncio.sleep(self.heartbeat_interval)
            try:
                await ws.send_str(self.encode("heartbeat", {}, topic=PHOENIX_TOPIC))
            except (aiohttp.ClientError, ConnectionError) as exc:
                logger.debug("Heartbeat failed for %s: %s", self.topic, exc)
                return


__all__ = [
    "HEARTBEAT_INTERVAL_SECONDS",
    "RealtimeFeed",
    "postgres_changes_config",
    "websocket_url",
]
