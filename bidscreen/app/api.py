"""FastAPI display service for Bidscreen.

Run with ``uvicorn bidscreen.app.api:app``.

Displays connect to ``/ws/events/{event_id}`` and receive v1 wire messages:
the current snapshot on connect, then a fresh snapshot whenever the
realtime channel or a same-process control surface reports a change.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Response, WebSocket, WebSocketDisconnect

from bidscreen import __version__
from bidscreen.app.config import load_settings
from bidscreen.app.dependencies import (
    ContainerDep,
    ServiceContainer,
    StorageAdapterDep,
    build_container,
    get_container,
    has_container,
    set_container,
)
from bidscreen.app.ws_messages import (
    MESSAGE_FORMAT_VERSION,
    ConnectionReadyMessage,
    create_message,
    snapshot_message,
)
from bidscreen.domain.models import DisplaySnapshot, ValidationError
from bidscreen.infrastructure.observability import (
    configure_logging,
    format_prometheus,
    get_logger,
)
from bidscreen.infrastructure.payments import PaymentProcessorError
from bidscreen.infrastructure.remote import AuthenticationRequired, RemoteStoreError
from bidscreen.services import ConnectivityMonitor, PaymentNotConfirmed
from bidscreen.services.dto import (
    CheckoutVerifyRequest,
    CheckoutVerifyResponse,
    EventSummaryDTO,
    QueueEntryDTO,
    QueueStatusDTO,
)

logger = get_logger(__name__)


class DisplayEventBus:
    """In-memory broadcaster from services to connected displays.

    Subscribers are grouped by event id. Payloads carrying an ``event_id``
    go to that event's displays only; everything else goes to all of them.
    Payloads without a ``version`` field are wrapped in the v1 envelope
    using their ``type`` field.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, set[WebSocket]] = defaultdict(set)
        self._lock = asyncio.Lock()

    async def subscribe(self, event_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._subscribers[event_id].add(websocket)
        ready_msg = ConnectionReadyMessage(
            server_version=__version__,
            message_format_version=MESSAGE_FORMAT_VERSION,
        )
        await self._send(websocket, ready_msg.to_wire())

    async def unsubscribe(self, event_id: str, websocket: WebSocket) -> None:
        async with self._lock:
            sockets = self._subscribers.get(event_id)
            if sockets is not None:
                sockets.discard(websocket)
                if not sockets:
                    del self._subscribers[event_id]

    def subscriber_count(self, event_id: str | None = None) -> int:
        if event_id is None:
            return sum(len(sockets) for sockets in self._subscribers.values())
        return len(self._subscribers.get(event_id, ()))

    async def publish(self, payload: dict[str, Any]) -> None:
        payload = dict(payload)
        if "version" not in payload and "type" in payload:
            msg_type = payload.pop("type")
            payload = create_message(msg_type, **payload)
        target = (payload.get("payload") or {}).get("event_id")
        async with self._lock:
            if target is not None:
                subscribers = [(target, ws) for ws in self._subscribers.get(target, ())]
            else:
                subscribers = [
                    (event_id, ws)
                    for event_id, sockets in self._subscribers.items()
                    for ws in sockets
                ]
        for event_id, subscriber in subscribers:
            if not await self._send(subscriber, payload):
                await self.unsubscribe(event_id, subscriber)

    async def publish_snapshot(self, snapshot: DisplaySnapshot) -> None:
        await self.publish(snapshot_message(snapshot).to_wire())

    async def _send(self, websocket: WebSocket, payload: dict[str, Any]) -> bool:
        try:
            await websocket.send_json(payload)
        except WebSocketDisconnect:
            return False
        except Exception:
            logger.debug("Dropping display socket after failed send")
            return False
        return True


class DisplaySources:
    """Snapshot sources feeding a bus, attached once per event id.

    The first display of an event subscribes the bus to the same-process
    broadcast hub and the realtime channel; the last display to leave
    releases both. Every snapshot therefore reaches each display once.
    """

    def __init__(self, bus: DisplayEventBus) -> None:
        self._bus = bus
        self._handles: dict[str, list[Any]] = {}
        self._viewers: dict[str, int] = defaultdict(int)
        self._lock = asyncio.Lock()

    async def acquire(self, container: ServiceContainer, event_id: str) -> None:
        async with self._lock:
            if event_id not in self._handles:
                self._handles[event_id] = await self._attach(container, event_id)
            self._viewers[event_id] += 1

    async def release(self, event_id: str) -> None:
        async with self._lock:
            self._viewers[event_id] -= 1
            if self._viewers[event_id] > 0:
                return
            del self._viewers[event_id]
            for handle in self._handles.pop(event_id, []):
                handle.release()

    def viewer_count(self, event_id: str) -> int:
        return self._viewers.get(event_id, 0)

    async def _attach(self, container: ServiceContainer, event_id: str) -> list[Any]:
        handles: list[Any] = []
        channel = container.sync_channel(event_id)
        if channel is not None:
            handles.append(await channel.subscribe(self._bus.publish_snapshot))
        handles.append(container.broadcast.subscribe(event_id, self._bus.publish_snapshot))
        return handles


event_bus = DisplayEventBus()
display_sources = DisplaySources(event_bus)


@asynccontextmanager
async def lifespan(_: FastAPI):
    configure_logging()
    if not has_container():
        set_container(build_container(load_settings(), event_publisher=event_bus.publish))
    container = get_container()
    monitor: ConnectivityMonitor | None = None
    if container.remote is not None:
        monitor = ConnectivityMonitor(
            container.storage,
            container.remote,
            interval_seconds=container.settings.connectivity_interval_seconds,
        )
        await monitor.start()
    yield
    if monitor is not None:
        await monitor.stop()
    await container.close()


app = FastAPI(title="Bidscreen API", version=__version__, lifespan=lifespan)


@app.get("/")
async def root():
    return {
        "name": "Bidscreen API",
        "version": __version__,
        "docs": "/docs",
        "endpoints": {
            "status": "/status",
            "events": "/events",
            "snapshot": "/events/{event_id}/snapshot",
            "websocket": "/ws/events/{event_id}",
            "checkout": "/checkout/verify",
            "metrics": "/metrics",
        },
    }


@app.get("/status")
async def status(container: ContainerDep) -> dict[str, Any]:
    storage = container.storage
    mode = await storage.initialize()
    return {
        "mode": mode.value,
        "premium_features_enabled": container.settings.premium_features_enabled,
        "active_display": storage.active_display(),
        "displays_connected": event_bus.subscriber_count(),
        "queue": QueueStatusDTO(
            is_online=storage.is_online,
            queue_length=len(storage.queue),
            entries=[
                QueueEntryDTO(
                    action=entry.action,
                    event_id=entry.event_id,
                    timestamp=entry.timestamp,
                    attempts=entry.attempts,
                )
                for entry in storage.queue.entries
            ],
        ).model_dump(),
    }


@app.get("/events", response_model=list[EventSummaryDTO])
async def list_events(storage: StorageAdapterDep) -> list[EventSummaryDTO]:
    try:
        summaries = await storage.list_events()
    except AuthenticationRequired as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    return [
        EventSummaryDTO(
            id=summary.id,
            name=summary.name,
            subtitle=summary.subtitle,
            status=summary.status,
            updated_at=summary.updated_at,
        )
        for summary in summaries
    ]


@app.get("/events/{event_id}/snapshot")
async def get_snapshot(event_id: str, storage: StorageAdapterDep) -> dict[str, Any]:
    try:
        record = await storage.load_event(event_id)
    except AuthenticationRequired as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    if record is None:
        raise HTTPException(status_code=404, detail=f"Event '{event_id}' not found")
    return record.snapshot().to_dict()


@app.post("/checkout/verify", response_model=CheckoutVerifyResponse)
async def verify_checkout(
    request: CheckoutVerifyRequest, container: ContainerDep
) -> CheckoutVerifyResponse:
    try:
        verifier = container.checkout_verifier()
    except RuntimeError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    try:
        result = await verifier.verify(request.session_id)
    except PaymentNotConfirmed as exc:
        raise HTTPException(status_code=402, detail="Payment not confirmed") from exc
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except (PaymentProcessorError, RemoteStoreError, AuthenticationRequired) as exc:
        logger.error("Checkout verification failed: %s", exc)
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    await container.storage.reinitialize()
    return CheckoutVerifyResponse(**result)


@app.get("/metrics")
async def metrics() -> Response:
    return Response(content=format_prometheus(), media_type="text/plain; version=0.0.4")


@app.websocket("/ws/events/{event_id}")
async def display_updates(websocket: WebSocket, event_id: str) -> None:
    container = get_container()
    await event_bus.subscribe(event_id, websocket)
    try:
        await display_sources.acquire(container, event_id)
        try:
            await _serve_display(container, websocket, event_id)
        finally:
            await display_sources.release(event_id)
    finally:
        await event_bus.unsubscribe(event_id, websocket)


async def _serve_display(
    container: ServiceContainer, websocket: WebSocket, event_id: str
) -> None:
    try:
        record = await container.storage.load_event(event_id)
    except AuthenticationRequired:
        record = None
    if record is not None:
        await websocket.send_json(snapshot_message(record.snapshot()).to_wire())
    while True:
        try:
            await websocket.receive_text()
        except WebSocketDisconnect:
            break
