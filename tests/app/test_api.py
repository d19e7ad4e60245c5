from __future__ import annotations

import asyncio

import pytest
from fastapi.testclient import TestClient

from bidscreen.app.api import DisplayEventBus, DisplaySources, app
from bidscreen.app.config import Settings
from bidscreen.app.dependencies import build_container, reset_container, set_container


@pytest.fixture
def client():
    yield TestClient(app)
    reset_container()


def _local_container(tmp_path):
    settings = Settings(premium_features_enabled=False, db_path=tmp_path / "api.db")
    container = build_container(settings)
    set_container(container)
    return container


def _remote_container(tmp_path, fakes, *, remote, sessions=None):
    settings = Settings(db_path=tmp_path / "api.db")
    container = build_container(
        settings,
        remote=remote,
        payments=fakes.Payments(sessions or {}),
        feed_factory=lambda event_id: fakes.Feed(event_id),
    )
    set_container(container)
    return container


def test_root_lists_endpoints(client) -> None:
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["endpoints"]["websocket"] == "/ws/events/{event_id}"


def test_status_reports_local_mode(client, tmp_path) -> None:
    container = _local_container(tmp_path)
    container.storage.set_active_display("evt12345")

    body = client.get("/status").json()

    assert body["mode"] == "local"
    assert body["active_display"] == "evt12345"
    assert body["queue"] == {"is_online": True, "queue_length": 0, "entries": []}


def test_events_and_snapshot(client, tmp_path, fakes) -> None:
    container = _local_container(tmp_path)
    asyncio.run(container.storage.save_event("evt12345", fakes.make_record()))

    events = client.get("/events").json()
    snapshot = client.get("/events/evt12345/snapshot").json()

    assert [event["id"] for event in events] == ["evt12345"]
    assert events[0]["name"] == "Gala"
    assert [item["name"] for item in snapshot["items"]] == ["B", "A"]
    assert snapshot["totalRaised"] == 60


def test_missing_snapshot_is_404(client, tmp_path) -> None:
    _local_container(tmp_path)
    assert client.get("/events/nothing/snapshot").status_code == 404


def test_listing_without_sign_in_is_401(client, tmp_path, fakes) -> None:
    container = _remote_container(tmp_path, fakes, remote=fakes.RemoteStore(user=None))
    container.storage.set_mode("remote")

    assert client.get("/events").status_code == 401


def test_checkout_verify_without_keys_is_503(client, tmp_path) -> None:
    _local_container(tmp_path)
    response = client.post("/checkout/verify", json={"session_id": "cs_1"})
    assert response.status_code == 503


def test_checkout_verify_unpaid_is_402(client, tmp_path, fakes) -> None:
    _remote_container(
        tmp_path,
        fakes,
        remote=fakes.RemoteStore(user={"id": "U1"}),
        sessions={"cs_1": {"payment_status": "unpaid", "client_reference_id": "U1"}},
    )
    response = client.post("/checkout/verify", json={"session_id": "cs_1"})
    assert response.status_code == 402


def test_checkout_verify_upgrades_storage_mode(client, tmp_path, fakes) -> None:
    remote = fakes.RemoteStore(user={"id": "U1"}, profile={"id": "U1"})
    _remote_container(
        tmp_path,
        fakes,
        remote=remote,
        sessions={
            "cs_1": {
                "payment_status": "paid",
                "client_reference_id": "U1",
                "customer": "cus_1",
                "metadata": {"plan": "event"},
            }
        },
    )
    assert client.get("/status").json()["mode"] == "local"

    response = client.post("/checkout/verify", json={"session_id": "cs_1"})

    assert response.status_code == 200
    assert response.json() == {"success": True, "plan": "event", "user_id": "U1"}
    assert remote.profiles["U1"]["subscription_tier"] == "event"
    assert client.get("/status").json()["mode"] == "remote"


def test_checkout_verify_without_user_is_400(client, tmp_path, fakes) -> None:
    _remote_container(
        tmp_path,
        fakes,
        remote=fakes.RemoteStore(),
        sessions={"cs_1": {"payment_status": "paid"}},
    )
    assert client.post("/checkout/verify", json={"session_id": "cs_1"}).status_code == 400


def test_metrics_endpoint(client, tmp_path, fakes) -> None:
    container = _local_container(tmp_path)
    asyncio.run(container.storage.save_event("evt12345", fakes.make_record()))

    response = client.get("/metrics")

    assert response.status_code == 200
    assert 'storage_writes_total{mode="local",operation="save"} 1.0' in response.text


def test_display_socket_receives_ready_then_snapshot(client, tmp_path, fakes) -> None:
    container = _local_container(tmp_path)
    asyncio.run(container.storage.save_event("evt12345", fakes.make_record()))

    with client.websocket_connect("/ws/events/evt12345") as websocket:
        ready = websocket.receive_json()
        snapshot = websocket.receive_json()

    assert ready["type"] == "connection_ready"
    assert snapshot["type"] == "snapshot_updated"
    assert [item["name"] for item in snapshot["payload"]["items"]] == ["B", "A"]
    assert container.broadcast.subscriber_count("evt12345") == 0


class FakeSocket:
    def __init__(self, *, fail: bool = False) -> None:
        self.sent: list[dict] = []
        self.fail = fail

    async def accept(self) -> None:
        return None

    async def send_json(self, payload: dict) -> None:
        if self.fail:
            raise RuntimeError("connection reset")
        self.sent.append(payload)


def test_event_bus_routes_by_event_and_drops_dead_sockets() -> None:
    bus = DisplayEventBus()
    gala, other, dead = FakeSocket(), FakeSocket(), FakeSocket()

    async def run():
        await bus.subscribe("gala", gala)
        await bus.subscribe("other", other)
        await bus.subscribe("gala", dead)
        dead.fail = True
        await bus.publish({"type": "sync_status", "event_id": "gala", "state": "connected"})
        await bus.publish({"type": "connection_status", "online": False})

    asyncio.run(run())

    assert [message["type"] for message in gala.sent] == [
        "connection_ready",
        "sync_status",
        "connection_status",
    ]
    assert [message["type"] for message in other.sent] == [
        "connection_ready",
        "connection_status",
    ]
    assert bus.subscriber_count("gala") == 1
    assert gala.sent[1]["version"] == "1"


def test_two_displays_of_one_event_each_get_one_snapshot(client, tmp_path, fakes) -> None:
    remote = fakes.RemoteStore(user={"id": "U1"}, profile=fakes.premium_profile())
    container = _remote_container(tmp_path, fakes, remote=remote)
    bus = DisplayEventBus()
    sources = DisplaySources(bus)
    first, second = FakeSocket(), FakeSocket()
    snapshot = fakes.make_record().snapshot()

    async def run():
        for socket in (first, second):
            await bus.subscribe("evt12345", socket)
            await sources.acquire(container, "evt12345")
        channel = container.sync_channel("evt12345")
        attached = (container.broadcast.subscriber_count("evt12345"), channel.listener_count)
        await container.broadcast.publish("evt12345", snapshot)
        await sources.release("evt12345")
        after_one_left = container.broadcast.subscriber_count("evt12345")
        await sources.release("evt12345")
        return attached, after_one_left

    attached, after_one_left = asyncio.run(run())

    assert attached == (1, 1)
    for socket in (first, second):
        assert [message["type"] for message in socket.sent] == [
            "connection_ready",
            "snapshot_updated",
        ]
    assert after_one_left == 1
    assert container.broadcast.subscriber_count("evt12345") == 0
    assert container.sync_channel("evt12345").listener_count == 0
    assert sources.viewer_count("evt12345") == 0
