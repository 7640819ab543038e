"""Tests for the local fixture event server."""

import json
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sse_starlette.sse import ServerSentEvent

from particle_events.client.line_parser import LineParser
from particle_events.server.connection_manager import ConnectionManager, manager
from particle_events.server.main import app
from particle_events.server.routes.events import INVALID_TOKEN_BODY, queue_generator
from particle_events.shared.models import DeviceEvent


def device_event(name="temperature", coreid="0123456789abcdef01234567", data="21.5"):
    return DeviceEvent(name=name, data=data, published_at=datetime(2024, 5, 1, tzinfo=timezone.utc), coreid=coreid)


def test_invalid_token_is_rejected():
    client = TestClient(app)

    response = client.get("/v1/devices/events", params={"access_token": "wrong"})

    assert response.status_code == 401
    assert response.json() == INVALID_TOKEN_BODY


def test_missing_token_is_rejected():
    client = TestClient(app)

    response = client.get("/v1/events/temperature")

    assert response.status_code == 401


def test_health_and_stats():
    client = TestClient(app)

    assert client.get("/healthz").json() == {"status": "ok"}
    assert "active_streams" in client.get("/stats").json()


def test_manager_filters_by_prefix_and_device():
    mgr = ConnectionManager()
    everything = mgr.subscribe("all")
    temps = mgr.subscribe("temps", name_prefix="temp")
    one_device = mgr.subscribe("dev", device_id="aaa")

    mgr.push_event(device_event(name="temperature", coreid="aaa"))
    mgr.push_event(device_event(name="motion", coreid="bbb"))

    assert everything.qsize() == 2
    assert temps.qsize() == 1
    assert one_device.qsize() == 1
    assert mgr.get_stats().total_events_dispatched == 2


def test_manager_drops_when_queue_full():
    mgr = ConnectionManager()
    queue = mgr.subscribe("slow")

    for _ in range(150):
        mgr.push_event(device_event())

    assert queue.qsize() == 100


@pytest.mark.asyncio
async def test_stream_frames_parse_back_into_events():
    queue = manager.subscribe("frames")
    manager.push_event(device_event(name="spark/status", data="online"))
    frames = queue_generator("frames", queue)

    item = await anext(frames)
    await frames.aclose()

    wire = ServerSentEvent(data=item["data"], event=item["event"]).encode()
    events = LineParser().feed(wire.decode("utf-8"))

    assert "frames" not in manager.subscriptions
    assert [e.model_dump() for e in events] == [
        {
            "name": "spark/status",
            "data": "online",
            "ttl": 60,
            "published_at": "2024-05-01T00:00:00Z",
            "coreid": "0123456789abcdef01234567",
        }
    ]
    assert json.loads(item["data"])["coreid"] == "0123456789abcdef01234567"
