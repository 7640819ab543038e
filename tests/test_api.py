"""Tests for stream URI building and the get_event_stream entry point."""

import httpx
import pytest

from particle_events.client.api import event_stream_uri, get_event_stream
from particle_events.shared.config import settings
from particle_events.shared.errors import EventStreamError
from particle_events.shared.models import StreamState

from support import ChunkStream, FakeCloud, streaming_response

BASE = "https://api.particle.io"


@pytest.mark.parametrize(
    "kwargs, expected",
    [
        ({}, "/v1/events"),
        ({"name": "temp"}, "/v1/events/temp"),
        ({"device_id": "mine"}, "/v1/devices/events"),
        ({"device_id": "MINE", "name": "temp"}, "/v1/devices/events/temp"),
        ({"device_id": "abc123"}, "/v1/devices/abc123/events"),
        ({"product": "widget", "device_id": "abc123"}, "/v1/products/widget/devices/abc123/events"),
        ({"org": "acme", "product": "widget"}, "/v1/orgs/acme/products/widget/events"),
        ({"name": "spark/status online"}, "/v1/events/spark%2Fstatus%20online"),
    ],
)
def test_event_stream_uri(kwargs, expected):
    assert event_stream_uri(BASE, **kwargs) == BASE + expected


def test_event_stream_uri_strips_trailing_slash():
    assert event_stream_uri(BASE + "/", device_id="mine") == BASE + "/v1/devices/events"


@pytest.mark.asyncio
async def test_get_event_stream_uses_explicit_token():
    body = ChunkStream()
    cloud = FakeCloud(streaming_response(body))

    stream = await get_event_stream(device_id="mine", auth="explicit", base_url=BASE, client=cloud.client())

    assert stream.state is StreamState.STREAMING
    assert str(cloud.requests[0].url) == BASE + "/v1/devices/events?access_token=explicit"
    await stream.close()


@pytest.mark.asyncio
async def test_get_event_stream_falls_back_to_configured_token(monkeypatch):
    monkeypatch.setattr(settings, "API_TOKEN", "configured")
    monkeypatch.setattr(settings, "API_BASE_URL", "http://cloud.test")
    cloud = FakeCloud(streaming_response(ChunkStream()))

    stream = await get_event_stream(name="temp", client=cloud.client())

    request = cloud.requests[0]
    assert request.url.host == "cloud.test"
    assert request.url.params["access_token"] == "configured"
    await stream.close()


@pytest.mark.asyncio
async def test_get_event_stream_propagates_rejection():
    cloud = FakeCloud(httpx.Response(403, json={"error_description": "forbidden"}))

    with pytest.raises(EventStreamError) as exc_info:
        await get_event_stream(device_id="abc", auth="t", base_url=BASE, client=cloud.client())

    assert exc_info.value.status_code == 403
    assert exc_info.value.description.endswith(" - forbidden")
