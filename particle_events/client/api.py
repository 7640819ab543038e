"""
MODULE OVERVIEW:
Entry points that turn "which events do I want" into a connected EventStream.

WHAT IS HAPPENING HERE:
The cloud exposes one stream endpoint per scope: all public events, the events
of every device you own (`mine`), one device, or the devices of an org/product.
`event_stream_uri` assembles the path for a scope and `get_event_stream` opens it,
falling back to the configured token when the caller does not pass one.
"""
from typing import Callable
from urllib.parse import quote

import httpx

from particle_events.client.event_stream import EventStream
from particle_events.shared.config import settings
from particle_events.shared.errors import EventStreamError

def event_stream_uri(
    base_url: str,
    device_id: str | None = None,
    name: str | None = None,
    org: str | None = None,
    product: str | None = None,
) -> str:
    uri = "/v1/"
    if org:
        uri += f"orgs/{org}/"
    if product:
        uri += f"products/{product}/"
    if device_id:
        uri += "devices/"
        if device_id.lower() != "mine":
            uri += f"{device_id}/"
    uri += "events"
    if name:
        uri += f"/{quote(name, safe='')}"
    return f"{base_url.rstrip('/')}{uri}"

async def get_event_stream(
    device_id: str | None = None,
    name: str | None = None,
    org: str | None = None,
    product: str | None = None,
    auth: str | None = None,
    base_url: str | None = None,
    debug: Callable[[httpx.Request], None] | None = None,
    client: httpx.AsyncClient | None = None,
) -> EventStream:
    """Open the event stream for the given scope and return the connected session."""
    uri = event_stream_uri(base_url or settings.API_BASE_URL, device_id, name, org, product)
    stream = EventStream(uri, auth or settings.API_TOKEN or None, debug=debug, client=client)
    try:
        return await stream.connect()
    except EventStreamError:
        await stream.close()
        raise
