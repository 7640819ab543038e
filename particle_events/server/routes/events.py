"""
MODULE OVERVIEW:
The event stream endpoints of the fixture server.

WHAT IS HAPPENING HERE:
All scopes share one handler: the optional `device_id` and `name` path
segments become the subscription filter. Authentication mirrors the cloud: the
token arrives as the `access_token` query parameter and a mismatch is answered
with a 401 JSON body carrying `error_description`. Accepted streams are served
by `EventSourceResponse`, which also writes periodic comment pings that
clients ignore.
"""
import json
import uuid
from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from sse_starlette.sse import EventSourceResponse

from particle_events.server.connection_manager import manager
from particle_events.shared.config import settings

router = APIRouter()

INVALID_TOKEN_BODY = {
    "error": "invalid_token",
    "error_description": "The access token provided is invalid.",
}

async def queue_generator(stream_id: str, queue):
    try:
        while True:
            event = await queue.get()
            yield {"event": event.name, "data": json.dumps(event.wire_payload())}
    finally:
        manager.unsubscribe(stream_id)

@router.get("/v1/devices/{device_id}/events/{name:path}")
@router.get("/v1/devices/{device_id}/events")
@router.get("/v1/devices/events/{name:path}")
@router.get("/v1/devices/events")
@router.get("/v1/events/{name:path}")
@router.get("/v1/events")
async def event_stream(
    device_id: str | None = None,
    name: str | None = None,
    access_token: str | None = Query(None),
):
    if access_token != settings.FIXTURE_ACCESS_TOKEN:
        return JSONResponse(status_code=401, content=INVALID_TOKEN_BODY)

    if device_id and device_id.lower() == "mine":
        device_id = None
    stream_id = f"stream-{str(uuid.uuid4())[:8]}"
    queue = manager.subscribe(stream_id, name_prefix=name, device_id=device_id)
    return EventSourceResponse(queue_generator(stream_id, queue), ping=settings.FIXTURE_KEEPALIVE_S)
