"""
MODULE OVERVIEW:
Typed data structures shared by the stream client and the local fixture server,
powered by Pydantic v2.

WHAT IS HAPPENING HERE:
`ParsedEvent` is what subscribers receive: the JSON object carried by the `data:`
lines of one event block, plus the `name` taken from its `event:` line. The two
enums replace stringly-typed state: `StreamState` is the reconnection state
machine, `StreamSignal` the closed set of lifecycle notifications.
"""
from enum import Enum
from typing import Any
from datetime import datetime
from pydantic import BaseModel, ConfigDict

# Event names that never get a targeted notification of their own. A device
# publishing under one of these is still delivered through the generic `event`
# channel.
RESERVED_EVENT_NAMES = frozenset({"event", "error", "response"})

class StreamState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    ENDED = "ended"
    RECONNECTING = "reconnecting"
    ABORTED = "aborted"

class StreamSignal(str, Enum):
    CONNECT = "connect"
    ERROR = "error"
    DISCONNECT = "disconnect"
    RECONNECT = "reconnect"
    RECONNECT_SUCCESS = "reconnect-success"
    RECONNECT_ERROR = "reconnect-error"
    RESPONSE = "response"

# WHAT IS HAPPENING HERE:
# The payload keys are not known in advance (every device publishes its own
# shape), so the model keeps whatever the JSON object holds as extra fields.
class ParsedEvent(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str = ""

class HttpResponseInfo(BaseModel):
    """Metadata of a rejected (non-200) stream response."""
    uri: str
    status_code: int
    body: Any = None

# Server side: one event as published by a device to the cloud.
class DeviceEvent(BaseModel):
    name: str
    data: str | None = None
    ttl: int = 60
    published_at: datetime
    coreid: str

    def wire_payload(self) -> dict[str, Any]:
        return {
            "data": self.data,
            "ttl": self.ttl,
            "published_at": self.published_at.isoformat().replace("+00:00", "Z"),
            "coreid": self.coreid,
        }

class ConnectionStats(BaseModel):
    active_streams: int
    total_events_dispatched: int
    uptime_s: float
    server_time: datetime
