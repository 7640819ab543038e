"""Client for consuming Particle Cloud Server-Sent-Event streams."""

from particle_events.client.api import event_stream_uri, get_event_stream
from particle_events.client.event_stream import EventStream
from particle_events.shared.errors import EventStreamError, StreamStateError
from particle_events.shared.models import ParsedEvent, StreamSignal, StreamState

__all__ = [
    "EventStream",
    "EventStreamError",
    "ParsedEvent",
    "StreamSignal",
    "StreamState",
    "StreamStateError",
    "event_stream_uri",
    "get_event_stream",
]
