"""
MODULE OVERVIEW:
The fixture server's fan-out registry.

WHAT IS HAPPENING HERE:
Every open event stream gets a dedicated bounded asyncio.Queue together with
the filter it asked for (event name prefix, device id). When a generator
publishes, `push_event()` offers the event to every matching queue without
blocking; a stream that falls behind drops events instead of stalling the rest.
"""

import asyncio
from dataclasses import dataclass
from typing import Dict
from datetime import datetime, timezone
from loguru import logger

from particle_events.shared.models import DeviceEvent, ConnectionStats

@dataclass
class Subscription:
    queue: asyncio.Queue
    name_prefix: str | None = None
    device_id: str | None = None

    def matches(self, event: DeviceEvent) -> bool:
        if self.name_prefix and not event.name.startswith(self.name_prefix):
            return False
        if self.device_id and self.device_id != event.coreid:
            return False
        return True

class ConnectionManager:
    def __init__(self):
        self.subscriptions: Dict[str, Subscription] = {}
        self.total_events_dispatched = 0
        self.startup_time = datetime.now(timezone.utc)

    def subscribe(self, stream_id: str, name_prefix: str | None = None, device_id: str | None = None) -> asyncio.Queue:
        # Size 100 bounds memory when a client reads slowly
        queue: asyncio.Queue[DeviceEvent] = asyncio.Queue(maxsize=100)
        self.subscriptions[stream_id] = Subscription(queue, name_prefix, device_id)
        logger.info(f"stream_id={stream_id} event=connect prefix={name_prefix or '*'} device={device_id or '*'}")
        return queue

    def unsubscribe(self, stream_id: str):
        if self.subscriptions.pop(stream_id, None) is not None:
            logger.info(f"stream_id={stream_id} event=disconnect reason=cleanup")

    def push_event(self, event: DeviceEvent):
        self.total_events_dispatched += 1
        for stream_id, sub in self.subscriptions.items():
            if not sub.matches(event):
                continue
            try:
                sub.queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(f"stream_id={stream_id} event=dropped reason=queue_full")

    def get_stats(self) -> ConnectionStats:
        return ConnectionStats(
            active_streams=len(self.subscriptions),
            total_events_dispatched=self.total_events_dispatched,
            uptime_s=(datetime.now(timezone.utc) - self.startup_time).total_seconds(),
            server_time=datetime.now(timezone.utc)
        )

# Global singleton instance
manager = ConnectionManager()
