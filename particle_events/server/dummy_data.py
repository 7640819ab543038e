"""
MODULE OVERVIEW:
Infinite background async generators that play the part of devices publishing
to the cloud.

WHAT IS HAPPENING HERE:
Each generator owns one fake device (a 24 hex digit `coreid`) and yields
`DeviceEvent`s at its own rhythm: a steady sensor, a bursty motion detector and
a slow status beacon. Together they give the fixture server constant,
predictable traffic to stream.
"""

import asyncio
import json
import random
from datetime import datetime, timezone
from particle_events.shared.models import DeviceEvent

def _device_id() -> str:
    return "".join(random.choice("0123456789abcdef") for _ in range(24))

async def temperature_generator(coreid: str | None = None):
    """Publishes `temperature` readings every 1s."""
    coreid = coreid or _device_id()
    temp = 21.5
    while True:
        temp = max(-20.0, min(60.0, temp + random.uniform(-0.4, 0.4)))
        yield DeviceEvent(
            name="temperature",
            data=json.dumps({"celsius": round(temp, 2)}),
            published_at=datetime.now(timezone.utc),
            coreid=coreid,
        )
        await asyncio.sleep(1.0)

async def motion_generator(coreid: str | None = None):
    """Publishes `motion` events at irregular, bursty intervals."""
    coreid = coreid or _device_id()
    zones = ["hallway", "garage", "porch", "kitchen"]
    while True:
        yield DeviceEvent(
            name="motion",
            data=random.choice(zones),
            ttl=60,
            published_at=datetime.now(timezone.utc),
            coreid=coreid,
        )
        await asyncio.sleep(random.uniform(0.5, 6.0))

async def status_generator(coreid: str | None = None):
    """Slow `spark/status` beacon every 5s."""
    coreid = coreid or _device_id()
    while True:
        yield DeviceEvent(
            name="spark/status",
            data="online",
            published_at=datetime.now(timezone.utc),
            coreid=coreid,
        )
        await asyncio.sleep(5.0)

def get_all_generators():
    """Helper to retrieve all instantiated async generators."""
    return [
        temperature_generator(),
        motion_generator(),
        status_generator()
    ]
