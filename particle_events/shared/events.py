"""
MODULE OVERVIEW:
Subscriber registries for one event stream session.

WHAT IS HAPPENING HERE:
Lifecycle notifications and device events travel on two separate channels.
`SignalChannel` is keyed by the closed `StreamSignal` enum, so a device that
publishes an event called "disconnect" can never trigger the lifecycle handler
of the same name. `EventChannel` is the dynamic map from event name to
subscribers, plus a catch-all list that sees every parsed event.

Subscribers may be plain callables or coroutine functions. Publishing awaits
them one at a time, in subscription order, and hands back the exceptions they
raised instead of stopping at the first one; the owning session decides how to
surface them.
"""
import inspect
from typing import Any, Awaitable, Callable, Dict, List

from particle_events.shared.models import StreamSignal

Callback = Callable[..., Awaitable[None] | None]

async def _deliver(subscribers: List[Callback], args: tuple) -> List[Exception]:
    failures: List[Exception] = []
    for sub in list(subscribers):
        # Skip subscribers removed (or cleared by an abort) during this dispatch
        if sub not in subscribers:
            continue
        try:
            result = sub(*args)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            failures.append(e)
    return failures

class SignalChannel:
    def __init__(self):
        self._subscribers: Dict[StreamSignal, List[Callback]] = {signal: [] for signal in StreamSignal}

    def subscribe(self, signal: StreamSignal | str, callback: Callback) -> None:
        self._subscribers[StreamSignal(signal)].append(callback)

    def unsubscribe(self, signal: StreamSignal | str, callback: Callback) -> None:
        subs = self._subscribers[StreamSignal(signal)]
        if callback in subs:
            subs.remove(callback)

    def count(self, signal: StreamSignal | str) -> int:
        return len(self._subscribers[StreamSignal(signal)])

    def clear(self) -> None:
        for subs in self._subscribers.values():
            subs.clear()

    async def publish(self, signal: StreamSignal, *args: Any) -> List[Exception]:
        return await _deliver(self._subscribers[signal], args)

class EventChannel:
    def __init__(self):
        self._by_name: Dict[str, List[Callback]] = {}
        self._catch_all: List[Callback] = []

    def subscribe(self, name: str, callback: Callback) -> None:
        self._by_name.setdefault(name, []).append(callback)

    def subscribe_all(self, callback: Callback) -> None:
        self._catch_all.append(callback)

    def unsubscribe(self, name: str, callback: Callback) -> None:
        subs = self._by_name.get(name, [])
        if callback in subs:
            subs.remove(callback)
        if not subs:
            self._by_name.pop(name, None)

    def unsubscribe_all(self, callback: Callback) -> None:
        if callback in self._catch_all:
            self._catch_all.remove(callback)

    def count(self, name: str | None = None) -> int:
        if name is None:
            return len(self._catch_all)
        return len(self._by_name.get(name, []))

    def clear(self) -> None:
        for subs in self._by_name.values():
            subs.clear()
        self._by_name.clear()
        self._catch_all.clear()

    async def publish(self, name: str, *args: Any) -> List[Exception]:
        return await _deliver(self._by_name.get(name, []), args)

    async def publish_all(self, *args: Any) -> List[Exception]:
        return await _deliver(self._catch_all, args)
