"""
MODULE OVERVIEW:
One long-lived subscription to a Particle Cloud event stream.

WHAT IS HAPPENING HERE:
`connect()` opens a streaming GET with HTTPX, authenticating with an
`access_token` query parameter, and only returns once the server has answered
200. The body is then consumed by a background task that feeds every text chunk
to the `LineParser` and dispatches the completed events to subscribers.

When the body ends (peer closed, transport error, or no keep-alive within the
idle window) the session emits `disconnect` and schedules exactly one reconnect
attempt after `reconnect_interval_ms`. If that attempt fails the session emits
`reconnect-error` and `error`, drops every subscriber and stops for good.

State lives in an explicit `StreamState` field and every move is checked
against `_TRANSITIONS`. Each connection gets a new generation number; the reader
task and the reconnect timer carry the generation they were started for, so
once `abort()` bumps it they can only observe that they are stale and exit.
"""
import asyncio
import json
from typing import Any, Callable, Dict, FrozenSet

import httpx
from loguru import logger

from particle_events.client.line_parser import LineParser
from particle_events.shared.client_utils import make_stream_stats, utc_now_iso
from particle_events.shared.config import settings
from particle_events.shared.errors import EventStreamError, StreamStateError
from particle_events.shared.events import Callback, EventChannel, SignalChannel
from particle_events.shared.models import (
    RESERVED_EVENT_NAMES,
    HttpResponseInfo,
    ParsedEvent,
    StreamSignal,
    StreamState,
)

STREAM_HEADERS = {"Accept": "text/event-stream", "Cache-Control": "no-cache"}

_TRANSITIONS: Dict[StreamState, FrozenSet[StreamState]] = {
    StreamState.IDLE: frozenset({StreamState.CONNECTING, StreamState.ABORTED}),
    StreamState.CONNECTING: frozenset({StreamState.STREAMING, StreamState.IDLE, StreamState.ABORTED}),
    StreamState.STREAMING: frozenset({StreamState.ENDED, StreamState.ABORTED}),
    StreamState.ENDED: frozenset({StreamState.RECONNECTING, StreamState.ABORTED}),
    StreamState.RECONNECTING: frozenset({StreamState.CONNECTING, StreamState.ABORTED}),
    StreamState.ABORTED: frozenset(),
}

_SIGNAL_NAMES = frozenset(signal.value for signal in StreamSignal)

def _current_task() -> asyncio.Task | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None

class EventStream:
    def __init__(
        self,
        uri: str,
        token: str | None = None,
        reconnect_interval_ms: int | None = None,
        idle_timeout_ms: int | None = None,
        debug: Callable[[httpx.Request], None] | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.uri = uri
        self.token = token
        self.reconnect_interval_ms = (
            settings.RECONNECT_INTERVAL_MS if reconnect_interval_ms is None else reconnect_interval_ms
        )
        # 0 disables the keep-alive watchdog
        self.idle_timeout_ms = settings.IDLE_TIMEOUT_MS if idle_timeout_ms is None else idle_timeout_ms
        self.debug = debug

        self._owns_client = client is None
        # No read timeout: silence on the stream is policed by the idle watchdog
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(settings.CONNECT_TIMEOUT_S, read=None))

        self.parser = LineParser()
        self.signals = SignalChannel()
        self.events = EventChannel()
        self.stats = make_stream_stats()

        self._state = StreamState.IDLE
        self._generation = 0
        self._response: httpx.Response | None = None
        self._reader: asyncio.Task | None = None
        self._reconnect_task: asyncio.Task | None = None
        self._closing: asyncio.Task | None = None

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def is_streaming(self) -> bool:
        return self._state is StreamState.STREAMING

    async def __aenter__(self) -> "EventStream":
        try:
            return await self.connect()
        except BaseException:
            await self.close()
            raise

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # ==========================
    # SUBSCRIPTIONS
    # ==========================
    def on(self, name: StreamSignal | str, callback: Callback) -> "EventStream":
        """
        Subscribe by name: lifecycle signal names go to `signals`, "event" sees
        every parsed event, any other name only the events published under it.
        """
        if isinstance(name, StreamSignal) or name in _SIGNAL_NAMES:
            self.signals.subscribe(name, callback)
        elif name == "event":
            self.events.subscribe_all(callback)
        else:
            self.events.subscribe(name, callback)
        return self

    def off(self, name: StreamSignal | str, callback: Callback) -> "EventStream":
        if isinstance(name, StreamSignal) or name in _SIGNAL_NAMES:
            self.signals.unsubscribe(name, callback)
        elif name == "event":
            self.events.unsubscribe_all(callback)
        else:
            self.events.unsubscribe(name, callback)
        return self

    # ==========================
    # CONNECTOR
    # ==========================
    async def connect(self) -> "EventStream":
        """
        Open the stream. Returns the session once the server answered 200,
        raises `EventStreamError` on network failures and non-200 responses.
        """
        self._set_state(StreamState.CONNECTING)
        self._generation += 1
        generation = self._generation

        try:
            response = await self._open()
        except BaseException:
            # Includes cancellation by a caller-imposed deadline
            if generation == self._generation and self._state is StreamState.CONNECTING:
                self._set_state(StreamState.IDLE)
            raise

        if self._is_stale(generation):
            await response.aclose()
            raise EventStreamError(f"Connection to {self.uri} aborted")

        self.parser.reset()
        self._response = response
        self._set_state(StreamState.STREAMING)
        self.stats["connected_at"] = utc_now_iso()
        self._reader = asyncio.create_task(self._consume(response, generation))
        logger.info(f"uri={self.uri} event=connect reason=status_200")
        await self._emit(StreamSignal.CONNECT)
        return self

    async def _open(self) -> httpx.Response:
        try:
            url = httpx.URL(self.uri)
            if self.token:
                url = url.copy_merge_params({"access_token": self.token})
            request = self._client.build_request("GET", url, headers=STREAM_HEADERS)
            if self.debug:
                self.debug(request)
            response = await self._client.send(request, stream=True)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning(f"uri={self.uri} event=connect_error reason=network error='{e}'")
            raise EventStreamError(f"Network error from {self.uri}", cause=e) from e

        if response.status_code != 200:
            await self._reject(response)
        return response

    async def _reject(self, response: httpx.Response) -> None:
        status_code = response.status_code
        try:
            await response.aread()
            raw = response.text
        except httpx.HTTPError:
            raw = ""
        finally:
            await response.aclose()

        body: Any = raw
        try:
            body = json.loads(raw)
        except json.JSONDecodeError:
            pass

        description = f"HTTP error {status_code} from {self.uri}"
        if isinstance(body, dict) and body.get("error_description"):
            description += f" - {body['error_description']}"

        logger.warning(f"uri={self.uri} event=connect_error reason=status_{status_code}")
        await self._emit(StreamSignal.RESPONSE, HttpResponseInfo(uri=self.uri, status_code=status_code, body=body))
        raise EventStreamError(description, status_code=status_code, body=body)

    # ==========================
    # BODY CONSUMER
    # ==========================
    async def _consume(self, response: httpx.Response, generation: int) -> None:
        reason = "eof"
        idle_timeout_s = self.idle_timeout_ms / 1000.0 if self.idle_timeout_ms else None
        bytes_before = self.stats["bytes_received"]
        chunks = response.aiter_text()
        try:
            while not self._is_stale(generation):
                try:
                    chunk = await asyncio.wait_for(anext(chunks), timeout=idle_timeout_s)
                except StopAsyncIteration:
                    break
                self.stats["bytes_received"] = bytes_before + response.num_bytes_downloaded
                for event in self.parser.feed(chunk):
                    await self._dispatch(event)
                    if self._is_stale(generation):
                        break
        except asyncio.TimeoutError:
            reason = "idle_timeout"
        except httpx.HTTPError as e:
            reason = f"transport_error:{type(e).__name__}"
        finally:
            await response.aclose()

        await self._end(generation, reason)

    async def _dispatch(self, event: ParsedEvent) -> None:
        self.stats["events_received"] += 1
        self.stats["last_event_at"] = utc_now_iso()
        if event.name not in RESERVED_EVENT_NAMES:
            await self._report(await self.events.publish(event.name, event), channel=event.name)
        await self._report(await self.events.publish_all(event), channel="event")

    # ==========================
    # RECONNECTION
    # ==========================
    async def _end(self, generation: int, reason: str) -> None:
        if self._is_stale(generation) or self._state is not StreamState.STREAMING:
            return
        self._response = None
        self._set_state(StreamState.ENDED)
        logger.info(f"uri={self.uri} event=disconnect reason={reason}")
        await self._emit(StreamSignal.DISCONNECT)

        if self._is_stale(generation):
            return
        self._set_state(StreamState.RECONNECTING)
        self._reconnect_task = asyncio.create_task(self._reconnect(generation))

    async def _reconnect(self, generation: int) -> None:
        await asyncio.sleep(self.reconnect_interval_ms / 1000.0)
        if self._is_stale(generation) or self._state is not StreamState.RECONNECTING:
            return

        self.stats["reconnect_count"] += 1
        logger.info(f"uri={self.uri} event=reconnect attempt={self.stats['reconnect_count']}")
        await self._emit(StreamSignal.RECONNECT)
        if self._is_stale(generation):
            return

        try:
            await self.connect()
        except Exception as exc:
            if self._state is StreamState.ABORTED:
                return
            err = exc if isinstance(exc, EventStreamError) else EventStreamError(
                f"Reconnect to {self.uri} failed", cause=exc
            )
            logger.warning(f"uri={self.uri} event=reconnect_error error='{err}'")
            await self._emit(StreamSignal.RECONNECT_ERROR, err)
            await self._emit(StreamSignal.ERROR, err)
            if self._state is not StreamState.ABORTED:
                self._teardown("reconnect_failed")
            return

        await self._emit(StreamSignal.RECONNECT_SUCCESS)

    # ==========================
    # TEARDOWN
    # ==========================
    def abort(self) -> None:
        """Stop streaming for good and detach every subscriber. Safe to call repeatedly."""
        if self._state is StreamState.ABORTED:
            return
        self._teardown("abort")

    async def close(self) -> None:
        """Abort, wait for the background tasks to unwind and release an owned HTTP client."""
        current = _current_task()
        pending = [t for t in (self._reader, self._reconnect_task) if t is not None and t is not current]
        self.abort()
        if self._closing is not None:
            pending.append(self._closing)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        if self._owns_client:
            await self._client.aclose()

    def _teardown(self, reason: str) -> None:
        self._set_state(StreamState.ABORTED)
        self._generation += 1
        current = _current_task()
        for task in (self._reader, self._reconnect_task):
            # A task calling abort() from a subscriber unwinds itself via the generation check
            if task is not None and task is not current and not task.done():
                task.cancel()
        response, self._response = self._response, None
        if response is not None and not response.is_closed:
            # A reader cancelled before its first step never reaches its own aclose()
            try:
                self._closing = asyncio.get_running_loop().create_task(response.aclose())
            except RuntimeError:
                logger.warning(f"uri={self.uri} event=abort reason=no_running_loop response_left_open")
        self.signals.clear()
        self.events.clear()
        logger.info(f"uri={self.uri} event=abort reason={reason}")

    # ==========================
    # INTERNALS
    # ==========================
    def _set_state(self, new: StreamState) -> None:
        if new not in _TRANSITIONS[self._state]:
            raise StreamStateError(f"cannot move from {self._state.value} to {new.value}")
        logger.debug(f"uri={self.uri} state={self._state.value}->{new.value}")
        self._state = new

    def _is_stale(self, generation: int) -> bool:
        return generation != self._generation or self._state is StreamState.ABORTED

    async def _emit(self, signal: StreamSignal, *args: Any) -> None:
        await self._report(await self.signals.publish(signal, *args), channel=signal.value)

    async def _report(self, failures: list, channel: str) -> None:
        for e in failures:
            if channel == StreamSignal.ERROR.value:
                logger.error(f"uri={self.uri} event=subscriber_error channel={channel} error='{e}'")
            else:
                logger.warning(f"uri={self.uri} event=subscriber_error channel={channel} error='{e}'")
                await self._emit(StreamSignal.ERROR, e)
