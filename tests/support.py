"""Fake transport pieces shared by the event stream tests."""

import asyncio

import httpx


class ChunkStream(httpx.AsyncByteStream):
    """A response body the test feeds by hand, one network chunk at a time."""

    def __init__(self):
        self.queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def push(self, text: str) -> None:
        self.queue.put_nowait(text.encode("utf-8"))

    def push_bytes(self, data: bytes) -> None:
        self.queue.put_nowait(data)

    def fail(self, exc: Exception) -> None:
        self.queue.put_nowait(exc)

    def finish(self) -> None:
        self.queue.put_nowait(None)

    async def __aiter__(self):
        while True:
            item = await self.queue.get()
            if item is None:
                return
            if isinstance(item, Exception):
                raise item
            yield item

    async def aclose(self) -> None:
        self.closed = True


class FakeCloud:
    """MockTransport handler answering each request with the next scripted response."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


def streaming_response(body: ChunkStream) -> httpx.Response:
    return httpx.Response(200, headers={"content-type": "text/event-stream"}, stream=body)


async def wait_until(predicate, timeout: float = 2.0) -> None:
    async def poll():
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(poll(), timeout=timeout)
