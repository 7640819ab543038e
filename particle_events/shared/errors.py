from typing import Any


class EventStreamError(Exception):
    """
    A failed attempt to open an event stream.

    Raised by `EventStream.connect()` and delivered as the payload of the
    `error` / `reconnect-error` signals. `status_code` is only set when the
    server answered; network failures carry the transport exception in `cause`.
    """

    def __init__(
        self,
        description: str,
        status_code: int | None = None,
        body: Any = None,
        cause: BaseException | None = None,
    ):
        super().__init__(description)
        self.description = description
        self.status_code = status_code
        self.body = body
        self.cause = cause

    def __repr__(self) -> str:
        return f"EventStreamError(status_code={self.status_code!r}, description={self.description!r})"


class StreamStateError(RuntimeError):
    """An operation was requested that the session's current state does not allow."""
