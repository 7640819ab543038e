"""
MODULE OVERVIEW:
The incremental text/event-stream parser.

WHAT IS HAPPENING HERE:
Network chunks never line up with SSE frames. A chunk can end in the middle of
a field, in the middle of a JSON payload, or between the `\\r` and `\\n` of a
CRLF terminator. The parser therefore keeps three pieces of state between calls:

  * the unterminated tail of the text seen so far,
  * whether the next character should be swallowed because the previous line
    ended in `\\r` (CRLF is one boundary, not two),
  * the event block being assembled: the last `event:` name and the `data:`
    lines seen since the previous blank line.

A blank line closes the block. The data lines are joined (each one followed by
a newline), decoded as JSON and tagged with the event name. Blocks without an
`event:` line or without any `data:` line produce nothing, and neither does a
payload that is not a JSON object.
"""
import json
import re
from typing import List

from loguru import logger

from particle_events.shared.models import ParsedEvent

_TERMINATOR = re.compile(r"[\r\n]")

class LineParser:
    def __init__(self):
        self.reset()

    def reset(self) -> None:
        self.buffer = ""
        self._discard_newline = False
        self.event_name: str | None = None
        self.data_lines: List[str] = []

    @property
    def pending_payload(self) -> str:
        """The text that would be handed to the JSON decoder on the next blank line."""
        return "".join(line + "\n" for line in self.data_lines)

    def feed(self, chunk: str) -> List[ParsedEvent]:
        """Consume one chunk and return the events completed by it, in stream order."""
        self.buffer += chunk
        buf = self.buffer
        length = len(buf)
        pos = 0
        events: List[ParsedEvent] = []

        while pos < length:
            if self._discard_newline:
                self._discard_newline = False
                if buf[pos] == "\n":
                    pos += 1
                    continue

            match = _TERMINATOR.search(buf, pos)
            if match is None:
                break

            end = match.start()
            if buf[end] == "\r":
                self._discard_newline = True

            event = self._process_line(buf[pos:end])
            if event is not None:
                events.append(event)
            pos = end + 1

        self.buffer = buf[pos:] if pos < length else ""
        return events

    def _process_line(self, line: str) -> ParsedEvent | None:
        if not line:
            return self._finish_block()

        field, sep, value = line.partition(":")
        # No separator is a malformed field; a leading ':' is a comment
        if not sep or not field:
            return None

        if value.startswith(" "):
            value = value[1:]

        if field == "data":
            self.data_lines.append(value)
        elif field == "event":
            self.event_name = value
        return None

    def _finish_block(self) -> ParsedEvent | None:
        name, payload = self.event_name, self.pending_payload
        has_data = bool(self.data_lines)
        self.event_name = None
        self.data_lines = []

        if not has_data or name is None:
            return None

        try:
            decoded = json.loads(payload)
        except json.JSONDecodeError as e:
            logger.debug(f"event={name or '-'} reason=invalid_json error='{e}'")
            return None

        if not isinstance(decoded, dict):
            logger.debug(f"event={name or '-'} reason=non_object_payload")
            return None

        decoded["name"] = name or ""
        return ParsedEvent.model_validate(decoded)
