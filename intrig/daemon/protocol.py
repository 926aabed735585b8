"""Server-Sent Events framing for the daemon's streaming operations.

Stream format (one event per line, blank lines between events):
    data: {"type": "status", "step": "generate", "sourceId": "petstore"}
    data: {"type": "done"}

Network reads can end anywhere, including in the middle of a line, so the
parser keeps the incomplete tail and prepends it to the next chunk.
"""

import json
import logging
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "

EVENT_STATUS = "status"
EVENT_DONE = "done"


class SseLineParser:
    """
    Incremental line framer for ``data:`` events.

    feed() accepts arbitrary text chunks and returns the events completed by
    that chunk. Lines that are not ``data:`` lines, and data lines that are
    not valid JSON objects, are dropped.
    """

    def __init__(self) -> None:
        self._buffer = ""

    @property
    def pending(self) -> str:
        """Text received after the last newline."""
        return self._buffer

    def feed(self, chunk: str) -> List[Dict[str, Any]]:
        self._buffer += chunk
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()

        events = []
        for line in lines:
            event = self._parse_line(line)
            if event is not None:
                events.append(event)
        return events

    def flush(self) -> List[Dict[str, Any]]:
        """Parse a final unterminated line at end of stream."""
        tail, self._buffer = self._buffer, ""
        event = self._parse_line(tail)
        return [event] if event is not None else []

    @staticmethod
    def _parse_line(line: str) -> Any:
        line = line.rstrip("\r")
        if not line.startswith(DATA_PREFIX):
            return None
        try:
            event = json.loads(line[len(DATA_PREFIX):])
        except json.JSONDecodeError:
            logger.debug(f"Ignoring malformed SSE data line: {line!r}")
            return None
        if not isinstance(event, dict):
            return None
        return event


def is_done_event(event: Dict[str, Any]) -> bool:
    return event.get("type") == EVENT_DONE


def is_status_event(event: Dict[str, Any]) -> bool:
    return event.get("type") == EVENT_STATUS
