"""Server-sent event framing for streamed completion responses."""
from __future__ import annotations

import codecs
import json
import logging
import re
from typing import Any, AsyncIterable, AsyncIterator, Dict, List, Optional, Union

logger = logging.getLogger(__name__)

_SEPARATORS = ("\r\n\r\n", "\n\n", "\r\r")
_LINE_SPLIT = re.compile(r"\r\n|\r|\n")

Chunk = Union[str, bytes]


def _next_boundary(buffer: str) -> Optional[tuple[int, int]]:  # (start, length) of the earliest separator
    best: Optional[tuple[int, int]] = None
    for sep in _SEPARATORS:
        index = buffer.find(sep)
        if index < 0:
            continue
        if best is None or index < best[0] or (index == best[0] and len(sep) > best[1]):
            best = (index, len(sep))
    return best


def parse_event_block(block: str) -> Optional[Dict[str, Any]]:
    """Parse one event block into its JSON payload.

    Returns ``None`` for blocks without ``data:`` lines and for payloads that
    are not JSON objects; the latter are logged and skipped.
    """

    parts: List[str] = []
    for line in _LINE_SPLIT.split(block):
        if not line.startswith("data:"):
            continue
        value = line[5:]
        if value.startswith(" "):
            value = value[1:]
        parts.append(value)
    if not parts:
        return None
    payload = "".join(parts)
    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError as exc:
        logger.warning("Skipping malformed stream event: %s", exc)
        return None
    if not isinstance(parsed, dict):
        logger.warning("Skipping non-object stream event: %r", payload[:80])
        return None
    return parsed


class EventFramer:  # Incremental SSE framer fed with arbitrary chunks
    def __init__(self) -> None:
        self._buffer = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self.done = False

    def feed(self, chunk: Chunk) -> List[Dict[str, Any]]:
        """Append ``chunk`` and return every event completed by it."""

        if self.done:
            return []
        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)
        self._buffer += chunk
        events: List[Dict[str, Any]] = []
        while not self.done:
            boundary = _next_boundary(self._buffer)
            if boundary is None:
                break
            start, length = boundary
            block = self._buffer[:start]
            self._buffer = self._buffer[start + length:]
            self._accept(block, events)
        return events

    def flush(self) -> List[Dict[str, Any]]:
        """Treat whatever is still buffered as a final event, once."""

        if self.done:
            return []
        tail = self._decoder.decode(b"", final=True)
        block = self._buffer + tail
        self._buffer = ""
        events: List[Dict[str, Any]] = []
        if block.strip():
            self._accept(block, events)
        return events

    def _accept(self, block: str, events: List[Dict[str, Any]]) -> None:
        payload = parse_event_block(block)
        if payload is None:
            return
        if payload.get("done") is True:
            self.done = True
            self._buffer = ""
            return
        events.append(payload)


async def iter_events(chunks: AsyncIterable[Chunk]) -> AsyncIterator[Dict[str, Any]]:
    """Yield parsed events from an async chunk stream until ``done`` or EOF."""

    framer = EventFramer()
    async for chunk in chunks:
        for event in framer.feed(chunk):
            yield event
        if framer.done:
            return
    for event in framer.flush():
        yield event


__all__ = ["EventFramer", "iter_events", "parse_event_block"]
