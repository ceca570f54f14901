"""Text streams returned by the agent.

Callers get a TextStream and iterate it for UTF-8 byte chunks; they do not
need to know which producer is behind it:

- ImmediateStream: an answer that is already complete (validation fallback,
  final plain-text answer), cut into fixed-size chunks.
- UpstreamEventStream: a live OpenAI-style event stream, re-parsed frame by
  frame and forwarded as deltas arrive. Bad frames are skipped.
"""

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_CHARS = 32
DONE_SENTINEL = "[DONE]"


class TextStream(ABC):
    """Async iterable of UTF-8 encoded text fragments."""

    @abstractmethod
    def __aiter__(self) -> AsyncIterator[bytes]:
        ...

    async def aclose(self) -> None:
        """Release upstream resources. Safe to call more than once."""

    async def read_text(self) -> str:
        """Drain the stream into a single string."""
        parts = [chunk async for chunk in self]
        return b"".join(parts).decode("utf-8")


class ImmediateStream(TextStream):
    """A complete answer, emitted in fixed-size pieces."""

    def __init__(self, text: str, chunk_chars: int = DEFAULT_CHUNK_CHARS):
        self.text = text
        self._chunk_chars = chunk_chars

    async def __aiter__(self):
        for i in range(0, len(self.text), self._chunk_chars):
            yield self.text[i:i + self._chunk_chars].encode("utf-8")

    def __repr__(self) -> str:
        return f"ImmediateStream({self.text[:40]!r})"


def parse_event_line(line: str) -> tuple[str | None, bool]:
    """Parse one event-stream line.

    Returns (delta_text, done). Non-data lines, frames without a text delta
    and undecodable frames all yield (None, False).
    """
    line = line.strip()
    if not line.startswith("data:"):
        return None, False

    data = line[len("data:"):].strip()
    if data == DONE_SENTINEL:
        return None, True

    try:
        chunk = json.loads(data)
        delta = chunk["choices"][0].get("delta", {}).get("content")
    except (json.JSONDecodeError, KeyError, IndexError, TypeError, AttributeError):
        logger.debug("Skipping undecodable stream frame")
        return None, False

    if isinstance(delta, str) and delta:
        return delta, False
    return None, False


class UpstreamEventStream(TextStream):
    """Re-emit text deltas from a `data: {...}` event stream.

    Args:
        lines: decoded lines as they come off the wire (`httpx.Response.aiter_lines()`).
        on_close: awaited once when iteration ends, fails, or is abandoned
            (e.g. closes the HTTP response and client).
    """

    def __init__(
        self,
        lines: AsyncIterable[str],
        on_close: Callable[[], Awaitable[None]] | None = None,
    ):
        self._lines = lines
        self._on_close = on_close
        self._closed = False

    async def __aiter__(self):
        try:
            async for line in self._lines:
                delta, done = parse_event_line(line)
                if done:
                    return
                if delta:
                    yield delta.encode("utf-8")
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._on_close is not None:
            await self._on_close()
