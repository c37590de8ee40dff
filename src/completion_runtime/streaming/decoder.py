"""Server-Sent-Events decoder for completion streams.

The gateway frames each chunk as a ``data: <json>`` line.  Network reads do
not respect line (or even UTF-8 character) boundaries, so the decoder keeps a
rolling text buffer and only parses complete lines.
"""

from __future__ import annotations

import asyncio
import codecs
import contextlib
import json
import logging
from collections.abc import AsyncIterable, AsyncIterator
from typing import Any

from pydantic import ValidationError

from completion_runtime.models.streaming import StreamEvent

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
COMMENT_PREFIX = ":"
DONE_SENTINEL = "[DONE]"

# Longest raw payload echoed into a log record.
_LOG_PAYLOAD_LIMIT = 200

_EOF = object()


class SSEDecoder:
    """Incremental, line-buffered SSE parser.

    Feed it raw bytes in whatever pieces the network delivers; it returns the
    events completed by each piece.  Once the ``[DONE]`` sentinel is seen the
    decoder is :attr:`done` and ignores further input.

    Usage::

        decoder = SSEDecoder()
        for chunk in chunks:
            for event in decoder.feed(chunk):
                handle(event)
            if decoder.done:
                break
        for event in decoder.flush():
            handle(event)
    """

    __slots__ = ("_buffer", "_done", "_text_decoder")

    def __init__(self) -> None:
        self._buffer = ""
        self._done = False
        self._text_decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    @property
    def done(self) -> bool:
        """Whether the end-of-stream sentinel has been decoded."""
        return self._done

    def feed(self, data: bytes | str) -> list[StreamEvent]:
        """Append a network chunk and return the events it completes."""
        if self._done:
            return []
        text = data if isinstance(data, str) else self._text_decoder.decode(data)
        self._buffer += text

        lines = self._buffer.split("\n")
        # The last element is an incomplete line (or "" after a trailing newline).
        self._buffer = lines.pop()

        events: list[StreamEvent] = []
        for line in lines:
            event = self._process_line(line)
            if self._done:
                self._buffer = ""
                break
            if event is not None:
                events.append(event)
        return events

    def flush(self) -> list[StreamEvent]:
        """Parse whatever partial line remains once the byte stream has ended.

        Best-effort: the stream is already closing, so a malformed tail is
        dropped silently.
        """
        if self._done:
            return []
        self._buffer += self._text_decoder.decode(b"", final=True)
        remainder, self._buffer = self._buffer, ""
        if not remainder.strip():
            return []
        event = self._process_line(remainder, log_errors=False)
        return [event] if event is not None else []

    def _process_line(self, raw_line: str, *, log_errors: bool = True) -> StreamEvent | None:
        line = raw_line.strip()
        if not line or line.startswith(COMMENT_PREFIX):
            return None
        if not line.startswith(DATA_PREFIX):
            return None

        payload = line[len(DATA_PREFIX) :].strip()
        if payload == DONE_SENTINEL:
            self._done = True
            return None

        try:
            chunk = json.loads(payload)
        except json.JSONDecodeError:
            if log_errors:
                logger.warning(
                    "Skipping malformed SSE data line: %s", payload[:_LOG_PAYLOAD_LIMIT]
                )
            return None
        if not isinstance(chunk, dict):
            if log_errors:
                logger.warning("Skipping non-object SSE payload: %s", payload[:_LOG_PAYLOAD_LIMIT])
            return None
        try:
            return StreamEvent.from_chunk(chunk)
        except ValidationError:
            if log_errors:
                logger.warning(
                    "Skipping SSE payload with unexpected shape: %s", payload[:_LOG_PAYLOAD_LIMIT]
                )
            return None


async def decode_stream(
    source: AsyncIterable[bytes],
    *,
    abort: asyncio.Event | None = None,
) -> AsyncIterator[StreamEvent]:
    """Decode an async byte stream into :class:`StreamEvent` objects.

    Events are yielded in arrival order.  Iteration ends on ``[DONE]``, on the
    end of the byte stream (after a best-effort parse of the trailing partial
    line), or silently when ``abort`` is set.  The source is closed in every
    case.

    Parameters:
        source: Raw response body chunks.
        abort: Optional event that cancels the read when set.
    """
    decoder = SSEDecoder()
    iterator = aiter(source)
    try:
        while True:
            if abort is not None and abort.is_set():
                return
            chunk = await _next_chunk(iterator, abort)
            if chunk is _EOF:
                break
            if chunk is None:
                logger.debug("Stream read aborted")
                return
            for event in decoder.feed(chunk):
                yield event
            if decoder.done:
                return
        for event in decoder.flush():
            yield event
    finally:
        aclose = getattr(iterator, "aclose", None)
        if aclose is not None:
            await aclose()


async def _next_chunk(iterator: AsyncIterator[bytes], abort: asyncio.Event | None) -> Any:
    """Await the next chunk.

    Returns ``_EOF`` when the source is exhausted and ``None`` if ``abort``
    fires first.
    """
    if abort is None:
        return await anext(iterator, _EOF)

    read = asyncio.ensure_future(anext(iterator, _EOF))
    aborted = asyncio.ensure_future(abort.wait())
    try:
        done, _ = await asyncio.wait({read, aborted}, return_when=asyncio.FIRST_COMPLETED)
    except BaseException:
        read.cancel()
        raise
    finally:
        aborted.cancel()
    if read in done:
        return read.result()
    read.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await read
    return None
