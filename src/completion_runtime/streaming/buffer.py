"""Chunk buffering with throttled persistence.

Every accepted delta is pushed to the UI notifier immediately, but writes to
the persistence sink are throttled by a dual trigger: a write happens as soon
as ``buffer_size`` fragments have accumulated since the previous write, or
once ``buffer_time_ms`` have elapsed since it.  A terminal event forces one
final write marked complete, after which the buffer is discarded.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from completion_runtime._callbacks import fire_callbacks
from completion_runtime.exceptions import CompletionRuntimeError, PersistenceError
from completion_runtime.models.generation import MessageUpdate
from completion_runtime.models.streaming import Annotation, ChunkUpdate, StreamEvent
from completion_runtime.observability.streaming_metrics import StreamingMonitor
from completion_runtime.protocols.storage import MessageStore

logger = logging.getLogger(__name__)

ChunkNotifier = Callable[[str, bool], Any]

DEFAULT_BUFFER_SIZE = 3
DEFAULT_BUFFER_TIME_MS = 80.0


@dataclass(slots=True, eq=False)
class MessageBuffer:
    """Accumulated, not yet finalized output of one message.

    ``chunks`` and ``reasoning_chunks`` keep the raw fragments in arrival
    order; ``pending_fragments`` counts fragments received since the last
    write and drives the size trigger.
    """

    message_id: str
    content: str = ""
    reasoning: str = ""
    chunks: list[str] = field(default_factory=list)
    reasoning_chunks: list[str] = field(default_factory=list)
    annotations: list[Annotation] = field(default_factory=list)
    last_flush: float = 0.0
    pending_fragments: int = 0
    flush_count: int = 0
    notifier: ChunkNotifier | None = None
    timer: asyncio.TimerHandle | None = None
    write_task: asyncio.Task[None] | None = None
    error: PersistenceError | None = None

    def to_update(self, *, complete: bool) -> MessageUpdate:
        return MessageUpdate(
            content=self.content,
            reasoning=self.reasoning or None,
            annotations=list(self.annotations) if self.annotations else None,
            is_complete=True if complete else None,
        )

    def to_chunk_update(self, *, complete: bool) -> ChunkUpdate:
        return ChunkUpdate(
            message_id=self.message_id,
            content=self.content,
            reasoning=self.reasoning,
            annotations=list(self.annotations),
            is_complete=complete,
        )


class ChunkBuffer:
    """Owns the per-message buffers and decides when to persist them.

    At most one buffer exists per message id.  Buffers are created by
    :meth:`open` (or lazily on the first accepted delta) and removed
    synchronously by :meth:`finalize`, :meth:`abandon` or :meth:`discard`,
    so a pending timer can never fire against a freed buffer.  Writes for one
    message are serialised: every write path cancels the pending timer and
    waits for an in-flight timer write before issuing its own.

    Parameters:
        store: Persistence sink receiving ``update_message`` calls.
        buffer_size: Fragments since the last write that force a write.
        buffer_time_ms: Milliseconds since the last write that force a write.
        monitor: Optional streaming monitor fed with chunk/write counts.
        clock: Monotonic clock in seconds (injectable for tests).
    """

    __slots__ = (
        "_background",
        "_buffer_size",
        "_buffer_time",
        "_buffers",
        "_clock",
        "_monitor",
        "_store",
    )

    def __init__(
        self,
        store: MessageStore,
        *,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        buffer_time_ms: float = DEFAULT_BUFFER_TIME_MS,
        monitor: StreamingMonitor | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if buffer_size < 1:
            msg = f"buffer_size must be >= 1, got {buffer_size}"
            raise ValueError(msg)
        if buffer_time_ms <= 0:
            msg = f"buffer_time_ms must be > 0, got {buffer_time_ms}"
            raise ValueError(msg)
        self._store = store
        self._buffer_size = buffer_size
        self._buffer_time = buffer_time_ms / 1000
        self._monitor = monitor
        self._clock = clock
        self._buffers: dict[str, MessageBuffer] = {}
        self._background: set[asyncio.Task[None]] = set()

    # -- Buffer lifecycle --

    def open(
        self,
        message_id: str,
        *,
        content: str = "",
        reasoning: str = "",
        annotations: list[Annotation] | None = None,
        notifier: ChunkNotifier | None = None,
    ) -> MessageBuffer:
        """Create the buffer for ``message_id``.

        Resumed messages pass their persisted content so accumulation
        continues from it rather than from empty.

        Raises:
            CompletionRuntimeError: If a buffer for the id is already live.
        """
        if message_id in self._buffers:
            msg = f"A buffer is already open for message {message_id!r}"
            raise CompletionRuntimeError(msg)
        buffer = MessageBuffer(
            message_id=message_id,
            content=content,
            reasoning=reasoning,
            annotations=list(annotations or []),
            last_flush=self._clock(),
            notifier=notifier,
        )
        self._buffers[message_id] = buffer
        if self._monitor is not None:
            self._monitor.start(message_id)
        return buffer

    def get(self, message_id: str) -> MessageBuffer | None:
        return self._buffers.get(message_id)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._buffers

    def __len__(self) -> int:
        return len(self._buffers)

    # -- Event intake --

    async def accept(self, message_id: str, event: StreamEvent) -> ChunkUpdate | None:
        """Accumulate one decoded event.

        Events without content, reasoning or citations are ignored and return
        ``None``.  Otherwise the notifier is called with the accumulated
        content, a write is issued if either trigger is met (or a timer is
        armed for the time trigger), and the accumulated state is returned.

        Raises:
            PersistenceError: If a write for this message failed.
        """
        buffer = self._buffers.get(message_id)
        if buffer is not None and buffer.error is not None:
            raise buffer.error
        if not event.has_delta:
            return None
        if buffer is None:
            buffer = self.open(message_id)

        if event.content:
            buffer.content += event.content
            buffer.chunks.append(event.content)
            if self._monitor is not None:
                self._monitor.record_chunk(message_id, len(event.content))
        if event.reasoning:
            buffer.reasoning += event.reasoning
            buffer.reasoning_chunks.append(event.reasoning)
        if event.annotations:
            buffer.annotations.extend(event.annotations)
        buffer.pending_fragments += 1

        self._notify(buffer, complete=False)

        elapsed = self._clock() - buffer.last_flush
        if buffer.pending_fragments >= self._buffer_size or elapsed >= self._buffer_time:
            await self._write(buffer, complete=False)
        elif buffer.timer is None:
            self._arm_timer(buffer, self._buffer_time - elapsed)

        return buffer.to_chunk_update(complete=False)

    async def flush(self, message_id: str) -> None:
        """Write the buffer now without marking it complete."""
        buffer = self._buffers.get(message_id)
        if buffer is None:
            return
        await self._write(buffer, complete=False)

    async def finalize(self, message_id: str) -> ChunkUpdate | None:
        """Perform the single terminal write and discard the buffer.

        Returns ``None`` if no buffer is live for ``message_id`` (for
        example because it was already finalized).

        Raises:
            PersistenceError: If the terminal write failed, or an earlier
                timed write failed.  The complete write is still attempted in
                the latter case.
        """
        buffer = self._buffers.pop(message_id, None)
        if buffer is None:
            return None
        self._cancel_timer(buffer)
        try:
            await self._wait_for_write(buffer)
            await self._persist(buffer, complete=True)
            if buffer.error is not None:
                raise buffer.error
            self._notify(buffer, complete=True)
        finally:
            if self._monitor is not None:
                self._monitor.finish(message_id)
        return buffer.to_chunk_update(complete=True)

    async def abandon(self, message_id: str, *, complete: bool = True) -> None:
        """Best-effort last write after a failure.

        Used by the session while unwinding an error: the buffer is removed
        and one final write is attempted so partial output is not lost.  With
        ``complete=False`` the message is left incomplete (failed resumes).
        A failing write is logged, never raised.
        """
        buffer = self._buffers.pop(message_id, None)
        if buffer is None:
            return
        self._cancel_timer(buffer)
        await self._wait_for_write(buffer)
        try:
            await self._persist(buffer, complete=complete)
        except PersistenceError:
            logger.error(
                "Forced final flush failed for message %s", message_id, exc_info=True
            )
        if self._monitor is not None:
            self._monitor.finish(message_id)

    def discard(self, message_id: str) -> None:
        """Drop the buffer without a terminal write (cancellation path)."""
        buffer = self._buffers.pop(message_id, None)
        if buffer is None:
            return
        self._cancel_timer(buffer)
        if self._monitor is not None:
            self._monitor.finish(message_id)

    def discard_all(self) -> None:
        for message_id in list(self._buffers):
            self.discard(message_id)

    # -- Internals --

    def _notify(self, buffer: MessageBuffer, *, complete: bool) -> None:
        if buffer.notifier is None:
            return
        fire_callbacks([buffer.notifier], buffer.content, complete, logger=logger)
        if self._monitor is not None:
            self._monitor.record_notification(buffer.message_id)

    def _arm_timer(self, buffer: MessageBuffer, delay: float) -> None:
        loop = asyncio.get_running_loop()
        buffer.timer = loop.call_later(max(delay, 0.0), self._on_timer, buffer)

    def _cancel_timer(self, buffer: MessageBuffer) -> None:
        if buffer.timer is not None:
            buffer.timer.cancel()
            buffer.timer = None

    def _on_timer(self, buffer: MessageBuffer) -> None:
        buffer.timer = None
        if self._buffers.get(buffer.message_id) is not buffer:
            return
        if buffer.pending_fragments == 0:
            return
        previous = buffer.write_task
        task = asyncio.get_running_loop().create_task(self._timed_write(buffer, previous))
        buffer.write_task = task
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _timed_write(
        self, buffer: MessageBuffer, previous: asyncio.Task[None] | None
    ) -> None:
        if previous is not None and not previous.done():
            await previous
        try:
            await self._persist(buffer, complete=False)
        except PersistenceError as exc:
            logger.error(
                "Timed flush failed for message %s", buffer.message_id, exc_info=True
            )
            buffer.error = exc

    async def _wait_for_write(self, buffer: MessageBuffer) -> None:
        task = buffer.write_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            await asyncio.shield(task)
        buffer.write_task = None

    async def _write(self, buffer: MessageBuffer, *, complete: bool) -> None:
        self._cancel_timer(buffer)
        await self._wait_for_write(buffer)
        if buffer.error is not None:
            raise buffer.error
        await self._persist(buffer, complete=complete)

    async def _persist(self, buffer: MessageBuffer, *, complete: bool) -> None:
        update = buffer.to_update(complete=complete)
        buffer.pending_fragments = 0
        buffer.last_flush = self._clock()
        buffer.flush_count += 1
        logger.debug(
            "Flushing message %s (%d chars, complete=%s)",
            buffer.message_id,
            len(buffer.content),
            complete,
        )
        try:
            await self._store.update_message(buffer.message_id, update)
        except Exception as exc:
            msg = f"Failed to persist message {buffer.message_id!r}: {exc}"
            raise PersistenceError(msg, buffer.message_id) from exc
        if self._monitor is not None:
            self._monitor.record_db_write(buffer.message_id)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(buffer_size={self._buffer_size}, "
            f"buffer_time_ms={self._buffer_time * 1000:g}, live={len(self._buffers)})"
        )
