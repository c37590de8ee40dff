"""Generation sessions: one request/stream/finalize cycle per message.

A :class:`GenerationSession` turns a completion request (or a known gateway
generation id) into a sequence of :class:`ChunkUpdate` values.  It gates the
call through the rate limit governor, decodes the event stream, feeds the
chunk buffer, records the generation id as soon as it is known and performs
the single terminal write.  Interrupted generations are resumed additively
from their persisted content.
"""

from __future__ import annotations

import asyncio
import contextlib
import functools
import logging
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable, Sequence
from typing import Any

from completion_runtime.exceptions import (
    CompletionRuntimeError,
    PersistenceError,
    RequestAbortedError,
    ResumeError,
)
from completion_runtime.gateway.client import GatewayClient
from completion_runtime.models.generation import GenerationState, MessageUpdate, StoredMessage
from completion_runtime.models.request import CompletionRequest
from completion_runtime.models.streaming import Annotation, ChunkUpdate
from completion_runtime.observability.streaming_metrics import StreamingMonitor
from completion_runtime.protocols.storage import MessageStore
from completion_runtime.ratelimit.governor import RateLimitGovernor
from completion_runtime.reasoning import ReasoningSettings
from completion_runtime.streaming.buffer import ChunkBuffer, ChunkNotifier
from completion_runtime.streaming.decoder import decode_stream

from .request_builder import RequestBuilder, find_placeholder

logger = logging.getLogger(__name__)

# Thresholds used on the completion path; tighter than the buffer defaults.
SESSION_BUFFER_SIZE = 2
SESSION_BUFFER_TIME_MS = 60.0

ResumeNotifier = Callable[[str, str, bool], Any]
StreamOpener = Callable[[], Awaitable[AsyncIterable[bytes]]]

_TERMINAL_STATES = frozenset(
    {GenerationState.COMPLETE, GenerationState.FAILED, GenerationState.CANCELLED}
)


class GenerationSession:
    """Drives completion streams and resumes against one persistence sink.

    At most one stream may be active per message id at a time; starting a
    second one for the same id fails without touching the first.

    Parameters:
        client: Gateway client.  Its governor gates every stream opening.
        store: Persistence sink for message updates.
        buffer: Chunk buffer to use.  Created from ``buffer_size`` and
            ``buffer_time_ms`` when omitted.
        builder: Request builder for :meth:`send`.
        buffer_size: Size trigger for a session-created buffer.
        buffer_time_ms: Time trigger for a session-created buffer.
        monitor: Optional streaming monitor for a session-created buffer.
    """

    __slots__ = ("_buffer", "_builder", "_client", "_states", "_store")

    def __init__(
        self,
        client: GatewayClient,
        store: MessageStore,
        *,
        buffer: ChunkBuffer | None = None,
        builder: RequestBuilder | None = None,
        buffer_size: int = SESSION_BUFFER_SIZE,
        buffer_time_ms: float = SESSION_BUFFER_TIME_MS,
        monitor: StreamingMonitor | None = None,
    ) -> None:
        self._client = client
        self._store = store
        self._buffer = buffer or ChunkBuffer(
            store, buffer_size=buffer_size, buffer_time_ms=buffer_time_ms, monitor=monitor
        )
        self._builder = builder or RequestBuilder()
        self._states: dict[str, GenerationState] = {}

    @property
    def governor(self) -> RateLimitGovernor:
        return self._client.governor

    @property
    def buffer(self) -> ChunkBuffer:
        return self._buffer

    @property
    def builder(self) -> RequestBuilder:
        return self._builder

    def state(self, message_id: str) -> GenerationState | None:
        """Lifecycle state of the latest generation for ``message_id``."""
        return self._states.get(message_id)

    # -- Fresh completions --

    async def stream(
        self,
        message_id: str,
        request: CompletionRequest,
        *,
        abort: asyncio.Event | None = None,
        on_chunk: ChunkNotifier | None = None,
    ) -> AsyncIterator[ChunkUpdate]:
        """Stream a completion into ``message_id``.

        Yields the accumulated state after every accepted delta and, last,
        the state marked complete.  When ``abort`` is set the iteration ends
        silently, without a terminal write.  Any other failure is re-raised
        after a best-effort final write marking the message complete.
        """
        updates = self._drive(
            message_id,
            functools.partial(self._client.stream_completion, request),
            abort=abort,
            notifier=on_chunk,
            active_state=GenerationState.STREAMING,
            record_generation_id=True,
            complete_on_error=True,
        )
        async with contextlib.aclosing(updates):
            async for update in updates:
                yield update

    async def run(
        self,
        message_id: str,
        request: CompletionRequest,
        *,
        abort: asyncio.Event | None = None,
        on_chunk: ChunkNotifier | None = None,
    ) -> ChunkUpdate | None:
        """Consume :meth:`stream` and return the last update."""
        last: ChunkUpdate | None = None
        async for update in self.stream(message_id, request, abort=abort, on_chunk=on_chunk):
            last = update
        return last

    async def send(
        self,
        chat_id: str,
        model_id: str,
        *,
        reasoning: ReasoningSettings | None = None,
        web_search: bool = False,
        abort: asyncio.Event | None = None,
        on_chunk: ChunkNotifier | None = None,
    ) -> ChunkUpdate | None:
        """Generate the reply for a chat's pending assistant placeholder.

        The caller creates the placeholder (an incomplete assistant message)
        before calling; the rest of the chat becomes the request history.

        Raises:
            CompletionRuntimeError: If the chat has no placeholder.
        """
        history = await self._store.list_messages(chat_id)
        placeholder = find_placeholder(history)
        if placeholder is None:
            msg = f"Chat {chat_id!r} has no incomplete assistant message to generate into"
            raise CompletionRuntimeError(msg)
        request = self._builder.build_from_history(
            model_id,
            history,
            placeholder_id=placeholder.id,
            reasoning=reasoning,
            web_search=web_search,
        )
        return await self.run(placeholder.id, request, abort=abort, on_chunk=on_chunk)

    # -- Resume --

    async def resume(
        self,
        message: StoredMessage,
        *,
        abort: asyncio.Event | None = None,
        on_chunk: ChunkNotifier | None = None,
    ) -> ChunkUpdate | None:
        """Resume an interrupted generation, appending to persisted content.

        Raises:
            ResumeError: If the message has no generation id or is already
                complete.
        """
        if not message.generation_id:
            msg = f"Message {message.id!r} has no generation id to resume"
            raise ResumeError(msg, message.id)
        if message.is_complete:
            msg = f"Message {message.id!r} is already complete"
            raise ResumeError(msg, message.id)

        updates = self._drive(
            message.id,
            functools.partial(self._client.resume_generation, message.generation_id),
            abort=abort,
            notifier=on_chunk,
            active_state=GenerationState.RESUMING,
            record_generation_id=False,
            complete_on_error=False,
            content=message.content,
            reasoning=message.reasoning or "",
            annotations=message.annotations,
        )
        last: ChunkUpdate | None = None
        async with contextlib.aclosing(updates):
            async for update in updates:
                last = update
        return last

    async def resume_incomplete(
        self,
        chat_id: str,
        *,
        abort: asyncio.Event | None = None,
        on_chunk: ResumeNotifier | None = None,
    ) -> dict[str, GenerationState]:
        """Resume every resumable message of a chat concurrently.

        Each resume is isolated: a failure is logged, leaves that message
        incomplete and does not affect its siblings.

        Parameters:
            chat_id: Chat whose messages are scanned.
            abort: Optional event cancelling all resumes started here.
            on_chunk: Optional ``(message_id, content, is_complete)`` callback.

        Returns:
            The final state of every resume attempted, keyed by message id.
        """
        messages = await self._store.list_messages(chat_id)
        resumable = [m for m in messages if m.is_resumable and m.id not in self._buffer]
        if not resumable:
            return {}
        logger.info("Resuming %d incomplete message(s) in chat %s", len(resumable), chat_id)
        for message in resumable:
            self._states[message.id] = GenerationState.PENDING
        states = await asyncio.gather(
            *(self._resume_isolated(message, abort, on_chunk) for message in resumable)
        )
        return {message.id: state for message, state in zip(resumable, states, strict=True)}

    async def _resume_isolated(
        self,
        message: StoredMessage,
        abort: asyncio.Event | None,
        on_chunk: ResumeNotifier | None,
    ) -> GenerationState:
        notifier = functools.partial(on_chunk, message.id) if on_chunk is not None else None
        try:
            await self.resume(message, abort=abort, on_chunk=notifier)
        except Exception:
            logger.error("Failed to resume message %s", message.id, exc_info=True)
            self._states[message.id] = GenerationState.FAILED
        return self._states[message.id]

    # -- Core loop --

    async def _drive(
        self,
        message_id: str,
        open_stream: StreamOpener,
        *,
        abort: asyncio.Event | None,
        notifier: ChunkNotifier | None,
        active_state: GenerationState,
        record_generation_id: bool,
        complete_on_error: bool,
        content: str = "",
        reasoning: str = "",
        annotations: Sequence[Annotation] = (),
    ) -> AsyncIterator[ChunkUpdate]:
        self._buffer.open(
            message_id,
            content=content,
            reasoning=reasoning,
            annotations=list(annotations),
            notifier=notifier,
        )
        self._states[message_id] = active_state
        source: AsyncIterable[bytes] | None = None
        try:
            source = await self.governor.execute_with_rate_limit(open_stream, abort=abort)
            generation_id_known = not record_generation_id
            finished = False
            events = decode_stream(source, abort=abort)
            async with contextlib.aclosing(events):
                async for event in events:
                    if not generation_id_known and event.generation_id:
                        generation_id_known = True
                        await self._record_generation_id(message_id, event.generation_id)
                    update = await self._buffer.accept(message_id, event)
                    if update is not None:
                        yield update
                    if event.is_terminal:
                        finished = True
                        break

            if not finished and abort is not None and abort.is_set():
                logger.info("Generation for message %s cancelled", message_id)
                self._buffer.discard(message_id)
                self._states[message_id] = GenerationState.CANCELLED
                return

            final = await self._buffer.finalize(message_id)
            self._states[message_id] = GenerationState.COMPLETE
            if final is not None:
                yield final
        except RequestAbortedError:
            logger.info("Generation for message %s cancelled before sending", message_id)
            self._buffer.discard(message_id)
            self._states[message_id] = GenerationState.CANCELLED
        except (asyncio.CancelledError, GeneratorExit):
            self._buffer.discard(message_id)
            if self._states.get(message_id) not in _TERMINAL_STATES:
                self._states[message_id] = GenerationState.CANCELLED
            raise
        except Exception:
            self._states[message_id] = GenerationState.FAILED
            await self._buffer.abandon(message_id, complete=complete_on_error)
            raise
        finally:
            aclose = getattr(source, "aclose", None)
            if aclose is not None:
                await aclose()

    async def _record_generation_id(self, message_id: str, generation_id: str) -> None:
        logger.debug("Message %s has generation id %s", message_id, generation_id)
        try:
            await self._store.update_message(message_id, MessageUpdate(generation_id=generation_id))
        except Exception as exc:
            msg = f"Failed to record generation id for message {message_id!r}: {exc}"
            raise PersistenceError(msg, message_id) from exc

    def __repr__(self) -> str:
        active = sum(1 for s in self._states.values() if s not in _TERMINAL_STATES)
        return f"{type(self).__name__}(client={self._client!r}, active={active})"
