"""Shared fixtures for completion-runtime tests."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Iterable
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from completion_runtime.models.generation import MessageUpdate, StoredMessage
from completion_runtime.storage.memory_store import InMemoryMessageStore

BASE_TIME = datetime(2025, 1, 1, tzinfo=UTC)


class FakeClock:
    """Manually advanced clock, usable wherever a ``time.time`` is expected."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSleeper:
    """Records requested sleeps and advances an optional clock instead of waiting."""

    def __init__(self, clock: FakeClock | None = None) -> None:
        self.calls: list[float] = []
        self._clock = clock

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if self._clock is not None:
            self._clock.advance(seconds)


class FakeTokenizer:
    """Deterministic whitespace tokenizer for threshold tests."""

    def count_tokens(self, text: str) -> int:
        return len(text.split())


class FailingStore(InMemoryMessageStore):
    """In-memory store whose writes start failing after ``fail_after`` successes."""

    __slots__ = ("attempts", "fail_after")

    def __init__(self, messages: list[StoredMessage] | None = None, *, fail_after: int = 0) -> None:
        super().__init__(messages)
        self.fail_after = fail_after
        self.attempts: list[MessageUpdate] = []

    async def update_message(self, message_id: str, update: MessageUpdate) -> None:
        self.attempts.append(update)
        if len(self.attempts) > self.fail_after:
            msg = "database unavailable"
            raise ConnectionError(msg)
        await super().update_message(message_id, update)


class ScriptedStream:
    """Async byte source yielding pre-scripted chunks; records whether it was closed."""

    def __init__(self, chunks: Iterable[bytes | str], *, error: Exception | None = None) -> None:
        self._chunks = [c.encode() if isinstance(c, str) else c for c in chunks]
        self._error = error
        self.closed = False

    def __aiter__(self) -> ScriptedStream:
        return self

    async def __anext__(self) -> bytes:
        if self.closed:
            raise StopAsyncIteration
        if self._chunks:
            return self._chunks.pop(0)
        if self._error is not None:
            raise self._error
        raise StopAsyncIteration

    async def aclose(self) -> None:
        self.closed = True


async def byte_stream(*chunks: bytes | str) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk.encode() if isinstance(chunk, str) else chunk


def sse_payload(
    *,
    content: str | None = None,
    reasoning: str | None = None,
    annotations: list[dict[str, Any]] | None = None,
    finish_reason: str | None = None,
    generation_id: str | None = "gen-1",
) -> dict[str, Any]:
    delta: dict[str, Any] = {}
    if content is not None:
        delta["content"] = content
    if reasoning is not None:
        delta["reasoning"] = reasoning
    if annotations is not None:
        delta["annotations"] = annotations
    payload: dict[str, Any] = {
        "object": "chat.completion.chunk",
        "choices": [{"index": 0, "delta": delta, "finish_reason": finish_reason}],
    }
    if generation_id is not None:
        payload["id"] = generation_id
    return payload


def sse_line(**kwargs: Any) -> str:
    """One ``data:`` event followed by the blank separator line."""
    return f"data: {json.dumps(sse_payload(**kwargs), ensure_ascii=False)}\n\n"


def sse_body(*contents: str, generation_id: str = "gen-1", done: bool = True) -> str:
    """A full event-stream body: one event per content fragment, then a finish."""
    lines = [sse_line(content=c, generation_id=generation_id) for c in contents]
    lines.append(sse_line(finish_reason="stop", generation_id=generation_id))
    if done:
        lines.append("data: [DONE]\n\n")
    return "".join(lines)


def make_stored_message(
    message_id: str,
    *,
    chat_id: str = "chat-1",
    role: str = "user",
    content: str = "",
    is_complete: bool = True,
    generation_id: str | None = None,
    offset: int = 0,
    **kwargs: Any,
) -> StoredMessage:
    return StoredMessage(
        id=message_id,
        chat_id=chat_id,
        role=role,
        content=content,
        is_complete=is_complete,
        generation_id=generation_id,
        created_at=BASE_TIME + timedelta(seconds=offset),
        **kwargs,
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def sleeper(clock: FakeClock) -> FakeSleeper:
    return FakeSleeper(clock)


@pytest.fixture()
def store() -> InMemoryMessageStore:
    return InMemoryMessageStore(
        [make_stored_message("asst-1", role="assistant", is_complete=False, offset=10)]
    )
