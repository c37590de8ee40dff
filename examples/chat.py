#!/usr/bin/env python3
"""Interactive chat -- streaming, buffered persistence, and prompt caching.

Demonstrates the GenerationSession driving a full conversation:
  1. Streaming     -- deltas are printed as they arrive through the notifier
  2. Persistence   -- the chunk buffer writes to an in-memory store in batches
  3. Prompt cache  -- the request builder marks history for caching models
  4. Rate limits   -- one governor shared by every request in the session

Requirements:
    pip install completion-runtime
    pip install rich  # optional, for pretty output
    export COMPLETION_RUNTIME_API_KEY=sk-or-...
"""

from __future__ import annotations

import asyncio
import itertools
import os
import sys
from datetime import UTC, datetime

try:
    from rich.console import Console
    from rich.theme import Theme

    _theme = Theme({"info": "dim cyan", "warning": "yellow", "danger": "bold red"})
    console = Console(theme=_theme)
    HAS_RICH = True
except ImportError:
    HAS_RICH = False

from completion_runtime import (
    CacheMonitor,
    GatewayClient,
    GatewayError,
    GenerationSession,
    InMemoryMessageStore,
    RateLimitError,
    RuntimeSettings,
    StoredMessage,
    StreamingMetrics,
    StreamingMonitor,
)
from completion_runtime.observability import extract_cache_info, validate_performance

MODEL = os.environ.get("COMPLETION_RUNTIME_MODEL", "anthropic/claude-3.5-haiku")
CHAT_ID = "example"

_ids = itertools.count(1)


# -- Display helpers --


def _print(text: str, *, style: str = "", end: str = "\n") -> None:
    if HAS_RICH:
        console.print(text, style=style, end=end, markup=False, highlight=False)
    else:
        print(text, end=end, flush=True)


def _get_input(prompt: str) -> str:
    if HAS_RICH:
        return console.input(prompt)
    return input(prompt)


def _add(store: InMemoryMessageStore, role: str, content: str = "", *, complete: bool = True) -> str:
    message_id = f"{role}-{next(_ids)}"
    store.add(
        StoredMessage(
            id=message_id,
            chat_id=CHAT_ID,
            role=role,
            content=content,
            is_complete=complete,
            created_at=datetime.now(UTC),
        )
    )
    return message_id


async def _print_generation_stats(
    client: GatewayClient, cache: CacheMonitor, generation_id: str | None
) -> None:
    """Fetch cost metadata for the last generation and track cache savings."""
    if generation_id is None:
        return
    try:
        metadata = await client.get_generation(generation_id)
    except GatewayError as exc:
        _print(f"  [metadata unavailable: {exc}]", style="warning")
        return
    info = extract_cache_info(metadata)
    cache.record(info)
    _print(
        f"  [{metadata.tokens_prompt} prompt / {metadata.tokens_completion} completion tokens"
        f" | ${metadata.total_cost:.5f} | cached: {'yes' if info.was_cached else 'no'}]",
        style="info",
    )


class _RecordingMonitor(StreamingMonitor):
    """Keeps the summary of each finished stream for display."""

    def __init__(self) -> None:
        super().__init__()
        self.finished: dict[str, StreamingMetrics] = {}

    def finish(self, message_id: str) -> StreamingMetrics | None:
        metrics = super().finish(message_id)
        if metrics is not None:
            self.finished[message_id] = metrics
        return metrics


# -- Main --


async def chat_loop(settings: RuntimeSettings) -> None:
    store = InMemoryMessageStore()
    streaming = _RecordingMonitor()
    cache = CacheMonitor()
    _add(store, "system", "You are a concise, friendly assistant.")

    async with GatewayClient.from_settings(settings) as client:
        session = GenerationSession(client, store, monitor=streaming)
        _print(f"completion-runtime chat ({MODEL})", style="bold")
        _print('  /cache for cache stats, "quit" to exit.\n', style="info")

        while True:
            try:
                user_input = (await asyncio.to_thread(_get_input, "You: ")).strip()
            except (EOFError, KeyboardInterrupt):
                _print("\nGoodbye!", style="bold")
                return
            if not user_input:
                continue
            if user_input.lower() in {"quit", "exit"}:
                _print("Goodbye!", style="bold")
                return
            if user_input == "/cache":
                _print(cache.formatted(), style="info")
                continue

            _add(store, "user", user_input)
            placeholder = _add(store, "assistant", complete=False)
            printed = 0

            def on_chunk(content: str, is_complete: bool) -> None:
                nonlocal printed
                _print(content[printed:], end="")
                printed = len(content)

            _print("Assistant: ", style="bold blue", end="")
            try:
                await session.send(CHAT_ID, MODEL, on_chunk=on_chunk)
            except RateLimitError as exc:
                _print("")
                _print(client.governor.rate_limit_message(exc), style="warning")
                continue
            except GatewayError as exc:
                _print("")
                _print(str(exc), style="danger")
                continue
            _print("")

            metrics = streaming.finished.pop(placeholder, None)
            for warning in validate_performance(metrics) if metrics else []:
                _print(f"  [{warning}]", style="warning")
            stored = store.get(placeholder)
            await _print_generation_stats(client, cache, stored.generation_id if stored else None)
            print()


def main() -> None:
    settings = RuntimeSettings.from_env()
    if not settings.api_key:
        _print(
            "Set COMPLETION_RUNTIME_API_KEY environment variable to use this example.\n"
            "  export COMPLETION_RUNTIME_API_KEY=sk-or-...",
            style="danger",
        )
        sys.exit(1)
    asyncio.run(chat_loop(settings))


if __name__ == "__main__":
    main()
