"""In-memory message store for development and testing.

Production users provide their own implementation (Postgres, Supabase, etc.)
that satisfies the ``MessageStore`` protocol.
"""

from __future__ import annotations

import logging
import threading

from completion_runtime.models.generation import MessageUpdate, StoredMessage

logger = logging.getLogger(__name__)


class InMemoryMessageStore:
    """Dict-backed message store. Implements the MessageStore protocol.

    Every applied update is also appended to :attr:`updates` so callers can
    inspect the exact write sequence.
    """

    __slots__ = ("_lock", "_messages", "updates")

    def __init__(self, messages: list[StoredMessage] | None = None) -> None:
        self._messages: dict[str, StoredMessage] = {}
        self._lock = threading.Lock()
        self.updates: list[tuple[str, MessageUpdate]] = []
        for message in messages or []:
            self.add(message)

    def add(self, message: StoredMessage) -> None:
        with self._lock:
            self._messages[message.id] = message

    def get(self, message_id: str) -> StoredMessage | None:
        with self._lock:
            return self._messages.get(message_id)

    def updates_for(self, message_id: str) -> list[MessageUpdate]:
        with self._lock:
            return [update for mid, update in self.updates if mid == message_id]

    async def get_message(self, message_id: str) -> StoredMessage | None:
        return self.get(message_id)

    async def list_messages(self, chat_id: str) -> list[StoredMessage]:
        with self._lock:
            messages = [m for m in self._messages.values() if m.chat_id == chat_id]
        return sorted(messages, key=lambda m: m.created_at)

    async def update_message(self, message_id: str, update: MessageUpdate) -> None:
        with self._lock:
            current = self._messages.get(message_id)
            if current is None:
                msg = f"Unknown message {message_id!r}"
                raise KeyError(msg)
            self._messages[message_id] = StoredMessage.model_validate(
                {**current.model_dump(), **update.as_fields()}
            )
            self.updates.append((message_id, update))

    def clear(self) -> None:
        with self._lock:
            self._messages.clear()
            self.updates.clear()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(messages={len(self._messages)})"
