"""Storage protocol for the message persistence sink."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from completion_runtime.models.generation import MessageUpdate, StoredMessage


@runtime_checkable
class MessageStore(Protocol):
    """Persistence sink for chat messages.

    The runtime only ever reads messages and writes partial updates;
    creating chats and placeholder messages is the caller's concern.
    Implementations may be backed by any database.
    """

    async def get_message(self, message_id: str) -> StoredMessage | None:
        """Fetch a single message by id.

        Parameters:
            message_id: Identifier of the message.

        Returns:
            The stored message, or ``None`` if it does not exist.
        """
        ...

    async def list_messages(self, chat_id: str) -> list[StoredMessage]:
        """Return every message of a chat, oldest first.

        Parameters:
            chat_id: Identifier of the chat.

        Returns:
            Messages ordered by creation time.
        """
        ...

    async def update_message(self, message_id: str, update: MessageUpdate) -> None:
        """Apply a partial update to a message.

        Only the fields set on ``update`` are written.

        Parameters:
            message_id: Identifier of the message to update.
            update: Fields to overwrite.
        """
        ...
