"""Persisted-message and generation models."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .request import Role
from .streaming import Annotation


class GenerationState(StrEnum):
    """Lifecycle of one assistant message being generated or resumed."""

    PENDING = "pending"
    STREAMING = "streaming"
    RESUMING = "resuming"
    COMPLETE = "complete"
    FAILED = "failed"
    CANCELLED = "cancelled"


class Attachment(BaseModel):
    """A file attached to a stored user message."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: str = "image"
    mime_type: str = ""
    data: str


class StoredMessage(BaseModel):
    """A chat message as held by the persistence sink."""

    id: str
    chat_id: str
    role: Role
    content: str = ""
    reasoning: str | None = None
    annotations: list[Annotation] = Field(default_factory=list)
    attachments: list[Attachment] = Field(default_factory=list)
    is_complete: bool = True
    generation_id: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_resumable(self) -> bool:
        """Incomplete assistant output that the gateway can still serve."""
        return self.role == "assistant" and not self.is_complete and bool(self.generation_id)


class MessageUpdate(BaseModel):
    """Partial update passed to ``MessageStore.update_message``.

    Only fields that are set are written.
    """

    model_config = ConfigDict(frozen=True)

    content: str | None = None
    reasoning: str | None = None
    annotations: list[Annotation] | None = None
    is_complete: bool | None = None
    generation_id: str | None = None

    def as_fields(self) -> dict[str, Any]:
        """Set fields as model values, not dumped dicts."""
        return {
            name: value
            for name in type(self).model_fields
            if (value := getattr(self, name)) is not None
        }


class GenerationMetadata(BaseModel):
    """Cost, token and timing metadata returned by ``GET /generation``."""

    model_config = ConfigDict(extra="allow")

    id: str
    model: str = ""
    total_cost: float = 0.0
    cache_discount: float | None = None
    created_at: str | None = None
    provider_name: str | None = None
    streamed: bool | None = None
    cancelled: bool | None = None
    latency: float | None = None
    generation_time: float | None = None
    finish_reason: str | None = None
    tokens_prompt: int = 0
    tokens_completion: int = 0
    native_tokens_reasoning: int | None = None
    num_search_results: int | None = None
