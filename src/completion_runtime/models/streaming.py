"""Streaming event models for decoded gateway chunks."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class UrlCitation(BaseModel):
    """Web search citation attached to a span of the generated content."""

    url: str
    title: str = ""
    content: str | None = None
    start_index: int = 0
    end_index: int = 0


class Annotation(BaseModel):
    """A citation annotation as emitted in ``delta.annotations``."""

    model_config = ConfigDict(extra="allow")

    type: str = "url_citation"
    url_citation: UrlCitation | None = None


class StreamEvent(BaseModel):
    """One decoded unit of a completion stream.

    Built from a single ``data:`` payload. Only the first choice is read.
    """

    model_config = ConfigDict(frozen=True)

    index: int = 0
    content: str | None = None
    reasoning: str | None = None
    annotations: list[Annotation] = Field(default_factory=list)
    finish_reason: str | None = None
    generation_id: str | None = None

    @classmethod
    def from_chunk(cls, chunk: dict[str, Any]) -> StreamEvent:
        """Build an event from a parsed chunk JSON object.

        Missing or malformed ``choices`` yield an event with no delta so
        that the top-level ``id`` is still observed.
        """
        choices = chunk.get("choices") or []
        choice = choices[0] if choices and isinstance(choices[0], dict) else {}
        delta = choice.get("delta")
        if not isinstance(delta, dict):
            delta = {}
        return cls(
            index=choice.get("index", 0) or 0,
            content=delta.get("content") or None,
            reasoning=delta.get("reasoning") or None,
            annotations=delta.get("annotations") or [],
            finish_reason=choice.get("finish_reason"),
            generation_id=chunk.get("id") or None,
        )

    @property
    def has_delta(self) -> bool:
        """Whether the event carries any content, reasoning or citations."""
        return bool(self.content or self.reasoning or self.annotations)

    @property
    def is_terminal(self) -> bool:
        return self.finish_reason is not None


class ChunkUpdate(BaseModel):
    """Accumulated state pushed to the caller after every accepted delta."""

    model_config = ConfigDict(frozen=True)

    message_id: str
    content: str
    reasoning: str = ""
    annotations: list[Annotation] = Field(default_factory=list)
    is_complete: bool = False
