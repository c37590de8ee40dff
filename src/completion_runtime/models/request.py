"""Request-side models: messages, content blocks and the completion request."""

from __future__ import annotations

from typing import Annotated, Any, Literal, TypeAlias

from pydantic import BaseModel, ConfigDict, Field

Role: TypeAlias = Literal["system", "user", "assistant"]


class CacheControl(BaseModel):
    """Prompt-cache breakpoint marker attached to a text block."""

    model_config = ConfigDict(frozen=True)

    type: Literal["ephemeral"] = "ephemeral"


class TextBlock(BaseModel):
    """A text content block, optionally marked as a cache breakpoint."""

    model_config = ConfigDict(frozen=True)

    type: Literal["text"] = "text"
    text: str
    cache_control: CacheControl | None = None


class ImageUrl(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str


class ImageBlock(BaseModel):
    """An image passed as a (data) URL."""

    model_config = ConfigDict(frozen=True)

    type: Literal["image_url"] = "image_url"
    image_url: ImageUrl


class FileData(BaseModel):
    model_config = ConfigDict(frozen=True)

    filename: str
    file_data: str


class FileBlock(BaseModel):
    """A document attachment passed inline as a data URL."""

    model_config = ConfigDict(frozen=True)

    type: Literal["file"] = "file"
    file: FileData


ContentBlock: TypeAlias = Annotated[
    TextBlock | ImageBlock | FileBlock, Field(discriminator="type")
]


class Message(BaseModel):
    """A single request-side chat message.

    ``content`` is either plain text or an ordered list of typed blocks.
    Messages are immutable; transformations build new instances.
    """

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str | list[ContentBlock]

    @property
    def text(self) -> str:
        """Concatenated text of the message, blocks joined by a space."""
        if isinstance(self.content, str):
            return self.content
        return " ".join(block.text if isinstance(block, TextBlock) else "" for block in self.content)

    def as_blocks(self) -> Message:
        """Return a copy whose content is in block form."""
        if isinstance(self.content, str):
            return Message(role=self.role, content=[TextBlock(text=self.content)])
        return self


class ReasoningConfig(BaseModel):
    """Reasoning-token settings forwarded to the gateway."""

    model_config = ConfigDict(frozen=True)

    effort: Literal["high", "medium", "low"] | None = None
    max_tokens: int | None = Field(default=None, gt=0)
    exclude: bool | None = None
    enabled: bool | None = None


class WebSearchPlugin(BaseModel):
    """Gateway-side web search plugin."""

    model_config = ConfigDict(frozen=True)

    id: Literal["web"] = "web"
    max_results: int | None = Field(default=None, gt=0)
    search_prompt: str | None = None


class CompletionRequest(BaseModel):
    """Body of ``POST /chat/completions``. Immutable once issued."""

    model_config = ConfigDict(frozen=True)

    model: str
    messages: list[Message]
    stream: bool = True
    max_tokens: int | None = Field(default=None, gt=0)
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    reasoning: ReasoningConfig | None = None
    plugins: list[WebSearchPlugin] | None = None

    def to_payload(self) -> dict[str, Any]:
        """Serialise to the JSON body the gateway expects."""
        return self.model_dump(mode="json", exclude_none=True)
