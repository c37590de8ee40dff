"""Core data models for completion-runtime."""

from .cache import CacheCapability, CacheType
from .generation import (
    Attachment,
    GenerationMetadata,
    GenerationState,
    MessageUpdate,
    StoredMessage,
)
from .rate_limit import RateLimitInfo, RateLimitState, RetryConfig, WaitDecision
from .request import (
    CacheControl,
    CompletionRequest,
    ContentBlock,
    FileBlock,
    FileData,
    ImageBlock,
    ImageUrl,
    Message,
    ReasoningConfig,
    Role,
    TextBlock,
    WebSearchPlugin,
)
from .streaming import Annotation, ChunkUpdate, StreamEvent, UrlCitation

__all__ = [
    "Annotation",
    "Attachment",
    "CacheCapability",
    "CacheControl",
    "CacheType",
    "ChunkUpdate",
    "CompletionRequest",
    "ContentBlock",
    "FileBlock",
    "FileData",
    "GenerationMetadata",
    "GenerationState",
    "ImageBlock",
    "ImageUrl",
    "Message",
    "MessageUpdate",
    "RateLimitInfo",
    "RateLimitState",
    "ReasoningConfig",
    "RetryConfig",
    "Role",
    "StoredMessage",
    "StreamEvent",
    "TextBlock",
    "UrlCitation",
    "WaitDecision",
]
