"""completion-runtime: Streaming chat-completion runtime for AI chat clients.

Sessions:
    GenerationSession, RequestBuilder

Streaming:
    SSEDecoder, decode_stream, ChunkBuffer, MessageBuffer

Gateway:
    GatewayClient, ResponseByteStream

Rate Limiting:
    RateLimitGovernor

Prompt Caching:
    CacheStrategySelector, apply_cache_strategy, resolve_cache_capability,
    create_cached_system_message, create_cached_user_message

Reasoning:
    ReasoningSettings, ReasoningModelInfo, PatternCapabilityLookup,
    get_reasoning_model_info, reasoning_config_for

Observability:
    StreamingMonitor, StreamingMetrics, CacheMonitor, CacheMetrics

Protocols (extension points):
    MessageStore, ModelCapabilityLookup, Tokenizer

Storage:
    InMemoryMessageStore

Models & Types:
    Message, TextBlock, ImageBlock, FileBlock, CacheControl, CompletionRequest,
    ReasoningConfig, WebSearchPlugin, StreamEvent, Annotation, ChunkUpdate,
    RateLimitInfo, RateLimitState, RetryConfig, WaitDecision, CacheType,
    CacheCapability, GenerationState, StoredMessage, MessageUpdate,
    GenerationMetadata, Attachment

Configuration:
    RuntimeSettings

Exceptions:
    CompletionRuntimeError, GatewayError, RateLimitError,
    InsufficientCreditsError, InvalidCredentialError, PersistenceError,
    RequestAbortedError, ResumeError

Tokens:
    CharEstimateTokenizer, TiktokenCounter
"""

from importlib.metadata import PackageNotFoundError, version

from completion_runtime.caching import (
    CacheStrategySelector,
    apply_cache_strategy,
    create_cached_system_message,
    create_cached_user_message,
    resolve_cache_capability,
)
from completion_runtime.config import RuntimeSettings
from completion_runtime.exceptions import (
    CompletionRuntimeError,
    GatewayError,
    InsufficientCreditsError,
    InvalidCredentialError,
    PersistenceError,
    RateLimitError,
    RequestAbortedError,
    ResumeError,
)
from completion_runtime.gateway import GatewayClient, ResponseByteStream
from completion_runtime.models import (
    Annotation,
    Attachment,
    CacheCapability,
    CacheControl,
    CacheType,
    ChunkUpdate,
    CompletionRequest,
    FileBlock,
    GenerationMetadata,
    GenerationState,
    ImageBlock,
    Message,
    MessageUpdate,
    RateLimitInfo,
    RateLimitState,
    ReasoningConfig,
    RetryConfig,
    StoredMessage,
    StreamEvent,
    TextBlock,
    WaitDecision,
    WebSearchPlugin,
)
from completion_runtime.observability import (
    CacheMetrics,
    CacheMonitor,
    StreamingMetrics,
    StreamingMonitor,
)
from completion_runtime.protocols import MessageStore, ModelCapabilityLookup, Tokenizer
from completion_runtime.ratelimit import RateLimitGovernor
from completion_runtime.reasoning import (
    PatternCapabilityLookup,
    ReasoningModelInfo,
    ReasoningSettings,
    get_reasoning_model_info,
    reasoning_config_for,
)
from completion_runtime.session import GenerationSession, RequestBuilder
from completion_runtime.storage import InMemoryMessageStore
from completion_runtime.streaming import ChunkBuffer, MessageBuffer, SSEDecoder, decode_stream
from completion_runtime.tokens import CharEstimateTokenizer, TiktokenCounter

try:
    __version__ = version("completion-runtime")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

__all__ = [
    "Annotation",
    "Attachment",
    "CacheCapability",
    "CacheControl",
    "CacheMetrics",
    "CacheMonitor",
    "CacheStrategySelector",
    "CacheType",
    "CharEstimateTokenizer",
    "ChunkBuffer",
    "ChunkUpdate",
    "CompletionRequest",
    "CompletionRuntimeError",
    "FileBlock",
    "GatewayClient",
    "GatewayError",
    "GenerationMetadata",
    "GenerationSession",
    "GenerationState",
    "ImageBlock",
    "InMemoryMessageStore",
    "InsufficientCreditsError",
    "InvalidCredentialError",
    "Message",
    "MessageBuffer",
    "MessageStore",
    "MessageUpdate",
    "ModelCapabilityLookup",
    "PatternCapabilityLookup",
    "PersistenceError",
    "RateLimitError",
    "RateLimitGovernor",
    "RateLimitInfo",
    "RateLimitState",
    "ReasoningConfig",
    "ReasoningModelInfo",
    "ReasoningSettings",
    "RequestAbortedError",
    "RequestBuilder",
    "ResponseByteStream",
    "ResumeError",
    "RetryConfig",
    "RuntimeSettings",
    "SSEDecoder",
    "StoredMessage",
    "StreamEvent",
    "StreamingMetrics",
    "StreamingMonitor",
    "TextBlock",
    "TiktokenCounter",
    "Tokenizer",
    "WaitDecision",
    "WebSearchPlugin",
    "__version__",
    "apply_cache_strategy",
    "create_cached_system_message",
    "create_cached_user_message",
    "decode_stream",
    "get_reasoning_model_info",
    "reasoning_config_for",
    "resolve_cache_capability",
]
