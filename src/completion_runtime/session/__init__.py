"""Generation sessions and request construction."""

from .generation import (
    SESSION_BUFFER_SIZE,
    SESSION_BUFFER_TIME_MS,
    GenerationSession,
    ResumeNotifier,
)
from .request_builder import (
    RequestBuilder,
    find_placeholder,
    history_to_messages,
    max_tokens_for,
    to_request_message,
    web_search_plugin,
)

__all__ = [
    "SESSION_BUFFER_SIZE",
    "SESSION_BUFFER_TIME_MS",
    "GenerationSession",
    "RequestBuilder",
    "ResumeNotifier",
    "find_placeholder",
    "history_to_messages",
    "max_tokens_for",
    "to_request_message",
    "web_search_plugin",
]
