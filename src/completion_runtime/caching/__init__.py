"""Prompt-caching strategy for completion requests."""

from .capabilities import (
    CACHE_CONFIGURATIONS,
    MODEL_CACHE_PATTERNS,
    estimate_tokens,
    resolve_cache_capability,
    supports_prompt_caching,
)
from .strategy import (
    BREAKPOINT_MIN_BLOCK_TOKENS,
    CacheStrategySelector,
    apply_cache_strategy,
    create_cached_system_message,
    create_cached_user_message,
)

__all__ = [
    "BREAKPOINT_MIN_BLOCK_TOKENS",
    "CACHE_CONFIGURATIONS",
    "MODEL_CACHE_PATTERNS",
    "CacheStrategySelector",
    "apply_cache_strategy",
    "create_cached_system_message",
    "create_cached_user_message",
    "estimate_tokens",
    "resolve_cache_capability",
    "supports_prompt_caching",
]
