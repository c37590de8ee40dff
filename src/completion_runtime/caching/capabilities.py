"""Prompt-caching capabilities per provider family.

Model ids are matched against an ordered list of patterns; the first match
wins, so more specific families (``gemini-2.5``) are listed before broader
ones (``gemini``).
"""

from __future__ import annotations

import math
import re

from completion_runtime.models.cache import CacheCapability, CacheType
from completion_runtime.tokens.counter import estimate_tokens

__all__ = [
    "CACHE_CONFIGURATIONS",
    "MODEL_CACHE_PATTERNS",
    "estimate_tokens",
    "resolve_cache_capability",
    "supports_prompt_caching",
]

CACHE_CONFIGURATIONS: dict[str, CacheCapability] = {
    "openai": CacheCapability(
        type=CacheType.AUTOMATIC,
        min_tokens=1024,
        write_cost_multiplier=1.0,
        read_cost_multiplier=0.5,
    ),
    "deepseek": CacheCapability(
        type=CacheType.AUTOMATIC,
        min_tokens=1024,
        write_cost_multiplier=1.0,
        read_cost_multiplier=0.1,
    ),
    # 1028 for Flash, 2048 for Pro; the lower bound is used for both.
    "gemini-2.5": CacheCapability(
        type=CacheType.AUTOMATIC,
        min_tokens=1028,
        write_cost_multiplier=1.0,
        read_cost_multiplier=0.25,
    ),
    "anthropic": CacheCapability(
        type=CacheType.MANUAL,
        min_tokens=1024,
        write_cost_multiplier=1.25,
        read_cost_multiplier=0.1,
    ),
    "gemini": CacheCapability(
        type=CacheType.MANUAL,
        min_tokens=4096,
        write_cost_multiplier=1.0,
        read_cost_multiplier=0.25,
    ),
    "default": CacheCapability(
        type=CacheType.NONE,
        min_tokens=math.inf,
        write_cost_multiplier=1.0,
        read_cost_multiplier=1.0,
    ),
}

MODEL_CACHE_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"^openai/"), "openai"),
    (re.compile(r"^gpt-"), "openai"),
    (re.compile(r"^o1-"), "openai"),
    (re.compile(r"^deepseek/"), "deepseek"),
    (re.compile(r"^google/gemini-2\.5"), "gemini-2.5"),
    (re.compile(r"^gemini-2\.5"), "gemini-2.5"),
    (re.compile(r"^anthropic/"), "anthropic"),
    (re.compile(r"^claude-"), "anthropic"),
    (re.compile(r"^google/gemini"), "gemini"),
    (re.compile(r"^gemini"), "gemini"),
]


def resolve_cache_capability(model_id: str) -> CacheCapability:
    """Return the caching capability of ``model_id`` (``none`` if unknown)."""
    for pattern, config in MODEL_CACHE_PATTERNS:
        if pattern.search(model_id):
            return CACHE_CONFIGURATIONS[config]
    return CACHE_CONFIGURATIONS["default"]


def supports_prompt_caching(model_id: str) -> bool:
    return resolve_cache_capability(model_id).supports_caching
