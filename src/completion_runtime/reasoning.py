"""Reasoning-model detection and reasoning request configuration."""

from __future__ import annotations

import re
from typing import Literal, TypeAlias

from pydantic import BaseModel, ConfigDict, Field

from completion_runtime.caching.capabilities import resolve_cache_capability
from completion_runtime.models.cache import CacheCapability
from completion_runtime.models.request import ReasoningConfig

ReasoningParameterType: TypeAlias = Literal["effort", "max_tokens", "both"]

# Default reasoning budget for max_tokens-style models.
DEFAULT_REASONING_MAX_TOKENS = 2000


class ReasoningModelInfo(BaseModel):
    """How (and whether) a model accepts reasoning parameters."""

    model_config = ConfigDict(frozen=True)

    supports_reasoning: bool = False
    parameter_type: ReasoningParameterType = "effort"
    provider: str = "Unknown"
    notes: str = ""


_REASONING_FAMILIES: list[tuple[list[re.Pattern[str]], ReasoningModelInfo]] = [
    (
        [re.compile(p, re.IGNORECASE) for p in (r"^openai/o1", r"^openai/o-", r"^o1", r"^o-")],
        ReasoningModelInfo(
            supports_reasoning=True,
            parameter_type="effort",
            provider="OpenAI",
            notes="Supports effort levels (high/medium/low).",
        ),
    ),
    (
        [re.compile(p, re.IGNORECASE) for p in (r"grok", r"x\.ai/grok")],
        ReasoningModelInfo(
            supports_reasoning=True,
            parameter_type="effort",
            provider="xAI",
            notes="Supports effort levels (high/medium/low).",
        ),
    ),
    (
        [
            re.compile(p, re.IGNORECASE)
            for p in (r"anthropic/claude-3\.7", r"anthropic/claude-4", r"claude-3\.7", r"claude-4")
        ],
        ReasoningModelInfo(
            supports_reasoning=True,
            parameter_type="max_tokens",
            provider="Anthropic",
            notes="Supports the max_tokens reasoning parameter.",
        ),
    ),
    (
        [re.compile(p, re.IGNORECASE) for p in (r"gemini.*thinking",)],
        ReasoningModelInfo(
            supports_reasoning=True,
            parameter_type="max_tokens",
            provider="Google",
            notes="Flash Thinking models may not return reasoning tokens.",
        ),
    ),
    (
        [re.compile(p, re.IGNORECASE) for p in (r"deepseek.*r1",)],
        ReasoningModelInfo(
            supports_reasoning=True,
            parameter_type="both",
            provider="Deepseek",
            notes="Supports both effort levels and max_tokens.",
        ),
    ),
]

_NO_REASONING = ReasoningModelInfo()


def get_reasoning_model_info(model_id: str) -> ReasoningModelInfo:
    """Detect reasoning support from the model id."""
    if not model_id:
        return _NO_REASONING
    for patterns, info in _REASONING_FAMILIES:
        if any(pattern.search(model_id) for pattern in patterns):
            return info
    return _NO_REASONING


def supports_reasoning(model_id: str) -> bool:
    return get_reasoning_model_info(model_id).supports_reasoning


class ReasoningSettings(BaseModel):
    """User-level reasoning preferences.

    Parameters:
        enabled: Request reasoning tokens at all.
        effort: Effort level for effort-style models.
        max_tokens: Reasoning budget for max_tokens-style models.
        exclude: Ask the gateway to hide reasoning from the response.
    """

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    effort: Literal["high", "medium", "low"] = "high"
    max_tokens: int | None = Field(default=DEFAULT_REASONING_MAX_TOKENS, ge=0)
    exclude: bool = False


def reasoning_config_for(
    model_id: str | None,
    settings: ReasoningSettings,
    *,
    info: ReasoningModelInfo | None = None,
) -> ReasoningConfig | None:
    """Translate settings into the request's ``reasoning`` object.

    Returns ``None`` when reasoning is disabled or the model cannot reason.
    """
    if not settings.enabled:
        return None

    budget = settings.max_tokens if settings.max_tokens and settings.max_tokens > 0 else None

    if not model_id:
        if budget:
            return ReasoningConfig(enabled=True, exclude=settings.exclude, max_tokens=budget)
        return ReasoningConfig(enabled=True, exclude=settings.exclude, effort=settings.effort)

    model_info = info or get_reasoning_model_info(model_id)
    if not model_info.supports_reasoning:
        return None

    if model_info.parameter_type == "max_tokens":
        return ReasoningConfig(
            enabled=True,
            exclude=settings.exclude,
            max_tokens=budget or DEFAULT_REASONING_MAX_TOKENS,
        )
    if model_info.parameter_type == "both" and budget:
        return ReasoningConfig(enabled=True, exclude=settings.exclude, max_tokens=budget)
    return ReasoningConfig(enabled=True, exclude=settings.exclude, effort=settings.effort)


class PatternCapabilityLookup:
    """Model capability lookup backed by the built-in pattern tables.

    Implements the ``ModelCapabilityLookup`` protocol.
    """

    __slots__ = ()

    def supports_reasoning(self, model_id: str) -> bool:
        return get_reasoning_model_info(model_id).supports_reasoning

    def reasoning_info(self, model_id: str) -> ReasoningModelInfo:
        return get_reasoning_model_info(model_id)

    def cache_capability(self, model_id: str) -> CacheCapability:
        return resolve_cache_capability(model_id)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
