"""Tests for completion_runtime.reasoning."""

from __future__ import annotations

import pytest

from completion_runtime.models.cache import CacheType
from completion_runtime.models.request import ReasoningConfig
from completion_runtime.protocols.capabilities import ModelCapabilityLookup
from completion_runtime.reasoning import (
    DEFAULT_REASONING_MAX_TOKENS,
    PatternCapabilityLookup,
    ReasoningModelInfo,
    ReasoningSettings,
    get_reasoning_model_info,
    reasoning_config_for,
    supports_reasoning,
)


class TestReasoningModelDetection:
    """Model id pattern matching."""

    @pytest.mark.parametrize(
        ("model_id", "provider", "parameter_type"),
        [
            ("openai/o1-mini", "OpenAI", "effort"),
            ("o1-preview", "OpenAI", "effort"),
            ("x-ai/grok-3-mini", "xAI", "effort"),
            ("anthropic/claude-3.7-sonnet", "Anthropic", "max_tokens"),
            ("anthropic/claude-4-opus", "Anthropic", "max_tokens"),
            ("google/gemini-2.0-flash-thinking-exp", "Google", "max_tokens"),
            ("deepseek/deepseek-r1", "Deepseek", "both"),
        ],
    )
    def test_reasoning_families(self, model_id: str, provider: str, parameter_type: str) -> None:
        info = get_reasoning_model_info(model_id)
        assert info.supports_reasoning
        assert info.provider == provider
        assert info.parameter_type == parameter_type

    def test_case_insensitive(self) -> None:
        assert supports_reasoning("DeepSeek/DeepSeek-R1")

    @pytest.mark.parametrize(
        "model_id", ["openai/gpt-4o", "anthropic/claude-3.5-sonnet", "meta-llama/llama-3", ""]
    )
    def test_non_reasoning_models(self, model_id: str) -> None:
        assert get_reasoning_model_info(model_id) == ReasoningModelInfo()
        assert not supports_reasoning(model_id)


class TestReasoningConfigFor:
    """Translation of user settings into the request's reasoning object."""

    def test_disabled_returns_none(self) -> None:
        assert reasoning_config_for("openai/o1", ReasoningSettings(enabled=False)) is None

    def test_non_reasoning_model_returns_none(self) -> None:
        assert reasoning_config_for("openai/gpt-4o", ReasoningSettings(enabled=True)) is None

    def test_effort_model(self) -> None:
        settings = ReasoningSettings(enabled=True, effort="low")
        config = reasoning_config_for("openai/o1-mini", settings)
        assert config == ReasoningConfig(enabled=True, exclude=False, effort="low")

    def test_max_tokens_model_uses_budget(self) -> None:
        settings = ReasoningSettings(enabled=True, max_tokens=3000)
        config = reasoning_config_for("anthropic/claude-3.7-sonnet", settings)
        assert config == ReasoningConfig(enabled=True, exclude=False, max_tokens=3000)

    def test_max_tokens_model_falls_back_to_default_budget(self) -> None:
        settings = ReasoningSettings(enabled=True, max_tokens=0)
        config = reasoning_config_for("anthropic/claude-3.7-sonnet", settings)
        assert config is not None
        assert config.max_tokens == DEFAULT_REASONING_MAX_TOKENS

    def test_both_model_prefers_budget(self) -> None:
        config = reasoning_config_for(
            "deepseek/deepseek-r1", ReasoningSettings(enabled=True, max_tokens=1500)
        )
        assert config is not None
        assert config.max_tokens == 1500
        assert config.effort is None

    def test_both_model_without_budget_uses_effort(self) -> None:
        config = reasoning_config_for(
            "deepseek/deepseek-r1", ReasoningSettings(enabled=True, max_tokens=None)
        )
        assert config is not None
        assert config.effort == "high"
        assert config.max_tokens is None

    def test_exclude_forwarded(self) -> None:
        config = reasoning_config_for("openai/o1", ReasoningSettings(enabled=True, exclude=True))
        assert config is not None
        assert config.exclude is True

    def test_unknown_model_id(self) -> None:
        assert reasoning_config_for(None, ReasoningSettings(enabled=True)) == ReasoningConfig(
            enabled=True, exclude=False, max_tokens=DEFAULT_REASONING_MAX_TOKENS
        )
        no_budget = ReasoningSettings(enabled=True, max_tokens=None, effort="medium")
        assert reasoning_config_for("", no_budget) == ReasoningConfig(
            enabled=True, exclude=False, effort="medium"
        )

    def test_explicit_info_overrides_detection(self) -> None:
        info = ReasoningModelInfo(supports_reasoning=True, parameter_type="max_tokens")
        config = reasoning_config_for(
            "custom/model", ReasoningSettings(enabled=True, max_tokens=900), info=info
        )
        assert config is not None
        assert config.max_tokens == 900


class TestPatternCapabilityLookup:
    def test_satisfies_protocol(self) -> None:
        assert isinstance(PatternCapabilityLookup(), ModelCapabilityLookup)

    def test_delegates_to_tables(self) -> None:
        lookup = PatternCapabilityLookup()
        assert lookup.supports_reasoning("openai/o1")
        assert lookup.reasoning_info("deepseek/deepseek-r1").parameter_type == "both"
        assert lookup.cache_capability("anthropic/claude-3.5-sonnet").type is CacheType.MANUAL
        assert repr(lookup) == "PatternCapabilityLookup()"
