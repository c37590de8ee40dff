"""Tests for completion_runtime.caching.strategy -- CacheStrategySelector and helpers."""

from __future__ import annotations

from completion_runtime.caching.strategy import (
    CacheStrategySelector,
    apply_cache_strategy,
    create_cached_system_message,
    create_cached_user_message,
)
from completion_runtime.models.cache import CacheCapability, CacheType
from completion_runtime.models.request import (
    CacheControl,
    ImageBlock,
    ImageUrl,
    Message,
    TextBlock,
)
from completion_runtime.reasoning import ReasoningModelInfo
from tests.conftest import FakeTokenizer

ANTHROPIC = "anthropic/claude-3.5-sonnet"
LONG = "lorem ipsum dolor sit amet " * 40  # ~1080 chars, ~270 tokens
SHORT = "ok, thanks"


def _conversation() -> list[Message]:
    return [
        Message(role="system", content="You are a careful assistant. " + LONG),
        Message(role="user", content="First question. " + LONG),
        Message(role="assistant", content="First answer. " + LONG),
        Message(role="user", content="Second question. " + LONG),
        Message(role="assistant", content="Second answer. " + LONG),
        Message(role="user", content="Current question. " + LONG),
    ]


def _marked(message: Message) -> bool:
    if isinstance(message.content, str):
        return False
    return any(
        isinstance(block, TextBlock) and block.cache_control is not None
        for block in message.content
    )


class _FixedLookup:
    def __init__(self, capability: CacheCapability) -> None:
        self._capability = capability

    def supports_reasoning(self, model_id: str) -> bool:
        return False

    def reasoning_info(self, model_id: str) -> ReasoningModelInfo:
        return ReasoningModelInfo()

    def cache_capability(self, model_id: str) -> CacheCapability:
        return self._capability


# ---------------------------------------------------------------------------
# Manual caching
# ---------------------------------------------------------------------------


class TestManualBreakpoints:
    """Anthropic-style explicit cache_control markers."""

    def test_six_message_conversation(self) -> None:
        messages = _conversation()
        result = CacheStrategySelector().apply(ANTHROPIC, messages)
        assert len(result) == 6
        assert [_marked(m) for m in result] == [True, True, True, True, True, False]
        assert result[-1] == messages[-1]

    def test_marker_on_last_text_block(self) -> None:
        result = CacheStrategySelector().apply(ANTHROPIC, _conversation())
        system = result[0]
        assert isinstance(system.content, list)
        assert system.content[-1].cache_control == CacheControl(type="ephemeral")
        assert system.content[-1].text == _conversation()[0].text

    def test_short_blocks_are_not_marked(self) -> None:
        messages = _conversation()
        messages.insert(3, Message(role="assistant", content=SHORT))
        result = CacheStrategySelector().apply(ANTHROPIC, messages)
        short = result[3]
        assert not _marked(short)
        assert short.content == [TextBlock(text=SHORT)]

    def test_last_text_block_chosen_over_trailing_image(self) -> None:
        image = ImageBlock(image_url=ImageUrl(url="data:image/png;base64,AAAA"))
        multimodal = Message(role="user", content=[TextBlock(text=LONG), image])
        messages = [*_conversation()[:-1], multimodal, Message(role="user", content="next")]
        result = CacheStrategySelector().apply(ANTHROPIC, messages)
        blocks = result[-2].content
        assert blocks[0].cache_control is not None
        assert blocks[1] == image

    def test_only_last_text_block_considered(self) -> None:
        message = Message(
            role="user", content=[TextBlock(text=LONG), TextBlock(text=SHORT)]
        )
        messages = [*_conversation()[:-1], message, Message(role="user", content="next")]
        result = CacheStrategySelector().apply(ANTHROPIC, messages)
        assert not _marked(result[-2])

    def test_system_message_marked_even_when_last(self) -> None:
        system = Message(role="system", content=LONG * 5)
        result = CacheStrategySelector().apply(ANTHROPIC, [system])
        assert _marked(result[0])

    def test_input_is_not_mutated(self) -> None:
        messages = _conversation()
        snapshot = [m.model_copy(deep=True) for m in messages]
        CacheStrategySelector().apply(ANTHROPIC, messages)
        assert messages == snapshot
        assert all(isinstance(m.content, str) for m in messages)

    def test_deterministic(self) -> None:
        selector = CacheStrategySelector()
        assert selector.apply(ANTHROPIC, _conversation()) == selector.apply(
            ANTHROPIC, _conversation()
        )


# ---------------------------------------------------------------------------
# Pass-through cases
# ---------------------------------------------------------------------------


class TestPassThrough:
    """Models that need no transformation get the input back."""

    def test_below_threshold_unchanged(self) -> None:
        messages = [Message(role="system", content=LONG), Message(role="user", content="hi")]
        assert CacheStrategySelector().apply(ANTHROPIC, messages) == messages

    def test_none_capability_unchanged(self) -> None:
        messages = _conversation()
        assert CacheStrategySelector().apply("meta-llama/llama-3.1-70b", messages) == messages

    def test_automatic_capability_unchanged(self) -> None:
        messages = _conversation()
        assert CacheStrategySelector().apply("openai/gpt-4o", messages) == messages

    def test_returns_new_list(self) -> None:
        messages = _conversation()
        result = CacheStrategySelector().apply("openai/gpt-4o", messages)
        assert result is not messages

    def test_empty_conversation(self) -> None:
        assert CacheStrategySelector().apply(ANTHROPIC, []) == []

    def test_module_level_helper(self) -> None:
        result = apply_cache_strategy(ANTHROPIC, _conversation())
        assert _marked(result[0])


class TestSelectorInjection:
    """Tokenizer and capability lookup are pluggable."""

    def test_custom_capability_lookup(self) -> None:
        lookup = _FixedLookup(CacheCapability(type=CacheType.MANUAL, min_tokens=10))
        selector = CacheStrategySelector(capability_lookup=lookup)
        messages = [Message(role="system", content=LONG), Message(role="user", content="hi")]
        result = selector.apply("any/model", messages)
        assert _marked(result[0])
        assert selector.capability_for("any/model").min_tokens == 10

    def test_custom_tokenizer(self) -> None:
        selector = CacheStrategySelector(tokenizer=FakeTokenizer())
        messages = _conversation()
        # whitespace tokens: ~200 per message, above the 1024 total
        assert selector.estimate_conversation_tokens(messages) > 1024
        assert selector.should_apply_caching(ANTHROPIC, messages)

    def test_should_apply_caching(self) -> None:
        selector = CacheStrategySelector()
        assert selector.should_apply_caching(ANTHROPIC, _conversation())
        assert not selector.should_apply_caching("mistral/mistral-large", _conversation())
        assert selector.should_apply_caching("openai/gpt-4o", _conversation())


# ---------------------------------------------------------------------------
# Message helpers
# ---------------------------------------------------------------------------


class TestCachedMessageHelpers:
    """create_cached_system_message / create_cached_user_message."""

    def test_system_without_context_is_plain(self) -> None:
        message = create_cached_system_message("Be brief.")
        assert message == Message(role="system", content="Be brief.")

    def test_system_with_large_context_marks_it(self) -> None:
        message = create_cached_system_message("Be brief.", LONG)
        assert message.content == [
            TextBlock(text="Be brief."),
            TextBlock(text=LONG, cache_control=CacheControl()),
        ]

    def test_system_with_small_context_keeps_it_unmarked(self) -> None:
        message = create_cached_system_message("Be brief.", SHORT)
        assert message.content == [TextBlock(text="Be brief."), TextBlock(text=SHORT)]

    def test_user_with_large_history(self) -> None:
        message = create_cached_user_message("And now?", LONG)
        assert message.content == [
            TextBlock(text=LONG, cache_control=CacheControl()),
            TextBlock(text="And now?"),
        ]

    def test_user_with_small_or_no_history_is_plain(self) -> None:
        assert create_cached_user_message("Hi", SHORT).content == "Hi"
        assert create_cached_user_message("Hi").content == "Hi"
