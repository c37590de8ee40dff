"""Cache strategy selection for outgoing completion requests."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from completion_runtime.models.cache import CacheCapability, CacheType
from completion_runtime.models.request import CacheControl, Message, TextBlock
from completion_runtime.protocols.capabilities import ModelCapabilityLookup
from completion_runtime.protocols.tokenizer import Tokenizer
from completion_runtime.tokens.counter import get_default_counter

from .capabilities import resolve_cache_capability

logger = logging.getLogger(__name__)

# Text blocks at or below this estimate are not worth a breakpoint.
BREAKPOINT_MIN_BLOCK_TOKENS = 100


class CacheStrategySelector:
    """Shapes a message list to exploit the provider's prompt caching.

    Behaviour depends on the model's :class:`CacheCapability`:

    - ``none``: messages are returned unchanged.
    - ``automatic``: the provider caches on its own; messages are returned
      unchanged.
    - ``manual``: once the conversation reaches the capability's minimum
      size, the system message and every settled history message get a
      ``cache_control`` marker on their last substantial text block.  The
      final message (the in-flight turn) is never marked.

    The selector is deterministic and never mutates its input.

    Parameters:
        tokenizer: Token estimator for threshold decisions.  Defaults to the
            ``len / 4`` character estimate.
        capability_lookup: Optional resolver for model capabilities; the
            built-in provider pattern table is used when omitted.
    """

    __slots__ = ("_capability_lookup", "_tokenizer")

    def __init__(
        self,
        *,
        tokenizer: Tokenizer | None = None,
        capability_lookup: ModelCapabilityLookup | None = None,
    ) -> None:
        self._tokenizer: Tokenizer = tokenizer or get_default_counter()
        self._capability_lookup = capability_lookup

    def capability_for(self, model_id: str) -> CacheCapability:
        if self._capability_lookup is not None:
            return self._capability_lookup.cache_capability(model_id)
        return resolve_cache_capability(model_id)

    def estimate_conversation_tokens(self, messages: Sequence[Message]) -> int:
        return sum(self._tokenizer.count_tokens(message.text) for message in messages)

    def should_apply_caching(self, model_id: str, messages: Sequence[Message]) -> bool:
        """Whether the conversation is large enough to be worth caching."""
        capability = self.capability_for(model_id)
        if capability.type is CacheType.NONE:
            return False
        return self.estimate_conversation_tokens(messages) >= capability.min_tokens

    def apply(self, model_id: str, messages: Sequence[Message]) -> list[Message]:
        """Return the (possibly) transformed message list for ``model_id``."""
        if not self.should_apply_caching(model_id, messages):
            return list(messages)

        capability = self.capability_for(model_id)
        if capability.type is CacheType.MANUAL:
            cached = self._apply_manual(messages)
            logger.debug(
                "Placed %d cache breakpoints for %s",
                sum(1 for m in cached if _has_breakpoint(m)),
                model_id,
            )
            return cached
        return list(messages)

    def _apply_manual(self, messages: Sequence[Message]) -> list[Message]:
        last_index = len(messages) - 1
        result: list[Message] = []
        for index, message in enumerate(messages):
            if message.role == "system" or index < last_index:
                result.append(self._add_breakpoint(message))
            else:
                result.append(message)
        return result

    def _add_breakpoint(self, message: Message) -> Message:
        blocks = list(message.as_blocks().content)
        for position in range(len(blocks) - 1, -1, -1):
            block = blocks[position]
            if not isinstance(block, TextBlock):
                continue
            if self._tokenizer.count_tokens(block.text) > BREAKPOINT_MIN_BLOCK_TOKENS:
                blocks[position] = block.model_copy(update={"cache_control": CacheControl()})
            break
        return Message(role=message.role, content=blocks)


def _has_breakpoint(message: Message) -> bool:
    if isinstance(message.content, str):
        return False
    return any(
        isinstance(block, TextBlock) and block.cache_control is not None
        for block in message.content
    )


def apply_cache_strategy(model_id: str, messages: Sequence[Message]) -> list[Message]:
    """Apply the default :class:`CacheStrategySelector` to ``messages``."""
    return CacheStrategySelector().apply(model_id, messages)


def create_cached_system_message(
    system_prompt: str,
    additional_context: str | None = None,
    *,
    tokenizer: Tokenizer | None = None,
) -> Message:
    """Build a system message, caching substantial additional context.

    Without additional context the prompt is returned as plain text.  When
    context is given it becomes a second text block, marked as a cache
    breakpoint if it estimates above the breakpoint minimum.
    """
    counter = tokenizer or get_default_counter()
    if not additional_context:
        return Message(role="system", content=system_prompt)

    blocks: list[TextBlock] = [TextBlock(text=system_prompt)]
    if counter.count_tokens(additional_context) > BREAKPOINT_MIN_BLOCK_TOKENS:
        blocks.append(TextBlock(text=additional_context, cache_control=CacheControl()))
    else:
        blocks.append(TextBlock(text=additional_context))
    return Message(role="system", content=blocks)


def create_cached_user_message(
    current_message: str,
    conversation_history: str | None = None,
    *,
    tokenizer: Tokenizer | None = None,
) -> Message:
    """Build a user message that carries cached history ahead of the new turn."""
    counter = tokenizer or get_default_counter()
    if (
        not conversation_history
        or counter.count_tokens(conversation_history) < BREAKPOINT_MIN_BLOCK_TOKENS
    ):
        return Message(role="user", content=current_message)

    return Message(
        role="user",
        content=[
            TextBlock(text=conversation_history, cache_control=CacheControl()),
            TextBlock(text=current_message),
        ],
    )
