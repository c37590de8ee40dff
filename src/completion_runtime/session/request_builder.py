"""Construction of completion requests from chat history."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import date

from completion_runtime.caching.strategy import CacheStrategySelector
from completion_runtime.models.generation import Attachment, StoredMessage
from completion_runtime.models.request import (
    CompletionRequest,
    ContentBlock,
    FileBlock,
    FileData,
    ImageBlock,
    ImageUrl,
    Message,
    ReasoningConfig,
    TextBlock,
    WebSearchPlugin,
)
from completion_runtime.protocols.capabilities import ModelCapabilityLookup
from completion_runtime.reasoning import PatternCapabilityLookup, ReasoningSettings, reasoning_config_for

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.7
DEFAULT_BASE_MAX_TOKENS = 2000
DEFAULT_REASONING_MAX_TOKENS_CAP = 8000
# Extra output allowance when reasoning is on but no budget was given.
DEFAULT_REASONING_ALLOWANCE = 4000
WEB_SEARCH_MAX_RESULTS = 5


def web_search_prompt(today: date) -> str:
    return (
        f"A web search was conducted on {today.isoformat()}. Incorporate the following "
        "web search results into your response. IMPORTANT: Cite them using markdown "
        "links named using the domain of the source. Example: "
        "[nytimes.com](https://nytimes.com/some-page)."
    )


def web_search_plugin(today: date | None = None) -> WebSearchPlugin:
    return WebSearchPlugin(
        max_results=WEB_SEARCH_MAX_RESULTS,
        search_prompt=web_search_prompt(today or date.today()),
    )


def max_tokens_for(
    reasoning: ReasoningConfig | None,
    *,
    base: int = DEFAULT_BASE_MAX_TOKENS,
    cap: int = DEFAULT_REASONING_MAX_TOKENS_CAP,
) -> int:
    """Output token limit, raised to leave room for reasoning tokens."""
    if reasoning is None or not reasoning.enabled:
        return base
    return min(base + (reasoning.max_tokens or DEFAULT_REASONING_ALLOWANCE), cap)


def attachment_block(attachment: Attachment) -> ImageBlock | FileBlock:
    if attachment.type == "image":
        return ImageBlock(image_url=ImageUrl(url=attachment.data))
    return FileBlock(file=FileData(filename=attachment.name, file_data=attachment.data))


def to_request_message(stored: StoredMessage) -> Message:
    """Convert a stored message, attachments following its text."""
    if not stored.attachments:
        return Message(role=stored.role, content=stored.content)
    blocks: list[ContentBlock] = []
    if stored.content.strip():
        blocks.append(TextBlock(text=stored.content))
    blocks.extend(attachment_block(attachment) for attachment in stored.attachments)
    return Message(role=stored.role, content=blocks)


def find_placeholder(history: Sequence[StoredMessage]) -> StoredMessage | None:
    """The newest incomplete assistant message, which receives the output."""
    pending = [m for m in history if m.role == "assistant" and not m.is_complete]
    if not pending:
        return None
    return max(pending, key=lambda m: m.created_at)


def history_to_messages(
    history: Sequence[StoredMessage], *, exclude_id: str | None = None
) -> list[Message]:
    """Request messages for ``history``, oldest first.

    The message with ``exclude_id`` (the placeholder being generated) and
    blank messages are dropped.
    """
    kept = [m for m in history if m.id != exclude_id and m.content.strip()]
    kept.sort(key=lambda m: m.created_at)
    return [to_request_message(m) for m in kept]


class RequestBuilder:
    """Builds :class:`CompletionRequest` objects for a model.

    The cache strategy is applied last, to the final message list.

    Parameters:
        selector: Cache strategy selector; a default one is created when
            omitted.
        capabilities: Model capability lookup used for reasoning support.
        temperature: Sampling temperature.
        base_max_tokens: Output token limit without reasoning.
        reasoning_max_tokens_cap: Upper bound on the limit with reasoning.
        today: Date source for the web search prompt.
    """

    __slots__ = (
        "_base_max_tokens",
        "_capabilities",
        "_reasoning_cap",
        "_selector",
        "_temperature",
        "_today",
    )

    def __init__(
        self,
        *,
        selector: CacheStrategySelector | None = None,
        capabilities: ModelCapabilityLookup | None = None,
        temperature: float = DEFAULT_TEMPERATURE,
        base_max_tokens: int = DEFAULT_BASE_MAX_TOKENS,
        reasoning_max_tokens_cap: int = DEFAULT_REASONING_MAX_TOKENS_CAP,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._capabilities: ModelCapabilityLookup = capabilities or PatternCapabilityLookup()
        self._selector = selector or CacheStrategySelector(capability_lookup=self._capabilities)
        self._temperature = temperature
        self._base_max_tokens = base_max_tokens
        self._reasoning_cap = reasoning_max_tokens_cap
        self._today = today

    @property
    def selector(self) -> CacheStrategySelector:
        return self._selector

    def build(
        self,
        model_id: str,
        messages: Sequence[Message],
        *,
        reasoning: ReasoningSettings | None = None,
        web_search: bool = False,
    ) -> CompletionRequest:
        reasoning_config = None
        if reasoning is not None:
            reasoning_config = reasoning_config_for(
                model_id, reasoning, info=self._capabilities.reasoning_info(model_id)
            )
        request = CompletionRequest(
            model=model_id,
            messages=self._selector.apply(model_id, messages),
            stream=True,
            max_tokens=max_tokens_for(
                reasoning_config, base=self._base_max_tokens, cap=self._reasoning_cap
            ),
            temperature=self._temperature,
            reasoning=reasoning_config,
            plugins=[web_search_plugin(self._today())] if web_search else None,
        )
        logger.debug(
            "Built request for %s: %d messages, max_tokens=%d, reasoning=%s, web_search=%s",
            model_id,
            len(request.messages),
            request.max_tokens,
            reasoning_config is not None,
            web_search,
        )
        return request

    def build_from_history(
        self,
        model_id: str,
        history: Sequence[StoredMessage],
        *,
        placeholder_id: str | None = None,
        reasoning: ReasoningSettings | None = None,
        web_search: bool = False,
    ) -> CompletionRequest:
        messages = history_to_messages(history, exclude_id=placeholder_id)
        return self.build(model_id, messages, reasoning=reasoning, web_search=web_search)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(temperature={self._temperature}, "
            f"base_max_tokens={self._base_max_tokens})"
        )
