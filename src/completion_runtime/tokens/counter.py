"""Token counting implementations."""

from __future__ import annotations

import functools
import math

# Characters per token for the cheap estimate.
_CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """Rough token estimate: one token per four characters, rounded up."""
    return math.ceil(len(text) / _CHARS_PER_TOKEN)


class CharEstimateTokenizer:
    """Character-count token estimator.

    Good enough for threshold decisions such as whether a conversation is
    worth caching. Implements the Tokenizer protocol.
    """

    __slots__ = ()

    def count_tokens(self, text: str) -> int:
        return estimate_tokens(text)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(chars_per_token={_CHARS_PER_TOKEN})"


class TiktokenCounter:
    """Token counter using OpenAI's tiktoken library.

    Useful when cache thresholds should be judged on real token counts
    rather than the character estimate.

    The tiktoken import is deferred to ``__init__`` so that importing this
    module does not require the optional dependency.
    """

    __slots__ = ("_cache", "_encoding", "_max_cache_size")

    def __init__(
        self, encoding_name: str = "cl100k_base", max_cache_size: int = 10_000
    ) -> None:
        try:
            import tiktoken
        except ImportError:
            msg = (
                "tiktoken is required for exact token counting. "
                "Install it with: pip install completion-runtime[tiktoken]"
            )
            raise ImportError(msg) from None

        self._encoding = tiktoken.get_encoding(encoding_name)
        self._max_cache_size = max_cache_size
        self._cache: dict[str, int] = {}

    def count_tokens(self, text: str) -> int:
        """Count the number of tokens in a text string."""
        if text in self._cache:
            return self._cache[text]
        count = len(self._encoding.encode(text))
        # Only cache strings under 10k chars
        if len(text) < 10_000:
            if len(self._cache) >= self._max_cache_size:
                self._cache.clear()
            self._cache[text] = count
        return count

    def __repr__(self) -> str:
        return f"{type(self).__name__}(encoding={self._encoding.name!r})"


@functools.cache
def get_default_counter() -> CharEstimateTokenizer:
    """Shared default estimator.

    Call ``get_default_counter.cache_clear()`` to reset it in tests.
    """
    return CharEstimateTokenizer()
