"""Tokenizer protocol for token estimation."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Tokenizer(Protocol):
    """Protocol for token counting.

    The default implementation estimates from character count; callers can
    provide an exact tokenizer (e.g. tiktoken) instead.
    """

    def count_tokens(self, text: str) -> int:
        """Count the number of tokens in a text string.

        Parameters:
            text: The input text to count.

        Returns:
            The (estimated) number of tokens.
        """
        ...
