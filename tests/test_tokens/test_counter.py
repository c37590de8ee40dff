"""Tests for completion_runtime.tokens.counter.

Since tiktoken requires network access to download encoding data, the
encoding is mocked to test TiktokenCounter's logic; the character estimator
and the Tokenizer protocol are tested directly.
"""

from __future__ import annotations

import sys
from unittest.mock import MagicMock, patch

import pytest

from completion_runtime.protocols.tokenizer import Tokenizer
from completion_runtime.tokens.counter import (
    CharEstimateTokenizer,
    TiktokenCounter,
    estimate_tokens,
    get_default_counter,
)
from tests.conftest import FakeTokenizer


class _MockEncoding:
    """Mock tiktoken encoding for offline testing."""

    name = "mock_base"

    def __init__(self) -> None:
        self.calls = 0

    def encode(self, text: str) -> list[int]:
        """Encode text as one token per whitespace-separated word."""
        self.calls += 1
        return list(range(len(text.split())))


def _make_counter(**kwargs) -> tuple[TiktokenCounter, _MockEncoding]:
    encoding = _MockEncoding()
    fake_tiktoken = MagicMock()
    fake_tiktoken.get_encoding.return_value = encoding
    with patch.dict(sys.modules, {"tiktoken": fake_tiktoken}):
        counter = TiktokenCounter(**kwargs)
    return counter, encoding


class TestEstimateTokens:
    """Four characters per token, rounded up."""

    @pytest.mark.parametrize(
        ("text", "expected"), [("", 0), ("a", 1), ("abcd", 1), ("abcde", 2), ("x" * 400, 100)]
    )
    def test_estimate(self, text: str, expected: int) -> None:
        assert estimate_tokens(text) == expected

    def test_char_estimator(self) -> None:
        tokenizer = CharEstimateTokenizer()
        assert tokenizer.count_tokens("x" * 401) == 101
        assert "chars_per_token=4" in repr(tokenizer)

    def test_default_counter_is_shared(self) -> None:
        assert get_default_counter() is get_default_counter()
        assert isinstance(get_default_counter(), CharEstimateTokenizer)


class TestTiktokenCounterCountTokens:
    """count_tokens method."""

    def test_counts_with_encoding(self) -> None:
        counter, _ = _make_counter()
        assert counter.count_tokens("Hello there, world!") == 3
        assert counter.count_tokens("") == 0
        assert repr(counter) == "TiktokenCounter(encoding='mock_base')"

    def test_results_cached(self) -> None:
        counter, encoding = _make_counter()
        text = "Deterministic token counting"
        assert counter.count_tokens(text) == counter.count_tokens(text)
        assert encoding.calls == 1

    def test_long_text_not_cached(self) -> None:
        counter, encoding = _make_counter()
        text = "word " * 2_500
        counter.count_tokens(text)
        counter.count_tokens(text)
        assert encoding.calls == 2

    def test_cache_cleared_when_full(self) -> None:
        counter, encoding = _make_counter(max_cache_size=2)
        for text in ("a", "b", "c", "a"):
            counter.count_tokens(text)
        assert encoding.calls == 4

    def test_missing_dependency(self) -> None:
        with patch.dict(sys.modules, {"tiktoken": None}):
            with pytest.raises(ImportError, match="completion-runtime\\[tiktoken\\]"):
                TiktokenCounter()


class TestTokenizerProtocol:
    """Every counter satisfies the Tokenizer protocol."""

    def test_tiktoken_counter(self) -> None:
        counter, _ = _make_counter()
        assert isinstance(counter, Tokenizer)

    def test_char_estimator(self) -> None:
        assert isinstance(CharEstimateTokenizer(), Tokenizer)

    def test_fake_tokenizer(self) -> None:
        assert isinstance(FakeTokenizer(), Tokenizer)
