"""Tests for completion_runtime.models.rate_limit."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from completion_runtime.models.rate_limit import (
    RateLimitInfo,
    RateLimitState,
    RetryConfig,
    WaitDecision,
)


class TestRateLimitInfo:
    def test_exhausted(self) -> None:
        assert RateLimitInfo(remaining=0).exhausted
        assert RateLimitInfo(remaining=-1).exhausted
        assert not RateLimitInfo(remaining=1).exhausted
        assert not RateLimitInfo().exhausted

    def test_reset_date(self) -> None:
        assert RateLimitInfo(reset=0).reset_date == datetime(1970, 1, 1, tzinfo=UTC)
        assert RateLimitInfo().reset_date is None


class TestRateLimitState:
    """Derived fields are computed from the two dimensions."""

    def test_not_limited(self) -> None:
        state = RateLimitState(requests=RateLimitInfo(remaining=5, reset=2_000), last_updated=1_000)
        assert not state.is_rate_limited
        assert state.retry_after_seconds is None

    def test_request_limit(self) -> None:
        state = RateLimitState(requests=RateLimitInfo(remaining=0, reset=1_030), last_updated=1_000)
        assert state.is_rate_limited
        assert state.retry_after_seconds == 30

    def test_latest_reset_wins(self) -> None:
        state = RateLimitState(
            requests=RateLimitInfo(remaining=0, reset=1_030),
            tokens=RateLimitInfo(remaining=10, reset=1_090),
            last_updated=1_000,
        )
        assert state.next_reset == 1_090
        assert state.retry_after_seconds == 90

    def test_reset_in_past(self) -> None:
        state = RateLimitState(tokens=RateLimitInfo(remaining=0, reset=900), last_updated=1_000)
        assert state.is_rate_limited
        assert state.retry_after_seconds is None

    def test_derived_fields_serialized(self) -> None:
        state = RateLimitState(requests=RateLimitInfo(remaining=0, reset=1_010), last_updated=1_000)
        data = state.model_dump()
        assert data["is_rate_limited"] is True
        assert data["retry_after_seconds"] == 10


class TestRetryConfig:
    def test_defaults(self) -> None:
        config = RetryConfig()
        assert (config.max_retries, config.base_delay, config.max_delay) == (3, 1.0, 60.0)
        assert config.backoff_multiplier == 2.0
        assert config.jitter

    def test_multiplier_must_grow(self) -> None:
        with pytest.raises(ValidationError):
            RetryConfig(backoff_multiplier=0.5)


class TestWaitDecision:
    def test_default_proceeds(self) -> None:
        decision = WaitDecision()
        assert not decision.should_wait
        assert decision.wait_seconds == 0.0
