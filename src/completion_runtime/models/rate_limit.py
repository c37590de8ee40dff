"""Quota tracking and retry policy models."""

from __future__ import annotations

import time
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, computed_field


class RateLimitInfo(BaseModel):
    """One quota dimension (requests or tokens) as reported by the gateway.

    Parameters:
        limit: Quota ceiling for the current window.
        remaining: Units left in the current window.
        reset: Unix epoch (seconds) at which the window resets.
    """

    model_config = ConfigDict(frozen=True)

    limit: int | None = None
    remaining: int | None = None
    reset: int | None = None

    @property
    def reset_date(self) -> datetime | None:
        if self.reset is None:
            return None
        return datetime.fromtimestamp(self.reset, tz=UTC)

    @property
    def exhausted(self) -> bool:
        return self.remaining is not None and self.remaining <= 0


class RateLimitState(BaseModel):
    """Snapshot of gateway quota, replaced wholesale on every response.

    ``is_rate_limited`` and ``retry_after_seconds`` are derived from the
    two quota dimensions and ``last_updated``; callers never set them.
    """

    model_config = ConfigDict(frozen=True)

    requests: RateLimitInfo = Field(default_factory=RateLimitInfo)
    tokens: RateLimitInfo = Field(default_factory=RateLimitInfo)
    last_updated: float = Field(default_factory=time.time)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_rate_limited(self) -> bool:
        return self.requests.exhausted or self.tokens.exhausted

    @property
    def next_reset(self) -> int:
        """Latest reset epoch across both dimensions (0 when unknown)."""
        return max(self.requests.reset or 0, self.tokens.reset or 0)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def retry_after_seconds(self) -> float | None:
        if not self.is_rate_limited:
            return None
        remaining = self.next_reset - self.last_updated
        return remaining if remaining > 0 else None


class RetryConfig(BaseModel):
    """Exponential backoff policy for rate-limited requests.

    Parameters:
        max_retries: Retries after the first attempt.
        base_delay: Delay (seconds) for attempt 0.
        max_delay: Upper bound (seconds) before jitter.
        backoff_multiplier: Growth factor per attempt.
        jitter: Apply symmetric +/-25% jitter to each delay.
    """

    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(default=3, ge=0)
    base_delay: float = Field(default=1.0, ge=0.0)
    max_delay: float = Field(default=60.0, ge=0.0)
    backoff_multiplier: float = Field(default=2.0, ge=1.0)
    jitter: bool = True


class WaitDecision(BaseModel):
    """Outcome of the pre-request gate."""

    model_config = ConfigDict(frozen=True)

    should_wait: bool = False
    wait_seconds: float = 0.0
    reason: str = ""
