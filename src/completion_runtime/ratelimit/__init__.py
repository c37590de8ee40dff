"""Rate limit tracking, gating and backoff."""

from .governor import (
    DEFAULT_LOCAL_REQUEST_CAP,
    DEFAULT_WINDOW_SECONDS,
    RateLimitGovernor,
    parse_rate_limit_headers,
    parse_retry_after,
)

__all__ = [
    "DEFAULT_LOCAL_REQUEST_CAP",
    "DEFAULT_WINDOW_SECONDS",
    "RateLimitGovernor",
    "parse_rate_limit_headers",
    "parse_retry_after",
]
