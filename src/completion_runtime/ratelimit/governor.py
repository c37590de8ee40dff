"""Client-side rate limit governor.

Tracks the quota the gateway reports in response headers, keeps a local
sliding window of request timestamps, classifies gateway errors and retries
rate-limited calls with exponential backoff.
"""

from __future__ import annotations

import asyncio
import logging
import math
import random
import time
from collections import deque
from collections.abc import Awaitable, Callable, Mapping
from email.utils import parsedate_to_datetime
from typing import Any, TypeVar

from completion_runtime.exceptions import (
    GatewayError,
    InsufficientCreditsError,
    InvalidCredentialError,
    RateLimitError,
    RequestAbortedError,
)
from completion_runtime.models.rate_limit import (
    RateLimitInfo,
    RateLimitState,
    RetryConfig,
    WaitDecision,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_LOCAL_REQUEST_CAP = 20
DEFAULT_WINDOW_SECONDS = 60.0
DEFAULT_MAX_HISTORY = 100

# Fraction of the delay used as symmetric jitter.
JITTER_RATIO = 0.25

# Reset values above this are epoch milliseconds rather than seconds.
_EPOCH_MS_THRESHOLD = 10**11

_HEADER_PREFIX = "x-ratelimit-"


def _parse_int(value: str | None) -> int | None:
    if value is None or not str(value).strip():
        return None
    try:
        return int(float(value))
    except ValueError:
        return None


def _parse_reset(value: str | None) -> int | None:
    reset = _parse_int(value)
    if reset is not None and reset > _EPOCH_MS_THRESHOLD:
        reset //= 1000
    return reset


def parse_retry_after(value: str | None, *, now: float | None = None) -> float | None:
    """Parse a ``retry-after`` header given in seconds or as an HTTP date."""
    if value is None or not value.strip():
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    current = time.time() if now is None else now
    return max(when.timestamp() - current, 0.0)


def _check_abort(abort: asyncio.Event | None) -> None:
    if abort is not None and abort.is_set():
        msg = "Request aborted before it was sent"
        raise RequestAbortedError(msg)


def _lower_headers(headers: Mapping[str, str]) -> dict[str, str]:
    return {str(key).lower(): value for key, value in headers.items()}


def parse_rate_limit_headers(headers: Mapping[str, str], *, now: float) -> RateLimitState:
    """Build a :class:`RateLimitState` from gateway response headers.

    Missing or unparseable headers leave the corresponding field ``None``.
    """
    lowered = _lower_headers(headers)

    def info(scope: str) -> RateLimitInfo:
        return RateLimitInfo(
            limit=_parse_int(lowered.get(f"{_HEADER_PREFIX}limit-{scope}")),
            remaining=_parse_int(lowered.get(f"{_HEADER_PREFIX}remaining-{scope}")),
            reset=_parse_reset(lowered.get(f"{_HEADER_PREFIX}reset-{scope}")),
        )

    return RateLimitState(requests=info("requests"), tokens=info("tokens"), last_updated=now)


class RateLimitGovernor:
    """Decides whether, and for how long, to hold back gateway requests.

    Construct one per client (or share one explicitly between clients that
    use the same API key); there is no global instance.

    Parameters:
        local_request_cap: Requests allowed within ``window_seconds`` before
            the local window starts throttling.
        window_seconds: Length of the local sliding window.
        retry_config: Backoff policy for rate-limited retries.
        max_history: Request timestamps retained at most.
        clock: Wall clock returning epoch seconds.
        sleep: Coroutine used to wait (injectable for tests).
        rng: Source of uniform ``[0, 1)`` floats for jitter.
    """

    __slots__ = (
        "_clock",
        "_history",
        "_local_request_cap",
        "_retry_config",
        "_rng",
        "_sleep",
        "_state",
        "_window_seconds",
    )

    def __init__(
        self,
        *,
        local_request_cap: int = DEFAULT_LOCAL_REQUEST_CAP,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        retry_config: RetryConfig | None = None,
        max_history: int = DEFAULT_MAX_HISTORY,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
    ) -> None:
        if local_request_cap < 1:
            msg = f"local_request_cap must be >= 1, got {local_request_cap}"
            raise ValueError(msg)
        self._local_request_cap = local_request_cap
        self._window_seconds = window_seconds
        self._retry_config = retry_config or RetryConfig()
        self._history: deque[float] = deque(maxlen=max(max_history, local_request_cap))
        self._clock = clock
        self._sleep = sleep
        self._rng = rng
        self._state: RateLimitState | None = None

    @property
    def state(self) -> RateLimitState | None:
        """Latest quota snapshot, or ``None`` before the first response."""
        return self._state

    @property
    def retry_config(self) -> RetryConfig:
        return self._retry_config

    @property
    def requests_in_window(self) -> int:
        self._prune(self._clock())
        return len(self._history)

    # -- Quota state --

    def update_from_headers(self, headers: Mapping[str, str]) -> RateLimitState:
        """Replace the quota state with the one carried by ``headers``."""
        self._state = parse_rate_limit_headers(headers, now=self._clock())
        if self._state.is_rate_limited:
            logger.info(
                "Gateway reports quota exhausted; retry after %s s",
                self._state.retry_after_seconds,
            )
        return self._state

    def record_request(self) -> None:
        """Note that a request is being issued now."""
        self._history.append(self._clock())

    def reset(self) -> None:
        self._state = None
        self._history.clear()

    def _prune(self, now: float) -> None:
        while self._history and now - self._history[0] >= self._window_seconds:
            self._history.popleft()

    # -- Gate --

    def should_wait_before_request(self) -> WaitDecision:
        """Whether the next request has to wait, and for how long.

        Server quota takes precedence: if the gateway says the quota is
        exhausted, wait until its reset epoch.  Otherwise, if the local window
        is full, wait until its oldest request leaves the window.
        """
        now = self._clock()
        self._prune(now)

        state = self._state
        if state is not None and state.is_rate_limited and state.next_reset > now:
            return WaitDecision(
                should_wait=True,
                wait_seconds=float(math.ceil(state.next_reset - now)),
                reason="server",
            )

        if len(self._history) >= self._local_request_cap:
            oldest = self._history[0]
            remaining = self._window_seconds - (now - oldest)
            if remaining > 0:
                return WaitDecision(
                    should_wait=True,
                    wait_seconds=float(math.ceil(remaining)),
                    reason="local",
                )

        return WaitDecision()

    # -- Backoff --

    def backoff_delay(self, attempt: int, config: RetryConfig | None = None) -> float:
        """Delay in seconds before retry number ``attempt`` (0-based).

        ``min(base * multiplier ** attempt, max_delay)`` plus up to +/-25%
        jitter when enabled.  Never negative.
        """
        cfg = config or self._retry_config
        delay = min(cfg.base_delay * cfg.backoff_multiplier**attempt, cfg.max_delay)
        if cfg.jitter:
            jitter_range = delay * JITTER_RATIO
            delay += (self._rng() - 0.5) * 2 * jitter_range
        return max(delay, 0.0)

    async def execute_with_rate_limit(
        self,
        fn: Callable[[], Awaitable[T]],
        *,
        max_retries: int | None = None,
        abort: asyncio.Event | None = None,
    ) -> T:
        """Run ``fn`` behind the gate, retrying on :class:`RateLimitError`.

        Every attempt re-checks the gate first, so a long server-side reset
        is waited out instead of being retried quickly.  Errors other than
        rate limits propagate immediately.

        Raises:
            RequestAbortedError: If ``abort`` is set before ``fn`` is called.
                Gate and backoff waits end as soon as it is set.
        """
        retries = self._retry_config.max_retries if max_retries is None else max_retries
        attempt = 0
        while True:
            _check_abort(abort)
            decision = self.should_wait_before_request()
            if decision.should_wait:
                logger.info(
                    "Rate limit active (%s); waiting %.0f s", decision.reason, decision.wait_seconds
                )
                await self._wait(decision.wait_seconds, abort)
                _check_abort(abort)

            self.record_request()
            try:
                return await fn()
            except RateLimitError as exc:
                if attempt >= retries:
                    logger.warning("Rate limited; giving up after %d retries", attempt)
                    raise
                delay = self.backoff_delay(attempt)
                if exc.retry_after is not None:
                    delay = max(delay, exc.retry_after)
                attempt += 1
                logger.info("Rate limited; retry %d/%d in %.2f s", attempt, retries, delay)
                await self._wait(delay, abort)

    async def _wait(self, seconds: float, abort: asyncio.Event | None) -> None:
        if abort is None:
            await self._sleep(seconds)
            return
        sleeping = asyncio.ensure_future(self._sleep(seconds))
        aborted = asyncio.ensure_future(abort.wait())
        try:
            await asyncio.wait({sleeping, aborted}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            sleeping.cancel()
            aborted.cancel()

    # -- Error classification --

    def classify_error(
        self,
        status_code: int,
        headers: Mapping[str, str] | None = None,
        body: dict[str, Any] | None = None,
        *,
        reason: str = "",
    ) -> GatewayError:
        """Map a failed gateway response onto the exception taxonomy."""
        message = f"Gateway request failed: {status_code}"
        if reason:
            message += f" {reason}"
        detail = _error_detail(body)
        if detail:
            message += f" - {detail}"

        if status_code == 429:
            lowered = _lower_headers(headers or {})
            retry_after = parse_retry_after(lowered.get("retry-after"), now=self._clock())
            if retry_after is None and self._state is not None:
                retry_after = self._state.retry_after_seconds
            return RateLimitError(
                message,
                status_code,
                body,
                retry_after=retry_after,
                rate_limit_state=self._state,
            )
        if status_code == 402:
            return InsufficientCreditsError(message, status_code, body)
        if status_code == 401:
            return InvalidCredentialError(message, status_code, body)
        return GatewayError(message, status_code, body)

    def rate_limit_message(self, error: RateLimitError) -> str:
        """User-facing explanation of a rate limit error."""
        state = error.rate_limit_state or self._state
        if state is None:
            return "Rate limit exceeded. Please wait a moment before trying again."

        requests_hit = state.requests.exhausted
        tokens_hit = state.tokens.exhausted
        message = "Rate limit exceeded. "
        if requests_hit and tokens_hit:
            message += "Both request and token limits have been reached."
        elif requests_hit:
            message += "Request limit reached."
        elif tokens_hit:
            message += "Token limit reached."
        else:
            message += "Please wait before making another request."

        now = self._clock()
        if state.next_reset > now:
            minutes = math.ceil((state.next_reset - now) / 60)
            plural = "s" if minutes != 1 else ""
            message += f" Please wait {minutes} minute{plural} before trying again."
        return message

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(local_request_cap={self._local_request_cap}, "
            f"window_seconds={self._window_seconds:g})"
        )


def _error_detail(body: dict[str, Any] | None) -> str:
    if not body:
        return ""
    error = body.get("error")
    if isinstance(error, dict):
        return str(error.get("message") or "")
    if isinstance(error, str):
        return error
    return ""
