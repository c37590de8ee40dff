"""Custom exceptions for completion-runtime."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from completion_runtime.models.rate_limit import RateLimitState

__all__ = [
    "CompletionRuntimeError",
    "GatewayError",
    "InsufficientCreditsError",
    "InvalidCredentialError",
    "PersistenceError",
    "RateLimitError",
    "RequestAbortedError",
    "ResumeError",
]


class CompletionRuntimeError(Exception):
    """Base exception for all completion-runtime errors."""


class GatewayError(CompletionRuntimeError):
    """The completion gateway answered with a non-success status.

    Parameters:
        message: Human-readable description.
        status_code: HTTP status returned by the gateway.
        body: Parsed JSON error body, if the gateway sent one.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body or {}


class RateLimitError(GatewayError):
    """HTTP 429 from the gateway.

    Carries the ``retry-after`` hint (seconds) when the gateway sent one and
    a snapshot of the quota state at the time of the failure.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = 429,
        body: dict[str, Any] | None = None,
        *,
        retry_after: float | None = None,
        rate_limit_state: RateLimitState | None = None,
    ) -> None:
        super().__init__(message, status_code, body)
        self.retry_after = retry_after
        self.rate_limit_state = rate_limit_state


class InsufficientCreditsError(GatewayError):
    """HTTP 402 -- the account has no credits left for this request."""


class InvalidCredentialError(GatewayError):
    """HTTP 401 -- the API key was rejected."""


class PersistenceError(CompletionRuntimeError):
    """Writing a buffered message to the persistence sink failed."""

    def __init__(self, message: str, message_id: str) -> None:
        super().__init__(message)
        self.message_id = message_id


class RequestAbortedError(CompletionRuntimeError):
    """The caller aborted before the gateway request was issued."""


class ResumeError(CompletionRuntimeError):
    """An interrupted generation could not be resumed."""

    def __init__(self, message: str, message_id: str) -> None:
        super().__init__(message)
        self.message_id = message_id
