"""Async HTTP client for the chat-completion gateway.

Wraps an :class:`httpx.AsyncClient`.  Every response, successful or not, is
fed to the rate limit governor so its quota state always reflects the latest
headers.  Failed responses are turned into the exception taxonomy by
:meth:`RateLimitGovernor.classify_error`.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from types import TracebackType
from typing import Any

import httpx

from completion_runtime.config import DEFAULT_BASE_URL, RuntimeSettings
from completion_runtime.models.generation import GenerationMetadata
from completion_runtime.models.request import CompletionRequest
from completion_runtime.ratelimit.governor import RateLimitGovernor

logger = logging.getLogger(__name__)

EVENT_STREAM = "text/event-stream"


class ResponseByteStream:
    """Async iterator over the raw body of a streamed gateway response.

    The underlying response is closed when the body is exhausted or when
    :meth:`aclose` is called, whichever comes first.
    """

    __slots__ = ("_iterator", "_response")

    def __init__(self, response: httpx.Response) -> None:
        self._response = response
        self._iterator: AsyncIterator[bytes] = response.aiter_bytes()

    @property
    def response(self) -> httpx.Response:
        return self._response

    def __aiter__(self) -> ResponseByteStream:
        return self

    async def __anext__(self) -> bytes:
        try:
            return await anext(self._iterator)
        except StopAsyncIteration:
            await self.aclose()
            raise

    async def aclose(self) -> None:
        if not self._response.is_closed:
            await self._response.aclose()

    async def __aenter__(self) -> ResponseByteStream:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status_code={self._response.status_code})"


class GatewayClient:
    """Client for the OpenAI-compatible completion gateway.

    Parameters:
        api_key: Bearer token.  Must be non-empty.
        base_url: Root URL of the gateway API.
        timeout: HTTP timeout in seconds.
        governor: Rate limit governor fed from every response.  A fresh one
            is created when omitted.
        transport: Optional httpx transport (tests pass
            :class:`httpx.MockTransport`).
        http_client: Use an existing client instead of creating one.  It is
            not closed by :meth:`aclose`.

    Raises:
        ValueError: If ``api_key`` is empty.
    """

    __slots__ = ("_base_url", "_client", "_governor", "_owns_client")

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 60.0,
        governor: RateLimitGovernor | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if not api_key:
            msg = "API key is required"
            raise ValueError(msg)
        self._base_url = base_url.rstrip("/")
        self._governor = governor or RateLimitGovernor()
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        if http_client is not None:
            http_client.headers.update(headers)
            self._client = http_client
            self._owns_client = False
        else:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=headers,
                timeout=httpx.Timeout(timeout),
                transport=transport,
            )
            self._owns_client = True

    @classmethod
    def from_settings(
        cls,
        settings: RuntimeSettings,
        *,
        governor: RateLimitGovernor | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> GatewayClient:
        if governor is None:
            governor = RateLimitGovernor(
                local_request_cap=settings.local_request_cap,
                window_seconds=settings.local_window_seconds,
                retry_config=settings.retry,
            )
        return cls(
            settings.api_key,
            base_url=settings.base_url,
            timeout=settings.timeout_seconds,
            governor=governor,
            transport=transport,
        )

    @property
    def governor(self) -> RateLimitGovernor:
        return self._governor

    @property
    def base_url(self) -> str:
        return self._base_url

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> GatewayClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    # -- Completions --

    async def complete(self, request: CompletionRequest) -> dict[str, Any]:
        """Send a non-streaming ``POST /chat/completions``."""
        payload = request.model_copy(update={"stream": False}).to_payload()
        response = await self._client.post("/chat/completions", json=payload)
        await self._check(response)
        return response.json()

    async def stream_completion(self, request: CompletionRequest) -> ResponseByteStream:
        """Open a streaming ``POST /chat/completions``.

        The status is checked before returning, so gateway errors surface
        here rather than on the first read.  The caller owns the returned
        stream and must exhaust or close it.
        """
        payload = request.model_copy(update={"stream": True}).to_payload()
        http_request = self._client.build_request(
            "POST",
            "/chat/completions",
            json=payload,
            headers={"Accept": EVENT_STREAM},
        )
        return await self._open_stream(http_request)

    async def resume_generation(self, generation_id: str) -> ResponseByteStream:
        """Re-open the event stream of an existing generation."""
        http_request = self._client.build_request(
            "GET",
            "/generation",
            params={"id": generation_id},
            headers={"Accept": EVENT_STREAM},
        )
        return await self._open_stream(http_request)

    # -- Metadata --

    async def get_generation(self, generation_id: str) -> GenerationMetadata:
        """Fetch cost, token and timing metadata for a generation."""
        response = await self._client.get("/generation", params={"id": generation_id})
        await self._check(response)
        body = response.json()
        data = body.get("data", body) if isinstance(body, dict) else body
        return GenerationMetadata.model_validate(data)

    async def list_models(self) -> list[dict[str, Any]]:
        response = await self._client.get("/models")
        await self._check(response)
        body = response.json()
        if isinstance(body, dict):
            return list(body.get("data", []))
        return list(body)

    async def validate_api_key(self) -> bool:
        """Return whether the gateway accepts the configured key.

        Any 2xx from ``GET /models`` counts as valid.  Transport failures are
        logged and reported as invalid.
        """
        try:
            response = await self._client.get("/models")
        except httpx.HTTPError:
            logger.warning("API key validation request failed", exc_info=True)
            return False
        self._governor.update_from_headers(response.headers)
        return response.is_success

    # -- Internals --

    async def _open_stream(self, http_request: httpx.Request) -> ResponseByteStream:
        response = await self._client.send(http_request, stream=True)
        try:
            await self._check(response)
        except BaseException:
            await response.aclose()
            raise
        return ResponseByteStream(response)

    async def _check(self, response: httpx.Response) -> None:
        self._governor.update_from_headers(response.headers)
        if response.is_success:
            return
        await response.aread()
        body = _json_body(response)
        error = self._governor.classify_error(
            response.status_code,
            response.headers,
            body,
            reason=response.reason_phrase,
        )
        logger.warning(
            "%s %s failed: %s", response.request.method, response.request.url.path, error
        )
        raise error

    def __repr__(self) -> str:
        return f"{type(self).__name__}(base_url={self._base_url!r})"


def _json_body(response: httpx.Response) -> dict[str, Any] | None:
    try:
        body = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return body if isinstance(body, dict) else None
