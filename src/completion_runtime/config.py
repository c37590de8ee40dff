"""Runtime configuration."""

from __future__ import annotations

import os
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field

from completion_runtime.models.rate_limit import RetryConfig

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"

API_KEY_ENV_VARS = ("COMPLETION_RUNTIME_API_KEY", "OPENROUTER_API_KEY")
BASE_URL_ENV_VAR = "COMPLETION_RUNTIME_BASE_URL"
TIMEOUT_ENV_VAR = "COMPLETION_RUNTIME_TIMEOUT"


class RuntimeSettings(BaseModel):
    """Settings shared by the gateway client, governor and generation session.

    Every component also accepts these knobs directly as keyword arguments;
    this model only groups them for callers that configure from the
    environment.

    Attributes:
        base_url: Root URL of the completion gateway API.
        api_key: Bearer token sent with every request.
        timeout_seconds: HTTP timeout for gateway calls.
        buffer_size: Fragments since the last write that force a write.
        buffer_time_ms: Milliseconds since the last write that force a write.
        temperature: Sampling temperature for completion requests.
        base_max_tokens: Output token limit without reasoning.
        reasoning_max_tokens_cap: Upper bound on the output limit when
            reasoning tokens are requested.
        local_request_cap: Requests per local window before throttling.
        local_window_seconds: Length of the local rate limit window.
        retry: Backoff policy for rate-limited requests.
    """

    model_config = ConfigDict(frozen=True)

    base_url: str = DEFAULT_BASE_URL
    api_key: str = ""
    timeout_seconds: float = Field(default=60.0, gt=0)
    buffer_size: int = Field(default=2, ge=1)
    buffer_time_ms: float = Field(default=60.0, gt=0)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    base_max_tokens: int = Field(default=2000, gt=0)
    reasoning_max_tokens_cap: int = Field(default=8000, gt=0)
    local_request_cap: int = Field(default=20, ge=1)
    local_window_seconds: float = Field(default=60.0, gt=0)
    retry: RetryConfig = Field(default_factory=RetryConfig)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides: object) -> RuntimeSettings:
        """Build settings from environment variables.

        ``COMPLETION_RUNTIME_API_KEY`` takes precedence over
        ``OPENROUTER_API_KEY``.  Explicit ``overrides`` win over both.
        """
        env = os.environ if environ is None else environ
        values: dict[str, object] = {}
        for name in API_KEY_ENV_VARS:
            if env.get(name):
                values["api_key"] = env[name]
                break
        if env.get(BASE_URL_ENV_VAR):
            values["base_url"] = env[BASE_URL_ENV_VAR]
        if env.get(TIMEOUT_ENV_VAR):
            values["timeout_seconds"] = float(env[TIMEOUT_ENV_VAR])
        values.update(overrides)
        return cls.model_validate(values)
