"""Protocol for resolving what a model supports."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from completion_runtime.models.cache import CacheCapability
    from completion_runtime.reasoning import ReasoningModelInfo


@runtime_checkable
class ModelCapabilityLookup(Protocol):
    """Resolves a model id to its reasoning and caching support.

    The default implementation matches model ids against known provider
    patterns; callers with access to the gateway's model catalogue can
    supply a more precise one.
    """

    def supports_reasoning(self, model_id: str) -> bool:
        """Whether the model emits reasoning tokens."""
        ...

    def reasoning_info(self, model_id: str) -> ReasoningModelInfo:
        """Reasoning parameter style and provider for the model."""
        ...

    def cache_capability(self, model_id: str) -> CacheCapability:
        """Prompt-caching capability for the model."""
        ...
