"""Prompt-cache effectiveness tracking."""

from __future__ import annotations

import threading
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field

from completion_runtime.models.generation import GenerationMetadata


class CacheInfo(BaseModel):
    """Savings attributed to prompt caching for one generation."""

    model_config = ConfigDict(frozen=True)

    was_cached: bool = False
    tokens_saved: int = 0
    cost_saved: float = 0.0


class CacheMetrics(BaseModel):
    """Aggregated cache statistics."""

    model_config = ConfigDict(frozen=True)

    total_requests: int = 0
    cached_requests: int = 0
    total_tokens_saved: int = 0
    total_cost_saved: float = 0.0
    last_updated: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def cache_hit_rate(self) -> float:
        if not self.total_requests:
            return 0.0
        return self.cached_requests / self.total_requests


def extract_cache_info(metadata: GenerationMetadata) -> CacheInfo:
    """Derive cache savings from generation metadata.

    A positive ``cache_discount`` means part of the prompt was served from
    cache; savings are approximated proportionally.
    """
    discount = metadata.cache_discount or 0.0
    if discount <= 0:
        return CacheInfo()
    return CacheInfo(
        was_cached=True,
        tokens_saved=int(metadata.tokens_prompt * discount),
        cost_saved=metadata.total_cost * discount,
    )


class CacheMonitor:
    """Thread-safe accumulator of cache hits and savings.

    Usage::

        monitor = CacheMonitor()
        monitor.record(extract_cache_info(metadata))
        print(monitor.formatted())
    """

    __slots__ = ("_cached", "_cost_saved", "_lock", "_tokens_saved", "_total", "_updated")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._total = 0
        self._cached = 0
        self._tokens_saved = 0
        self._cost_saved = 0.0
        self._updated = datetime.now(UTC)

    def record_request(
        self, *, was_cached: bool, tokens_saved: int = 0, cost_saved: float = 0.0
    ) -> None:
        with self._lock:
            self._total += 1
            if was_cached:
                self._cached += 1
                self._tokens_saved += tokens_saved
                self._cost_saved += cost_saved
            self._updated = datetime.now(UTC)

    def record(self, info: CacheInfo) -> None:
        self.record_request(
            was_cached=info.was_cached,
            tokens_saved=info.tokens_saved,
            cost_saved=info.cost_saved,
        )

    def metrics(self) -> CacheMetrics:
        with self._lock:
            return CacheMetrics(
                total_requests=self._total,
                cached_requests=self._cached,
                total_tokens_saved=self._tokens_saved,
                total_cost_saved=self._cost_saved,
                last_updated=self._updated,
            )

    def reset(self) -> None:
        with self._lock:
            self._total = 0
            self._cached = 0
            self._tokens_saved = 0
            self._cost_saved = 0.0
            self._updated = datetime.now(UTC)

    def formatted(self) -> str:
        snapshot = self.metrics()
        return (
            "Cache Performance:\n"
            f"  - Total Requests: {snapshot.total_requests}\n"
            f"  - Cached Requests: {snapshot.cached_requests}\n"
            f"  - Cache Hit Rate: {snapshot.cache_hit_rate * 100:.1f}%\n"
            f"  - Tokens Saved: {snapshot.total_tokens_saved:,}\n"
            f"  - Cost Saved: ${snapshot.total_cost_saved:.4f}"
        )

    def __repr__(self) -> str:
        return f"CacheMonitor(requests={self._total}, cached={self._cached})"
