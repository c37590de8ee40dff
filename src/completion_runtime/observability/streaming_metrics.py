"""Per-message streaming performance tracking."""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)


class StreamingMetrics(BaseModel):
    """Summary of one finished stream.

    Parameters:
        message_id: The message the stream produced.
        total_chunks: Content fragments received.
        total_characters: Characters across those fragments.
        db_writes: Persistence flushes performed.
        notifications: UI notifier calls made.
        time_to_first_chunk_ms: Delay from start to the first fragment.
        total_stream_time_ms: Delay from start to finish.
        chunks_per_second: Fragment throughput.
    """

    model_config = ConfigDict(frozen=True)

    message_id: str
    total_chunks: int = 0
    total_characters: int = 0
    db_writes: int = 0
    notifications: int = 0
    time_to_first_chunk_ms: float | None = None
    total_stream_time_ms: float = 0.0
    chunks_per_second: float | None = None

    @property
    def average_chunk_size(self) -> float:
        if not self.total_chunks:
            return 0.0
        return self.total_characters / self.total_chunks

    @property
    def chunks_per_write(self) -> float | None:
        if not self.db_writes:
            return None
        return self.total_chunks / self.db_writes


@dataclass(slots=True)
class _Tracking:
    start: float
    first_chunk: float | None = None
    last_chunk: float | None = None
    chunks: int = 0
    characters: int = 0
    db_writes: int = 0
    notifications: int = 0


class StreamingMonitor:
    """Collects streaming metrics keyed by message id.

    Counters for an unknown message id are ignored, so the monitor can be
    shared by components that do not know whether tracking was started.

    Parameters:
        clock: Monotonic clock in seconds (injectable for tests).
        log_level: Level used when logging finished-stream summaries.
    """

    __slots__ = ("_clock", "_log_level", "_tracking")

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.monotonic,
        log_level: int = logging.DEBUG,
    ) -> None:
        self._clock = clock
        self._log_level = log_level
        self._tracking: dict[str, _Tracking] = {}

    def start(self, message_id: str) -> None:
        self._tracking[message_id] = _Tracking(start=self._clock())

    def is_tracking(self, message_id: str) -> bool:
        return message_id in self._tracking

    def record_chunk(self, message_id: str, size: int) -> None:
        tracking = self._tracking.get(message_id)
        if tracking is None:
            return
        now = self._clock()
        if tracking.first_chunk is None:
            tracking.first_chunk = now
        tracking.last_chunk = now
        tracking.chunks += 1
        tracking.characters += size

    def record_db_write(self, message_id: str) -> None:
        tracking = self._tracking.get(message_id)
        if tracking is not None:
            tracking.db_writes += 1

    def record_notification(self, message_id: str) -> None:
        tracking = self._tracking.get(message_id)
        if tracking is not None:
            tracking.notifications += 1

    def snapshot(self, message_id: str) -> StreamingMetrics | None:
        """Metrics so far for a stream that is still running."""
        tracking = self._tracking.get(message_id)
        if tracking is None:
            return None
        return self._build(message_id, tracking, self._clock())

    def finish(self, message_id: str) -> StreamingMetrics | None:
        """Stop tracking ``message_id`` and return its summary."""
        tracking = self._tracking.pop(message_id, None)
        if tracking is None:
            return None
        metrics = self._build(message_id, tracking, self._clock())
        logger.log(self._log_level, json.dumps(metrics.model_dump(), default=str))
        return metrics

    def clear(self) -> None:
        self._tracking.clear()

    @staticmethod
    def _build(message_id: str, tracking: _Tracking, now: float) -> StreamingMetrics:
        total_ms = (now - tracking.start) * 1000
        first_ms = None
        if tracking.first_chunk is not None:
            first_ms = (tracking.first_chunk - tracking.start) * 1000
        rate = tracking.chunks / (total_ms / 1000) if total_ms > 0 else None
        return StreamingMetrics(
            message_id=message_id,
            total_chunks=tracking.chunks,
            total_characters=tracking.characters,
            db_writes=tracking.db_writes,
            notifications=tracking.notifications,
            time_to_first_chunk_ms=first_ms,
            total_stream_time_ms=total_ms,
            chunks_per_second=rate,
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(tracking={len(self._tracking)})"


class PerformanceThresholds(BaseModel):
    """Targets a healthy stream is expected to meet."""

    model_config = ConfigDict(frozen=True)

    time_to_first_chunk_ms: float = 1000.0
    min_chunks_per_write: float = 5.0


def validate_performance(
    metrics: StreamingMetrics, thresholds: PerformanceThresholds | None = None
) -> list[str]:
    """Return human-readable warnings for every threshold ``metrics`` misses."""
    limits = thresholds or PerformanceThresholds()
    warnings: list[str] = []

    first = metrics.time_to_first_chunk_ms
    if first is not None and first > limits.time_to_first_chunk_ms:
        warnings.append(
            f"Slow first chunk: {first:.0f}ms (target: <{limits.time_to_first_chunk_ms:.0f}ms)"
        )

    per_write = metrics.chunks_per_write
    if per_write is not None and per_write < limits.min_chunks_per_write:
        warnings.append(
            f"Too frequent DB writes: {per_write:.1f} chunks/write "
            f"(target: >{limits.min_chunks_per_write:.0f})"
        )
    return warnings
