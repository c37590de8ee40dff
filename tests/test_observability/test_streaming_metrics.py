"""Tests for completion_runtime.observability.streaming_metrics."""

from __future__ import annotations

import json
import logging

import pytest

from completion_runtime.observability.streaming_metrics import (
    PerformanceThresholds,
    StreamingMetrics,
    StreamingMonitor,
    validate_performance,
)
from tests.conftest import FakeClock


@pytest.fixture()
def monitor(clock: FakeClock) -> StreamingMonitor:
    return StreamingMonitor(clock=clock)


class TestStreamingMonitor:
    """Per-message counters and timing."""

    def test_full_stream(self, monitor: StreamingMonitor, clock: FakeClock) -> None:
        monitor.start("m1")
        clock.advance(0.2)
        monitor.record_chunk("m1", 5)
        clock.advance(0.3)
        monitor.record_chunk("m1", 7)
        monitor.record_notification("m1")
        monitor.record_db_write("m1")
        clock.advance(0.5)

        metrics = monitor.finish("m1")

        assert metrics is not None
        assert metrics.total_chunks == 2
        assert metrics.total_characters == 12
        assert metrics.db_writes == 1
        assert metrics.notifications == 1
        assert metrics.time_to_first_chunk_ms == pytest.approx(200.0)
        assert metrics.total_stream_time_ms == pytest.approx(1000.0)
        assert metrics.chunks_per_second == pytest.approx(2.0)
        assert metrics.average_chunk_size == pytest.approx(6.0)
        assert metrics.chunks_per_write == pytest.approx(2.0)
        assert not monitor.is_tracking("m1")

    def test_unknown_message_ignored(self, monitor: StreamingMonitor) -> None:
        monitor.record_chunk("ghost", 3)
        monitor.record_db_write("ghost")
        monitor.record_notification("ghost")
        assert monitor.snapshot("ghost") is None
        assert monitor.finish("ghost") is None

    def test_snapshot_keeps_tracking(self, monitor: StreamingMonitor, clock: FakeClock) -> None:
        monitor.start("m1")
        monitor.record_chunk("m1", 4)
        clock.advance(1.0)
        snapshot = monitor.snapshot("m1")
        assert snapshot.total_chunks == 1
        assert monitor.is_tracking("m1")

    def test_no_chunks(self, monitor: StreamingMonitor) -> None:
        monitor.start("m1")
        metrics = monitor.finish("m1")
        assert metrics.time_to_first_chunk_ms is None
        assert metrics.chunks_per_second is None
        assert metrics.average_chunk_size == 0.0
        assert metrics.chunks_per_write is None

    def test_summary_logged_as_json(
        self, clock: FakeClock, caplog: pytest.LogCaptureFixture
    ) -> None:
        monitor = StreamingMonitor(clock=clock, log_level=logging.INFO)
        monitor.start("m1")
        monitor.record_chunk("m1", 3)
        with caplog.at_level(logging.INFO, logger="completion_runtime.observability.streaming_metrics"):
            monitor.finish("m1")
        record = json.loads(caplog.records[-1].getMessage())
        assert record["message_id"] == "m1"
        assert record["total_chunks"] == 1

    def test_clear(self, monitor: StreamingMonitor) -> None:
        monitor.start("a")
        monitor.start("b")
        assert "tracking=2" in repr(monitor)
        monitor.clear()
        assert not monitor.is_tracking("a")


class TestValidatePerformance:
    """Threshold warnings."""

    def test_healthy_stream(self) -> None:
        metrics = StreamingMetrics(
            message_id="m1", total_chunks=20, db_writes=2, time_to_first_chunk_ms=300.0
        )
        assert validate_performance(metrics) == []

    def test_slow_first_chunk(self) -> None:
        metrics = StreamingMetrics(message_id="m1", time_to_first_chunk_ms=1500.0)
        assert validate_performance(metrics) == ["Slow first chunk: 1500ms (target: <1000ms)"]

    def test_too_frequent_writes(self) -> None:
        metrics = StreamingMetrics(message_id="m1", total_chunks=6, db_writes=3)
        warnings = validate_performance(metrics)
        assert warnings == ["Too frequent DB writes: 2.0 chunks/write (target: >5)"]

    def test_custom_thresholds(self) -> None:
        metrics = StreamingMetrics(
            message_id="m1", total_chunks=6, db_writes=3, time_to_first_chunk_ms=1500.0
        )
        relaxed = PerformanceThresholds(time_to_first_chunk_ms=2000.0, min_chunks_per_write=1.0)
        assert validate_performance(metrics, relaxed) == []
