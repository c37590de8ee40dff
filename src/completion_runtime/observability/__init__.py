"""Observability module: streaming performance and prompt-cache tracking."""

from .cache_monitor import CacheInfo, CacheMetrics, CacheMonitor, extract_cache_info
from .streaming_metrics import (
    PerformanceThresholds,
    StreamingMetrics,
    StreamingMonitor,
    validate_performance,
)

__all__ = [
    "CacheInfo",
    "CacheMetrics",
    "CacheMonitor",
    "PerformanceThresholds",
    "StreamingMetrics",
    "StreamingMonitor",
    "extract_cache_info",
    "validate_performance",
]
