from __future__ import annotations

from ..metrics.registry import (
    KV_BATCH_FLUSH_LATENCY_SECONDS,
    KV_BATCH_FLUSH_TOTAL,
    KV_BATCH_SIZE,
    KV_SCAN_LATENCY_SECONDS,
    KV_SCAN_TOTAL,
)
from ..status import Status


def observe_flush(status: Status, size: int, latency_s: float) -> None:
    """Record one batch flush: verdict, number of operations, and latency."""
    KV_BATCH_FLUSH_TOTAL.labels(status=status.value).inc()
    KV_BATCH_SIZE.observe(size)
    KV_BATCH_FLUSH_LATENCY_SECONDS.observe(latency_s)


def observe_scan(status: Status, latency_s: float) -> None:
    KV_SCAN_TOTAL.labels(status=status.value).inc()
    KV_SCAN_LATENCY_SECONDS.observe(latency_s)
