from __future__ import annotations

from prometheus_client import Counter, Histogram

KV_BATCH_FLUSH_TOTAL = Counter(
    "kvbench_batch_flush_total",
    "Number of batch flushes, by verdict",
    ["status"],
)

KV_BATCH_FLUSH_LATENCY_SECONDS = Histogram(
    "kvbench_batch_flush_latency_seconds",
    "Wall time of one batch transaction, including commit",
)

KV_BATCH_SIZE = Histogram(
    "kvbench_batch_size",
    "Number of operations executed per flush",
    buckets=(1, 2, 5, 10, 20, 50, 100, 200, 500, 1000),
)

KV_SCAN_TOTAL = Counter(
    "kvbench_scan_total",
    "Number of range scans, by status",
    ["status"],
)

KV_SCAN_LATENCY_SECONDS = Histogram(
    "kvbench_scan_latency_seconds",
    "Wall time of one range scan",
)
