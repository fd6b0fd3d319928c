import time
from contextlib import contextmanager

from prometheus_client import Counter, Histogram

verifications_total = Counter(
    "verifications_total",
    "Completed verifications by domain and badge",
    ["domain", "badge"],
)
verification_duration_seconds = Histogram(
    "verification_duration_seconds",
    "End-to-end verification time",
    ["domain"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30, 60, 120, 300),
)
verification_stage_duration_seconds = Histogram(
    "verification_stage_duration_seconds",
    "Verification stage duration seconds",
    ["stage"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30, 60, 120),
)
external_calls_total = Counter(
    "external_calls_total",
    "External data source calls by provider and status",
    ["provider", "status"],
)
cross_cutting_timeouts_total = Counter(
    "cross_cutting_timeouts_total",
    "Cross-cutting batches that hit the global timeout",
)


@contextmanager
def stage_timer(stage: str):
    start = time.perf_counter()
    try:
        yield
    finally:
        verification_stage_duration_seconds.labels(stage=stage).observe(time.perf_counter() - start)
