"""Prometheus metrics for the job pipeline, rate limiter and counter store."""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

# Custom registry so tests and multiple app instances do not collide with
# the default global registry
REGISTRY = CollectorRegistry()

# Covers execution times from 1ms to 60s
JOB_LATENCY_BUCKETS = (
    0.001,
    0.005,
    0.01,
    0.025,
    0.05,
    0.1,
    0.25,
    0.5,
    1.0,
    2.5,
    5.0,
    10.0,
    30.0,
    60.0,
)

# ──────────────────────────────────────────────────────────────
# Job processor
# ──────────────────────────────────────────────────────────────

job_executions_total = Counter(
    "job_executions_total",
    "Total number of job executions by job name and outcome "
    "(success, terminal, retryable).",
    ["job_name", "outcome"],
    registry=REGISTRY,
)

job_duration_seconds = Histogram(
    "job_duration_seconds",
    "Job execution duration in seconds",
    ["job_name"],
    buckets=JOB_LATENCY_BUCKETS,
    registry=REGISTRY,
)

job_retries_total = Counter(
    "job_retries_total",
    "Total number of jobs re-kicked after a retryable failure",
    ["task_name"],
    registry=REGISTRY,
)

jobs_abandoned_total = Counter(
    "jobs_abandoned_total",
    "Total number of jobs abandoned (terminal failure or attempts exhausted)",
    ["task_name", "reason"],
    registry=REGISTRY,
)

jobs_in_flight = Gauge(
    "jobs_in_flight",
    "Job executions currently holding a worker slot",
    registry=REGISTRY,
)

jobs_enqueued_total = Counter(
    "jobs_enqueued_total",
    "Total number of jobs submitted to the queue by job name and result",
    ["job_name", "result"],
    registry=REGISTRY,
)

# ──────────────────────────────────────────────────────────────
# Overdue scanner
# ──────────────────────────────────────────────────────────────

overdue_tasks_found_total = Counter(
    "overdue_tasks_found_total",
    "Overdue tasks discovered by the scanner",
    registry=REGISTRY,
)

overdue_scan_duration_seconds = Histogram(
    "overdue_scan_duration_seconds",
    "Overdue scan duration in seconds",
    buckets=JOB_LATENCY_BUCKETS,
    registry=REGISTRY,
)

# ──────────────────────────────────────────────────────────────
# Rate limiting and counter store
# ──────────────────────────────────────────────────────────────

rate_limit_rejections_total = Counter(
    "rate_limit_rejections_total",
    "Total number of requests rejected due to rate limiting, by policy name.",
    ["policy"],
    registry=REGISTRY,
)

rate_limit_fail_open_total = Counter(
    "rate_limit_fail_open_total",
    "Requests admitted because the rate limit check itself failed",
    registry=REGISTRY,
)

counter_store_errors_total = Counter(
    "counter_store_errors_total",
    "Counter store operations that failed and were degraded to a fallback",
    ["operation"],
    registry=REGISTRY,
)

counter_store_ready = Gauge(
    "counter_store_ready",
    "1 when the counter store connection is ready, 0 otherwise",
    registry=REGISTRY,
)
