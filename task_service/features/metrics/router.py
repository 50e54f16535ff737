"""Prometheus metrics endpoint for observability.

Endpoints:
    GET /metrics - Prometheus scrape endpoint

Metrics Exposed:
    Job pipeline:
        - job_executions_total - Executions by job name and outcome
        - job_duration_seconds - Execution time histogram
        - job_retries_total / jobs_abandoned_total - Redelivery decisions
        - jobs_in_flight - Worker slots in use
        - jobs_enqueued_total - Queue submissions by result

    Overdue scanner:
        - overdue_tasks_found_total
        - overdue_scan_duration_seconds

    Admission control and counter store:
        - rate_limit_rejections_total - 429s by policy
        - rate_limit_fail_open_total - Requests admitted on limiter failure
        - counter_store_errors_total - Degraded operations by name
        - counter_store_ready - Connection state gauge
"""

from __future__ import annotations

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from task_service.infra.metrics.prometheus import REGISTRY

router = APIRouter(tags=["observability"])


@router.get("/metrics")
async def metrics() -> Response:
    data = generate_latest(REGISTRY)
    return Response(
        content=data,
        media_type=CONTENT_TYPE_LATEST,
        headers={"Cache-Control": "no-cache, no-store, must-revalidate"},
    )
