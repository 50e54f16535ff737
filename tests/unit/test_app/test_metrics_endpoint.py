"""Tests for GET /metrics."""

from __future__ import annotations

from httpx import ASGITransport, AsyncClient
from prometheus_client import CONTENT_TYPE_LATEST

from task_service.app.main import create_app
from task_service.infra.metrics.prometheus import jobs_enqueued_total


async def test_metrics_exposes_service_registry(counter_store) -> None:
    jobs_enqueued_total.labels(job_name="task-status-update", result="ok").inc()
    app = create_app(store=counter_store)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"] == CONTENT_TYPE_LATEST
    assert "no-cache" in response.headers["cache-control"]
    assert 'jobs_enqueued_total{job_name="task-status-update",result="ok"}' in response.text
    assert "counter_store_ready 1.0" in response.text
