"""Tests for application startup and shutdown wiring."""

from __future__ import annotations

from task_service.app.lifespan import lifespan
from task_service.app.main import create_app
from task_service.features.tasks.service import TaskService
from task_service.infra.cache import ConnectionState
from task_service.infra.tasks.queue import TaskiqJobQueue
from task_service.workers.overdue import OverdueScanner


async def test_lifespan_builds_and_releases_services(counter_store) -> None:
    app = create_app(store=counter_store)

    async with lifespan(app):
        assert isinstance(app.state.task_service, TaskService)
        assert isinstance(app.state.overdue_scanner, OverdueScanner)
        assert isinstance(app.state.job_queue, TaskiqJobQueue)
        # Scheduler disabled in the test environment
        assert app.state.scheduler is None
        assert counter_store.state is ConnectionState.READY

    assert counter_store.state is ConnectionState.CLOSED
