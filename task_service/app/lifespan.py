"""Startup and shutdown of everything the API process talks to.

Components start in dependency order: database, counter store, job
transport with the services built on it, then the overdue scan scheduler.
Each one registers its own teardown on an exit stack as soon as it is up,
so shutdown runs in reverse order and a failure half way through startup
still releases whatever had already started.
"""

from __future__ import annotations

from contextlib import AsyncExitStack, asynccontextmanager
import logging
from typing import TYPE_CHECKING

from task_service.core.settings import (
    get_app_settings,
    get_db_settings,
    get_logging_settings,
    get_rabbit_settings,
    get_task_settings,
)
from task_service.features.tasks.service import TaskService
from task_service.infra.database import (
    close_database,
    create_engine,
    create_session_factory,
    init_database,
)
from task_service.infra.logging.config import setup_logging
from task_service.infra.tasks.jobs import JobOptions
from task_service.infra.tasks.queue import TaskiqJobQueue
from task_service.infra.tasks.scheduler import (
    create_scheduler,
    schedule_overdue_scan,
    start_scheduler,
    stop_scheduler,
)
from task_service.workers.overdue import OverdueScanner

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import FastAPI

logger = logging.getLogger(__name__)


async def _open_database(app: FastAPI, stack: AsyncExitStack) -> None:
    engine = create_engine(get_db_settings())
    stack.push_async_callback(close_database, engine)
    await init_database(engine)
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)


async def _open_counter_store(app: FastAPI, stack: AsyncExitStack) -> None:
    # create_app owns the store object so the rate limit middleware can share it
    store = app.state.counter_store
    stack.push_async_callback(store.disconnect)
    await store.connect()


async def _open_job_pipeline(app: FastAPI, stack: AsyncExitStack) -> None:
    # Importing the broker module builds the broker from settings
    from task_service.infra.tasks.broker import broker, start_broker, stop_broker

    task_settings = get_task_settings()
    rabbit_settings = get_rabbit_settings()

    await start_broker()
    stack.push_async_callback(stop_broker)

    queue = TaskiqJobQueue(broker, task_settings, rabbit_settings if rabbit_settings.is_configured else None)
    app.state.job_queue = queue
    app.state.task_service = TaskService(
        app.state.session_factory,
        queue,
        job_options=JobOptions.from_settings(task_settings),
    )
    app.state.overdue_scanner = OverdueScanner.from_settings(
        task_settings,
        app.state.session_factory,
        queue,
        store=app.state.counter_store,
    )


async def _open_scheduler(app: FastAPI, stack: AsyncExitStack) -> None:
    task_settings = get_task_settings()
    app.state.scheduler = None
    if not task_settings.scheduler_enabled:
        logger.info("Overdue scan scheduler disabled")
        return

    scheduler = create_scheduler()
    schedule_overdue_scan(scheduler, app.state.overdue_scanner.scan, task_settings)
    await start_scheduler(scheduler)
    stack.push_async_callback(stop_scheduler, scheduler)
    app.state.scheduler = scheduler


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_app_settings()
    setup_logging(log_settings=get_logging_settings(), force=True)
    logger.info(
        "Starting %s %s",
        settings.service_name,
        settings.version,
        extra={"environment": settings.environment},
    )

    async with AsyncExitStack() as stack:
        await _open_database(app, stack)
        await _open_counter_store(app, stack)
        await _open_job_pipeline(app, stack)
        await _open_scheduler(app, stack)

        logger.info(
            "Startup complete",
            extra={
                "counter_store": str(app.state.counter_store.state),
                "rabbitmq": get_rabbit_settings().is_configured,
                "scheduler": app.state.scheduler is not None,
            },
        )
        yield
        logger.info("Shutting down")

    logger.info("Shutdown complete")
