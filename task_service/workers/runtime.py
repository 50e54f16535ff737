"""Worker process wiring.

Everything a worker needs is built once at worker startup from settings and
kept on the broker state; handlers receive their collaborators explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING

from task_service.core.settings import (
    get_db_settings,
    get_rabbit_settings,
    get_task_settings,
)
from task_service.features.tasks.service import TaskService
from task_service.infra.database import close_database, create_engine, create_session_factory
from task_service.infra.tasks.jobs import (
    OVERDUE_NOTIFICATION_JOB,
    STATUS_UPDATE_JOB,
    JobOptions,
)
from task_service.infra.tasks.limiter import WorkerLimiter
from task_service.infra.tasks.queue import TaskiqJobQueue
from task_service.workers.handlers import (
    LoggingOverdueNotifier,
    OverdueNotificationHandler,
    OverdueNotifier,
    StatusUpdateHandler,
)
from task_service.workers.processor import JobProcessor

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine
    from taskiq import AsyncBroker

    from task_service.core.settings.tasks import TaskSettings

logger = logging.getLogger(__name__)


def build_processor(
    service: TaskService,
    settings: TaskSettings,
    *,
    notifier: OverdueNotifier | None = None,
    limiter: WorkerLimiter | None = None,
) -> JobProcessor:
    """Processor with both job handlers registered."""
    processor = JobProcessor(limiter or WorkerLimiter.from_settings(settings))
    processor.register(STATUS_UPDATE_JOB, StatusUpdateHandler(service))
    processor.register(
        OVERDUE_NOTIFICATION_JOB,
        OverdueNotificationHandler(service, notifier or LoggingOverdueNotifier()),
    )
    return processor


@dataclass(slots=True)
class WorkerRuntime:
    processor: JobProcessor
    max_attempts: int
    engine: AsyncEngine

    async def close(self) -> None:
        await close_database(self.engine)


def build_worker_runtime(broker: AsyncBroker) -> WorkerRuntime:
    task_settings = get_task_settings()
    engine = create_engine(get_db_settings())
    queue = TaskiqJobQueue(broker, task_settings, get_rabbit_settings())
    service = TaskService(
        create_session_factory(engine),
        queue,
        job_options=JobOptions.from_settings(task_settings),
    )
    processor = build_processor(service, task_settings)
    logger.info(
        "Worker runtime ready",
        extra={
            "jobs": processor.job_names,
            "concurrency": task_settings.worker_concurrency,
            "max_starts": task_settings.worker_max_starts,
            "window_seconds": task_settings.worker_window_seconds,
        },
    )
    return WorkerRuntime(processor=processor, max_attempts=task_settings.max_attempts, engine=engine)
