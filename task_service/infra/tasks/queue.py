"""Producer-side job queue.

``JobQueue`` is the narrow interface the service layer and the overdue
scanner depend on. ``TaskiqJobQueue`` implements it by kicking the single
``process_job`` taskiq task by name, so producers never import worker code.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Protocol

import aio_pika
from taskiq.kicker import AsyncKicker

from task_service.infra.metrics.prometheus import jobs_enqueued_total
from task_service.infra.tasks.jobs import PROCESS_JOB_TASK_NAME, JobOptions, JobRequest

if TYPE_CHECKING:
    from collections.abc import Sequence

    from taskiq import AsyncBroker

    from task_service.core.settings.rabbit import RabbitSettings
    from task_service.core.settings.tasks import TaskSettings

logger = logging.getLogger(__name__)


class JobQueue(Protocol):
    """Where producers submit jobs."""

    async def enqueue(
        self,
        name: str,
        payload: dict[str, Any],
        options: JobOptions | None = None,
    ) -> str: ...

    async def enqueue_bulk(self, jobs: Sequence[JobRequest]) -> list[str]: ...

    async def pending_count(self) -> int: ...


class TaskiqJobQueue:
    """Job queue backed by a taskiq broker.

    Every call is bounded by ``enqueue_timeout_seconds``. Errors propagate
    to the caller, which decides whether they are fatal.
    """

    def __init__(
        self,
        broker: AsyncBroker,
        task_settings: TaskSettings,
        rabbit_settings: RabbitSettings | None = None,
        *,
        task_name: str = PROCESS_JOB_TASK_NAME,
    ) -> None:
        self._broker = broker
        self._rabbit = rabbit_settings
        self._task_name = task_name
        self._timeout = task_settings.enqueue_timeout_seconds
        self._default_options = JobOptions.from_settings(task_settings)
        self._queue_name = (
            rabbit_settings.get_prefixed_queue(task_settings.queue_name)
            if rabbit_settings is not None
            else task_settings.queue_name
        )

    async def _kick(self, name: str, payload: dict[str, Any], options: JobOptions | None) -> str:
        opts = options or self._default_options
        kicker = AsyncKicker(task_name=self._task_name, broker=self._broker, labels=opts.labels())
        try:
            handle = await kicker.kiq(name=name, payload=payload)
        except Exception:
            jobs_enqueued_total.labels(job_name=name, result="error").inc()
            raise
        jobs_enqueued_total.labels(job_name=name, result="ok").inc()
        return handle.task_id

    async def enqueue(
        self,
        name: str,
        payload: dict[str, Any],
        options: JobOptions | None = None,
    ) -> str:
        """Submit one job and return its id."""
        async with asyncio.timeout(self._timeout):
            job_id = await self._kick(name, payload, options)
        logger.debug("Job enqueued", extra={"job_name": name, "job_id": job_id})
        return job_id

    async def enqueue_bulk(self, jobs: Sequence[JobRequest]) -> list[str]:
        """Submit several jobs as one operation.

        The call fails as a whole if any submission fails; jobs already
        published before the failure stay published, so callers falling
        back to per-job submission may deliver some jobs twice.
        """
        if not jobs:
            return []
        async with asyncio.timeout(self._timeout):
            job_ids = await asyncio.gather(
                *(self._kick(job.name, job.payload, job.options) for job in jobs)
            )
        logger.debug("Jobs enqueued in bulk", extra={"count": len(job_ids)})
        return list(job_ids)

    async def pending_count(self) -> int:
        """Messages waiting in the job queue (0 without a RabbitMQ transport)."""
        if self._rabbit is None or not self._rabbit.is_configured:
            return 0
        async with asyncio.timeout(self._timeout):
            connection = await aio_pika.connect(self._rabbit.url)
            async with connection:
                channel = await connection.channel()
                queue = await channel.declare_queue(self._queue_name, passive=True)
                return int(queue.declaration_result.message_count or 0)
