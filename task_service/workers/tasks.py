"""Taskiq task carrying every job.

Run worker:
    taskiq worker task_service.infra.tasks.broker:broker
"""

from __future__ import annotations

import logging
from typing import Any

from taskiq import Context, TaskiqDepends, TaskiqEvents, TaskiqState

from task_service.infra.tasks.broker import broker
from task_service.infra.tasks.jobs import PROCESS_JOB_TASK_NAME, Job
from task_service.workers.runtime import WorkerRuntime, build_worker_runtime

logger = logging.getLogger(__name__)


@broker.on_event(TaskiqEvents.WORKER_STARTUP)
async def worker_startup(state: TaskiqState) -> None:
    state.runtime = build_worker_runtime(broker)


@broker.on_event(TaskiqEvents.WORKER_SHUTDOWN)
async def worker_shutdown(state: TaskiqState) -> None:
    runtime: WorkerRuntime | None = getattr(state, "runtime", None)
    if runtime is not None:
        await runtime.close()


def job_from_context(name: str, payload: dict[str, Any], context: Context, default_max_attempts: int) -> Job:
    labels = context.message.labels
    return Job(
        id=context.message.task_id,
        name=name,
        payload=payload,
        attempt=int(labels.get("_retries", 0)) + 1,
        max_attempts=int(labels.get("max_retries", default_max_attempts)),
    )


@broker.task(task_name=PROCESS_JOB_TASK_NAME)
async def process_job(
    name: str,
    payload: dict[str, Any],
    context: Context = TaskiqDepends(),  # noqa: B008
) -> dict[str, Any]:
    """Route one job to its handler.

    Failures are raised as ``JobFailure``; the retry middleware reads the
    failure kind to decide on redelivery.
    """
    runtime: WorkerRuntime = context.state.runtime
    job = job_from_context(name, payload, context, runtime.max_attempts)
    return await runtime.processor.process(job)
