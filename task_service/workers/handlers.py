"""Handlers for the two job kinds."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from itertools import batched
import logging
from typing import TYPE_CHECKING, Any, Protocol
from uuid import UUID

from pydantic import BaseModel, Field

from task_service.features.tasks.models import TaskStatus

if TYPE_CHECKING:
    from task_service.features.tasks.models import Task
    from task_service.features.tasks.service import TaskService
    from task_service.infra.tasks.jobs import Job

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class StatusUpdatePayload(BaseModel):
    task_id: UUID
    status: TaskStatus


class OverdueNotificationPayload(BaseModel):
    # Ids stay strings so one malformed id fails alone instead of the whole job
    task_ids: list[str] = Field(default_factory=list)
    batch_size: int = Field(default=100, ge=1)
    checked_at: datetime | None = None


class StatusUpdateHandler:
    """Apply a status carried by a ``task-status-update`` job.

    Reapplying the same status is harmless, so redelivery is safe. A
    malformed payload or a missing task is terminal; anything else is left
    for the processor to classify as retryable.
    """

    def __init__(self, service: TaskService) -> None:
        self._service = service

    async def handle(self, job: Job) -> dict[str, Any]:
        payload = StatusUpdatePayload.model_validate(job.payload)
        await self._service.update_status(payload.task_id, payload.status)
        return {
            "success": True,
            "task_id": str(payload.task_id),
            "new_status": str(payload.status),
            "processed_at": _now_iso(),
        }


class OverdueNotifier(Protocol):
    """Delivers the notification for one overdue task."""

    async def notify(self, task: Task) -> None: ...


class LoggingOverdueNotifier:
    """Emit one structured log record per overdue task."""

    def __init__(self, logger_name: str = "task_service.overdue") -> None:
        self._logger = logging.getLogger(logger_name)

    async def notify(self, task: Task) -> None:
        self._logger.info(
            "Task is overdue",
            extra={
                "task_id": str(task.id),
                "user_id": str(task.user_id),
                "status": str(task.status),
                "priority": str(task.priority),
                "due_date": task.due_date.isoformat() if task.due_date else None,
            },
        )


class OverdueNotificationHandler:
    """Notify owners of overdue tasks listed in an ``overdue-tasks-notification`` job.

    Ids are processed in sub-batches of ``batch_size``; ids within a
    sub-batch run concurrently. A failure on one id is recorded and never
    aborts the others.
    """

    def __init__(self, service: TaskService, notifier: OverdueNotifier) -> None:
        self._service = service
        self._notifier = notifier

    async def _process_one(self, raw_id: str) -> None:
        task = await self._service.notify_overdue(UUID(raw_id))
        await self._notifier.notify(task)

    async def handle(self, job: Job) -> dict[str, Any]:
        payload = OverdueNotificationPayload.model_validate(job.payload)
        total = len(payload.task_ids)

        if not total:
            logger.warning("Overdue notification job without task ids", extra={"job_id": job.id})
            return {
                "success": True,
                "total": 0,
                "processed": 0,
                "failed": 0,
                "errors": [],
                "processed_at": _now_iso(),
            }

        processed = 0
        errors: list[dict[str, str]] = []
        for chunk in batched(payload.task_ids, payload.batch_size):
            outcomes = await asyncio.gather(
                *(self._process_one(raw_id) for raw_id in chunk),
                return_exceptions=True,
            )
            for raw_id, outcome in zip(chunk, outcomes, strict=True):
                if isinstance(outcome, BaseException):
                    if not isinstance(outcome, Exception):
                        raise outcome
                    errors.append({"task_id": raw_id, "error": str(outcome) or type(outcome).__name__})
                else:
                    processed += 1

        log = logger.warning if errors else logger.info
        log(
            "Overdue notifications processed",
            extra={"job_id": job.id, "total": total, "processed": processed, "failed": len(errors)},
        )
        return {
            "success": not errors,
            "total": total,
            "processed": processed,
            "failed": len(errors),
            "errors": errors,
            "processed_at": _now_iso(),
        }
