"""Tests for the status-update and overdue-notification handlers."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock
from uuid import uuid4

from pydantic import ValidationError
import pytest

from task_service.core.exceptions import NotFoundException
from task_service.core.settings import TaskSettings
from task_service.features.tasks.models import TaskStatus
from task_service.features.tasks.schemas import TaskCreate
from task_service.infra.tasks.jobs import (
    OVERDUE_NOTIFICATION_JOB,
    STATUS_UPDATE_JOB,
    Job,
    JobFailure,
)
from task_service.workers.handlers import (
    LoggingOverdueNotifier,
    OverdueNotificationHandler,
    StatusUpdateHandler,
)
from task_service.workers.runtime import build_processor


class RecordingNotifier:
    def __init__(self) -> None:
        self.notified: list[str] = []

    async def notify(self, task) -> None:
        self.notified.append(str(task.id))


async def make_task(task_service, owner, **fields):
    values = {"title": "Overdue report", "user_id": owner.id}
    values.update(fields)
    return await task_service.create(TaskCreate(**values))


# =============================================================================
# Status update
# =============================================================================


class TestStatusUpdateHandler:
    async def test_applies_status(self, task_service, owner, job_queue) -> None:
        task = await make_task(task_service, owner)
        job_queue.jobs.clear()
        handler = StatusUpdateHandler(task_service)

        result = await handler.handle(
            Job(id="j1", name=STATUS_UPDATE_JOB, payload={"task_id": str(task.id), "status": "COMPLETED"})
        )

        assert result["success"] is True
        assert result["task_id"] == str(task.id)
        assert result["new_status"] == "COMPLETED"
        assert "processed_at" in result
        assert (await task_service.get(task.id)).status is TaskStatus.COMPLETED
        # Applying a status never re-announces it
        assert job_queue.jobs == []

    async def test_redelivery_is_idempotent(self, task_service, owner) -> None:
        task = await make_task(task_service, owner)
        handler = StatusUpdateHandler(task_service)
        job = Job(id="j1", name=STATUS_UPDATE_JOB, payload={"task_id": str(task.id), "status": "IN_PROGRESS"})

        await handler.handle(job)
        await handler.handle(job)

        assert (await task_service.get(task.id)).status is TaskStatus.IN_PROGRESS

    async def test_invalid_payload_raises_validation_error(self, task_service) -> None:
        handler = StatusUpdateHandler(task_service)

        with pytest.raises(ValidationError):
            await handler.handle(Job(id="j1", name=STATUS_UPDATE_JOB, payload={"task_id": "x", "status": "DONE"}))

    async def test_missing_task(self, task_service) -> None:
        handler = StatusUpdateHandler(task_service)

        with pytest.raises(NotFoundException):
            await handler.handle(
                Job(id="j1", name=STATUS_UPDATE_JOB, payload={"task_id": str(uuid4()), "status": "COMPLETED"})
            )


# =============================================================================
# Overdue notification
# =============================================================================


class TestOverdueNotificationHandler:
    async def test_notifies_each_task(self, task_service, owner) -> None:
        due = datetime.now(UTC) - timedelta(days=1)
        tasks = [await make_task(task_service, owner, due_date=due) for _ in range(3)]
        notifier = RecordingNotifier()
        handler = OverdueNotificationHandler(task_service, notifier)

        result = await handler.handle(
            Job(
                id="j2",
                name=OVERDUE_NOTIFICATION_JOB,
                payload={"task_ids": [str(t.id) for t in tasks], "batch_size": 2, "checked_at": due.isoformat()},
            )
        )

        assert sorted(notifier.notified) == sorted(str(t.id) for t in tasks)
        assert result["success"] is True
        assert (result["total"], result["processed"], result["failed"]) == (3, 3, 0)
        assert result["errors"] == []

    async def test_one_bad_id_does_not_abort_the_batch(self, task_service, owner) -> None:
        task = await make_task(task_service, owner)
        missing = str(uuid4())
        notifier = RecordingNotifier()
        handler = OverdueNotificationHandler(task_service, notifier)

        result = await handler.handle(
            Job(
                id="j3",
                name=OVERDUE_NOTIFICATION_JOB,
                payload={"task_ids": [missing, "not-a-uuid", str(task.id)]},
            )
        )

        assert notifier.notified == [str(task.id)]
        assert result["success"] is False
        assert (result["total"], result["processed"], result["failed"]) == (3, 1, 2)
        assert [error["task_id"] for error in result["errors"]] == [missing, "not-a-uuid"]

    async def test_empty_job(self, task_service) -> None:
        handler = OverdueNotificationHandler(task_service, RecordingNotifier())

        result = await handler.handle(Job(id="j4", name=OVERDUE_NOTIFICATION_JOB, payload={}))

        assert result["success"] is True
        assert result["total"] == 0

    async def test_logging_notifier(self, task_service, owner, caplog) -> None:
        task = await make_task(task_service, owner, due_date=datetime.now(UTC) - timedelta(hours=2))
        loaded = await task_service.notify_overdue(task.id)

        with caplog.at_level("INFO", logger="task_service.overdue"):
            await LoggingOverdueNotifier().notify(loaded)

        record = next(r for r in caplog.records if r.getMessage() == "Task is overdue")
        assert record.task_id == str(task.id)


# =============================================================================
# Processor wiring
# =============================================================================


async def test_build_processor_registers_both_jobs(task_service, owner) -> None:
    processor = build_processor(task_service, TaskSettings())
    task = await make_task(task_service, owner)

    result = await processor.process(
        Job(id="j5", name=STATUS_UPDATE_JOB, payload={"task_id": str(task.id), "status": "COMPLETED"})
    )

    assert processor.job_names == [OVERDUE_NOTIFICATION_JOB, STATUS_UPDATE_JOB]
    assert result["new_status"] == "COMPLETED"


async def test_processor_marks_bad_status_payload_terminal(task_service) -> None:
    processor = build_processor(task_service, TaskSettings(), notifier=AsyncMock())

    with pytest.raises(JobFailure) as exc_info:
        await processor.process(Job(id="j6", name=STATUS_UPDATE_JOB, payload={"status": "COMPLETED"}))

    assert not exc_info.value.retryable
