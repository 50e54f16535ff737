"""Task lifecycle coordination.

Writes go to the relational store inside a transaction; after a successful
commit a status-update job is submitted to the queue. The two stores are
never made atomic: persisted task state is authoritative and a failed
submission is logged and dropped (see ``_notify_after_commit``).
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from task_service.core.exceptions import ValidationException
from task_service.core.services.base import BaseService
from task_service.features.tasks.models import Task, TaskStatus, User
from task_service.features.tasks.repository import TaskRepository
from task_service.features.tasks.schemas import BatchResult, TaskFilters, TaskStats
from task_service.infra.tasks.jobs import STATUS_UPDATE_JOB, JobOptions, JobRequest

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from task_service.core.database import SearchResult
    from task_service.features.tasks.schemas import TaskCreate, TaskUpdate
    from task_service.infra.tasks.queue import JobQueue


class TaskService(BaseService):
    """Coordinates task writes with best-effort job notifications.

    Each public operation opens its own session from the injected factory,
    so one service instance can be shared by concurrent requests. There is
    no in-process locking; concurrent updates to one task are last-writer-
    wins at the database.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        queue: JobQueue,
        repository: TaskRepository | None = None,
        *,
        job_options: JobOptions | None = None,
    ) -> None:
        super().__init__()
        self._session_factory = session_factory
        self._queue = queue
        self._repository = repository or TaskRepository()
        self._job_options = job_options or JobOptions()

    # ──────────────────────────────────────────────────────────────
    # Writes
    # ──────────────────────────────────────────────────────────────

    async def create(self, payload: TaskCreate) -> Task:
        """Persist a task, then announce its initial status."""
        async with self._session_factory() as session, session.begin():
            if await session.get(User, payload.user_id) is None:
                raise ValidationException(
                    detail="Task owner does not exist",
                    extra={"field": "user_id", "value": str(payload.user_id)},
                )
            task = await self._repository.create(session, Task(**payload.model_dump()))
            task_id, status = task.id, task.status

        self.logger.info(
            "Task created",
            extra={"task_id": str(task_id), "status": str(status), "operation": "service.create"},
        )
        await self._notify_after_commit(self._status_job(task_id, status))
        return await self.get(task_id)

    async def update(self, task_id: UUID, payload: TaskUpdate) -> Task:
        """Apply the fields set on ``payload``.

        A status change is announced after commit. The returned task is a
        fresh reload with its owner, not the in-transaction instance.

        Raises:
            NotFoundException: If the task does not exist (nothing is written).
        """
        changes = payload.model_dump(exclude_unset=True)
        async with self._session_factory() as session, session.begin():
            task = await self._repository.get_or_raise(session, task_id)
            previous_status = task.status
            for field, value in changes.items():
                setattr(task, field, value)
            await session.flush()
            new_status = task.status

        status_changed = new_status != previous_status
        self.logger.info(
            "Task updated",
            extra={
                "task_id": str(task_id),
                "fields": sorted(changes),
                "status_changed": status_changed,
                "operation": "service.update",
            },
        )
        if status_changed:
            await self._notify_after_commit(self._status_job(task_id, new_status))
        return await self.get(task_id)

    async def delete(self, task_id: UUID) -> None:
        async with self._session_factory() as session, session.begin():
            task = await self._repository.get_or_raise(session, task_id)
            await self._repository.delete(session, task)

    async def batch_complete(self, ids: Iterable[UUID]) -> BatchResult:
        """Complete many tasks with one UPDATE, then announce each completed task.

        Only rows the UPDATE touched get a job. ``failed`` counts requested
        ids that were not affected, including ids that do not exist.
        """
        ids_list = list(ids)
        async with self._session_factory() as session, session.begin():
            completed = await self._repository.bulk_complete(session, ids_list)

        await self._notify_after_commit(
            *(self._status_job(task_id, TaskStatus.COMPLETED) for task_id in completed),
            bulk=True,
        )
        return BatchResult(success=len(completed), failed=len(ids_list) - len(completed))

    async def batch_delete(self, ids: Iterable[UUID]) -> BatchResult:
        ids_list = list(ids)
        async with self._session_factory() as session, session.begin():
            affected = await self._repository.delete_many(session, ids_list)

        self.logger.info(
            "Tasks deleted in bulk",
            extra={"requested": len(ids_list), "deleted": affected, "operation": "service.batch_delete"},
        )
        return BatchResult(success=affected, failed=len(ids_list) - affected)

    async def update_status(self, task_id: UUID, status: TaskStatus) -> Task:
        """Set a task's status on behalf of the job processor.

        Never enqueues: re-announcing from the consumer would loop.

        Raises:
            NotFoundException: If the task does not exist.
        """
        async with self._session_factory() as session, session.begin():
            task = await self._repository.set_status(session, task_id, status)
            if task is None:
                raise self._repository.not_found(task_id)

        self._lazy.debug(lambda: f"service.update_status({task_id}) -> {status}")
        return task

    # ──────────────────────────────────────────────────────────────
    # Reads
    # ──────────────────────────────────────────────────────────────

    async def get(self, task_id: UUID) -> Task:
        async with self._session_factory() as session:
            return await self._repository.get_with_owner_or_raise(session, task_id)

    async def list(self, filters: TaskFilters) -> SearchResult[Task]:
        async with self._session_factory() as session:
            result = await self._repository.search_tasks(session, filters)

        self._lazy.debug(
            lambda: f"service.list(offset={filters.offset}, limit={filters.limit}) -> {len(result.items)}/{result.total}"
        )
        return result

    async def notify_overdue(self, task_id: UUID) -> Task:
        """Load an overdue task with its owner for notification.

        Raises:
            NotFoundException: If the task no longer exists.
        """
        task = await self.get(task_id)
        self._lazy.debug(lambda: f"service.notify_overdue({task_id}) due {task.due_date}")
        return task

    async def stats(self) -> TaskStats:
        async with self._session_factory() as session:
            counts = await self._repository.stats(session, now=datetime.now(UTC))
        return TaskStats(**counts)

    # ──────────────────────────────────────────────────────────────
    # Notification boundary
    # ──────────────────────────────────────────────────────────────

    def _status_job(self, task_id: UUID, status: TaskStatus) -> JobRequest:
        return JobRequest(
            name=STATUS_UPDATE_JOB,
            payload={"task_id": str(task_id), "status": str(status)},
            options=self._job_options,
        )

    async def _notify_after_commit(self, *jobs: JobRequest, bulk: bool = False) -> None:
        """Submit jobs for already-committed writes, best effort.

        Must only be called after the transaction committed. A failure here
        is logged and swallowed: the write stands and the caller still gets
        a success response. The lost notification is not retried.
        """
        if not jobs:
            return
        try:
            if bulk:
                await self._queue.enqueue_bulk(list(jobs))
            else:
                for job in jobs:
                    await self._queue.enqueue(job.name, job.payload, job.options)
        except Exception as exc:
            extra: dict[str, Any] = {
                "job_name": jobs[0].name,
                "jobs": len(jobs),
                "error": str(exc),
                "operation": "service.notify_after_commit",
            }
            self.logger.error(
                "Post-commit job submission failed; committed state is unaffected",
                extra=extra,
                exc_info=True,
            )


__all__ = ["TaskService"]
