"""Repository for the tasks feature."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import Select, case, func, or_, select, update
from sqlalchemy.orm import selectinload

from task_service.core.database import BaseRepository, SearchResult
from task_service.features.tasks.models import Task, TaskPriority, TaskStatus
from task_service.features.tasks.schemas import TaskFilters, TaskSortField

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

_PRIORITY_RANK = case(
    {TaskPriority.LOW: 0, TaskPriority.MEDIUM: 1, TaskPriority.HIGH: 2},
    value=Task.priority,
)


class TaskRepository(BaseRepository[Task]):
    """Task queries and bulk writes on top of the generic key lookups.

    The owner relationship is never lazy-loaded; methods that return tasks
    for serialisation load it explicitly.
    """

    not_found_type = "task-not-found"

    def __init__(self) -> None:
        super().__init__(Task)

    async def get_with_owner(self, session: AsyncSession, task_id: UUID) -> Task | None:
        """Load a task and its owner, bypassing any stale identity-map copy."""
        stmt = (
            select(Task)
            .where(Task.id == task_id)
            .options(selectinload(Task.owner))
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        task = result.scalar_one_or_none()

        self._lazy.debug(
            lambda: f"db.get_with_owner: Task({task_id}) -> {'found' if task else 'not found'}"
        )
        return task

    async def get_with_owner_or_raise(self, session: AsyncSession, task_id: UUID) -> Task:
        task = await self.get_with_owner(session, task_id)
        if task is None:
            raise self.not_found(task_id)
        return task

    async def set_status(
        self,
        session: AsyncSession,
        task_id: UUID,
        status: TaskStatus,
    ) -> Task | None:
        """Set a task's status; None when the task does not exist."""
        task = await self.get(session, task_id)
        if task is None:
            return None
        task.status = status
        await session.flush()
        return task

    async def bulk_complete(self, session: AsyncSession, ids: Iterable[UUID]) -> list[UUID]:
        """Mark tasks COMPLETED in one statement.

        Returns:
            Ids of the rows that were updated, in request order. Unknown ids
            are left out.
        """
        ids_list = list(ids)
        if not ids_list:
            return []
        stmt = (
            update(Task)
            .where(Task.id.in_(ids_list))
            .values(status=TaskStatus.COMPLETED, updated_at=datetime.now(UTC))
            .returning(Task.id)
            .execution_options(synchronize_session=False)
        )
        updated = set((await session.execute(stmt)).scalars().all())
        await session.flush()
        affected = [task_id for task_id in dict.fromkeys(ids_list) if task_id in updated]

        self._logger.info(
            "Bulk complete executed",
            extra={
                "entity": "Task",
                "requested": len(ids_list),
                "updated": len(affected),
                "operation": "db.bulk_complete",
            },
        )
        return affected

    async def find_overdue_ids(
        self,
        session: AsyncSession,
        *,
        now: datetime,
        limit: int,
    ) -> list[UUID]:
        """Ids of overdue, incomplete tasks, oldest due date first."""
        stmt = (
            select(Task.id)
            .where(
                Task.due_date.is_not(None),
                Task.due_date < now,
                Task.status != TaskStatus.COMPLETED,
            )
            .order_by(Task.due_date.asc())
            .limit(limit)
        )
        result = await session.execute(stmt)
        ids = list(result.scalars().all())

        self._lazy.debug(lambda: f"db.find_overdue_ids(limit={limit}) -> {len(ids)} ids")
        return ids

    def build_search(self, filters: TaskFilters) -> Select[tuple[Task]]:
        """Filtered, ordered statement for listing tasks (without pagination)."""
        stmt = select(Task).options(selectinload(Task.owner))

        if filters.status is not None:
            stmt = stmt.where(Task.status == filters.status)
        if filters.priority is not None:
            stmt = stmt.where(Task.priority == filters.priority)
        if filters.user_id is not None:
            stmt = stmt.where(Task.user_id == filters.user_id)
        if filters.search:
            pattern = f"%{filters.search}%"
            stmt = stmt.where(or_(Task.title.ilike(pattern), Task.description.ilike(pattern)))
        if filters.due_after is not None:
            stmt = stmt.where(Task.due_date >= filters.due_after)
        if filters.due_before is not None:
            stmt = stmt.where(Task.due_date <= filters.due_before)
        if filters.created_after is not None:
            stmt = stmt.where(Task.created_at >= filters.created_after)
        if filters.created_before is not None:
            stmt = stmt.where(Task.created_at <= filters.created_before)

        sort_column: Any = (
            _PRIORITY_RANK
            if filters.sort_by is TaskSortField.PRIORITY
            else getattr(Task, filters.sort_by.value)
        )
        ordering = sort_column.asc() if filters.sort_order == "asc" else sort_column.desc()
        return stmt.order_by(ordering, Task.id.asc())

    async def search_tasks(self, session: AsyncSession, filters: TaskFilters) -> SearchResult[Task]:
        return await self.search(
            session,
            self.build_search(filters),
            limit=filters.limit,
            offset=filters.offset,
        )

    async def stats(self, session: AsyncSession, *, now: datetime) -> dict[str, int]:
        """Aggregate counts by status, high priority and overdue."""
        stmt = select(
            func.count(Task.id),
            func.count(case((Task.status == TaskStatus.PENDING, 1))),
            func.count(case((Task.status == TaskStatus.IN_PROGRESS, 1))),
            func.count(case((Task.status == TaskStatus.COMPLETED, 1))),
            func.count(case((Task.priority == TaskPriority.HIGH, 1))),
            func.count(
                case(
                    (
                        (Task.due_date < now) & (Task.status != TaskStatus.COMPLETED),
                        1,
                    )
                )
            ),
        )
        row = (await session.execute(stmt)).one()
        total, pending, in_progress, completed, high, overdue = (int(v or 0) for v in row)
        return {
            "total": total,
            "pending": pending,
            "in_progress": in_progress,
            "completed": completed,
            "high_priority": high,
            "overdue": overdue,
        }

