"""Task management API router.

This module provides REST API endpoints for task management operations:
- Task CRUD
- Filtered, paginated search
- Aggregate statistics
- Batch complete/delete
- Manual overdue scan
"""

from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query, status

from task_service.core.dependencies import OverdueScannerDep, TaskServiceDep
from task_service.features.tasks.schemas import (
    BatchAction,
    BatchRequest,
    BatchResult,
    OverdueScanResponse,
    TaskCreate,
    TaskFilters,
    TaskResponse,
    TaskSearchResult,
    TaskStats,
    TaskUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tasks", tags=["tasks"])


# ──────────────────────────────────────────────────────────────
# Collection endpoints
# ──────────────────────────────────────────────────────────────


@router.post(
    "",
    response_model=TaskResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a task",
    description="Persist a task and queue a status notification after commit.",
)
async def create_task(payload: TaskCreate, service: TaskServiceDep) -> TaskResponse:
    task = await service.create(payload)
    return TaskResponse.model_validate(task)


@router.get(
    "",
    response_model=TaskSearchResult,
    summary="Search tasks",
    description="Filter, sort and paginate tasks.",
)
async def list_tasks(
    filters: Annotated[TaskFilters, Query()],
    service: TaskServiceDep,
) -> TaskSearchResult:
    """Search tasks with filters.

    Supports filtering by status, priority, owner, free text over title and
    description, and due/created date ranges. Priority sorting follows
    urgency (high before low), not alphabetical order.
    """
    result = await service.list(filters)
    return TaskSearchResult(
        items=[TaskResponse.model_validate(task) for task in result.items],
        total=result.total,
        limit=result.limit,
        offset=result.offset,
        has_more=result.has_next,
    )


@router.get(
    "/stats",
    response_model=TaskStats,
    summary="Task statistics",
    description="Counts by status, high priority and overdue.",
)
async def task_stats(service: TaskServiceDep) -> TaskStats:
    return await service.stats()


@router.post(
    "/batch",
    response_model=BatchResult,
    summary="Batch complete or delete",
    description="Apply one action to up to 1000 tasks with a single statement.",
)
async def batch_tasks(request: BatchRequest, service: TaskServiceDep) -> BatchResult:
    if request.action is BatchAction.COMPLETE:
        result = await service.batch_complete(request.tasks)
    else:
        result = await service.batch_delete(request.tasks)

    logger.info(
        "Batch operation finished",
        extra={
            "action": str(request.action),
            "requested": len(request.tasks),
            "success": result.success,
            "failed": result.failed,
        },
    )
    return result


@router.post(
    "/overdue/scan",
    response_model=OverdueScanResponse,
    summary="Scan for overdue tasks",
    description="Run the overdue scan now and report the estimated number of jobs queued.",
)
async def scan_overdue(scanner: OverdueScannerDep) -> OverdueScanResponse:
    result = await scanner.scan_manual()
    return OverdueScanResponse(**result)


# ──────────────────────────────────────────────────────────────
# Item endpoints
# ──────────────────────────────────────────────────────────────


@router.get(
    "/{task_id}",
    response_model=TaskResponse,
    summary="Get a task",
)
async def get_task(task_id: UUID, service: TaskServiceDep) -> TaskResponse:
    task = await service.get(task_id)
    return TaskResponse.model_validate(task)


@router.patch(
    "/{task_id}",
    response_model=TaskResponse,
    summary="Update a task",
    description="Partial update; a status change queues a notification after commit.",
)
async def update_task(
    task_id: UUID,
    payload: TaskUpdate,
    service: TaskServiceDep,
) -> TaskResponse:
    task = await service.update(task_id, payload)
    return TaskResponse.model_validate(task)


@router.delete(
    "/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a task",
)
async def delete_task(task_id: UUID, service: TaskServiceDep) -> None:
    await service.delete(task_id)
