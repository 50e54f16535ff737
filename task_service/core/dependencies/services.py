"""Service dependencies for FastAPI.

Services are built once by the application lifespan and kept on
``app.state``; these providers hand them to route handlers. Tests override
them with ``app.dependency_overrides``.
"""

from __future__ import annotations

from typing import Annotated, cast

from fastapi import Depends, Request

from task_service.core.exceptions import ServiceUnavailableException
from task_service.features.tasks.service import TaskService
from task_service.workers.overdue import OverdueScanner


def _state_attr(request: Request, name: str) -> object:
    value = getattr(request.app.state, name, None)
    if value is None:
        raise ServiceUnavailableException(
            detail=f"{name} is not initialized",
            extra={"service": name},
        )
    return value


def get_task_service(request: Request) -> TaskService:
    """Get the task service built at startup.

    Example:
        ```python
        @router.get("/tasks/{task_id}")
        async def read(task_id: UUID, service: TaskServiceDep):
            return await service.get(task_id)
        ```
    """
    return cast("TaskService", _state_attr(request, "task_service"))


def get_overdue_scanner(request: Request) -> OverdueScanner:
    return cast("OverdueScanner", _state_attr(request, "overdue_scanner"))


TaskServiceDep = Annotated[TaskService, Depends(get_task_service)]
OverdueScannerDep = Annotated[OverdueScanner, Depends(get_overdue_scanner)]
