"""FastAPI dependency providers."""

from task_service.core.dependencies.services import (
    OverdueScannerDep,
    TaskServiceDep,
    get_overdue_scanner,
    get_task_service,
)

__all__ = [
    "OverdueScannerDep",
    "TaskServiceDep",
    "get_overdue_scanner",
    "get_task_service",
]
