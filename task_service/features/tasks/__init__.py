"""Tasks feature: CRUD, batch operations and overdue scanning.

Example usage:
    from task_service.features.tasks import TaskService

    service = TaskService(session_factory, queue)
    task = await service.create(TaskCreate(title="Ship it", user_id=owner_id))
"""

from task_service.features.tasks.models import Task, TaskPriority, TaskStatus, User
from task_service.features.tasks.repository import TaskRepository
from task_service.features.tasks.service import TaskService

__all__ = [
    "Task",
    "TaskPriority",
    "TaskRepository",
    "TaskService",
    "TaskStatus",
    "User",
]
