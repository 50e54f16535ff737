"""Pydantic schemas for the tasks feature."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from task_service.features.tasks.models import TaskPriority, TaskStatus


class TaskBase(BaseModel):
    """Shared attributes for task payloads."""

    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: datetime | None = None


class TaskCreate(TaskBase):
    """Payload used when creating a task."""

    status: TaskStatus = TaskStatus.PENDING
    user_id: UUID


class TaskUpdate(BaseModel):
    """Partial update; only fields present in the request are applied."""

    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    due_date: datetime | None = None

    @model_validator(mode="after")
    def _reject_null_required(self) -> TaskUpdate:
        for name in ("title", "status", "priority"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


class OwnerResponse(BaseModel):
    id: UUID
    email: str
    name: str

    model_config = ConfigDict(from_attributes=True)


class TaskResponse(TaskBase):
    """Task as returned by the API, with its owner."""

    id: UUID
    status: TaskStatus
    user_id: UUID
    owner: OwnerResponse
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TaskSortField(StrEnum):
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"
    DUE_DATE = "due_date"
    PRIORITY = "priority"
    TITLE = "title"
    STATUS = "status"


class TaskFilters(BaseModel):
    """Query filters for listing tasks."""

    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    user_id: UUID | None = None
    search: str | None = Field(default=None, max_length=200)
    due_after: datetime | None = None
    due_before: datetime | None = None
    created_after: datetime | None = None
    created_before: datetime | None = None
    sort_by: TaskSortField = TaskSortField.CREATED_AT
    sort_order: Literal["asc", "desc"] = "desc"
    limit: int = Field(default=50, ge=1, le=200)
    offset: int = Field(default=0, ge=0)


class TaskSearchResult(BaseModel):
    """Paginated list of tasks."""

    items: list[TaskResponse]
    total: int
    limit: int
    offset: int
    has_more: bool


class TaskStats(BaseModel):
    total: int
    pending: int
    in_progress: int
    completed: int
    high_priority: int
    overdue: int


class BatchAction(StrEnum):
    COMPLETE = "complete"
    DELETE = "delete"


class BatchRequest(BaseModel):
    tasks: list[UUID] = Field(..., min_length=1, max_length=1000)
    action: BatchAction


class BatchResult(BaseModel):
    """Outcome of a bulk operation.

    ``failed`` counts requested ids that were not affected (for example
    because they do not exist); no per-id diagnostic is produced.
    """

    success: int
    failed: int


class OverdueScanResponse(BaseModel):
    found: int
    queued: int
