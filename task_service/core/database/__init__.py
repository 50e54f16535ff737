"""Model base classes and the generic repository."""

from __future__ import annotations

from task_service.core.database.base import Base, TimestampMixin, UUIDPKMixin
from task_service.core.database.repository import BaseRepository, SearchResult

__all__ = ["Base", "BaseRepository", "SearchResult", "TimestampMixin", "UUIDPKMixin"]
