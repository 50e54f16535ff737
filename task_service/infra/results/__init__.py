"""Taskiq result storage."""

from __future__ import annotations

from task_service.infra.results.redis_backend import (
    ResultIsMissingError,
    RetentionRedisResultBackend,
)

__all__ = ["ResultIsMissingError", "RetentionRedisResultBackend"]
