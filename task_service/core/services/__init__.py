"""Shared service-layer building blocks."""

from __future__ import annotations

from task_service.core.services.base import BaseService

__all__ = ["BaseService"]
