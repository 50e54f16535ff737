"""Router registry and setup."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from task_service.core.settings import get_app_settings
from task_service.features.health.router import router as health_router
from task_service.features.metrics.router import router as metrics_router
from task_service.features.tasks.router import router as tasks_router

if TYPE_CHECKING:
    from fastapi import FastAPI

    from task_service.core.settings.app import AppSettings

logger = logging.getLogger(__name__)


def setup_routers(app: FastAPI, app_settings: AppSettings | None = None) -> None:
    """Register all feature routers with the application.

    Args:
        app: FastAPI application instance.
        app_settings: Optional application settings override for the API prefix.
    """
    app_settings = app_settings or get_app_settings()
    api_prefix = app_settings.api_prefix

    # Observability endpoints (no prefix)
    app.include_router(metrics_router, tags=["observability"])
    app.include_router(health_router, tags=["health"])

    # Feature routers
    app.include_router(tasks_router, prefix=api_prefix, tags=["tasks"])

    logger.info("Routers registered", extra={"api_prefix": api_prefix})
