"""Health check API endpoint.

``GET /health`` reports the relational store and the counter store. The
database is required: if it is unreachable the endpoint answers 503. The
counter store is optional; when it is down the service keeps serving
(caching skipped, rate limiting fails open) and reports ``degraded``.
"""

from __future__ import annotations

from datetime import UTC, datetime
import logging
from typing import Literal

from fastapi import APIRouter, Request, Response, status
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

HealthStatus = Literal["healthy", "degraded", "unhealthy"]


class HealthResponse(BaseModel):
    status: HealthStatus
    checks: dict[str, bool]
    timestamp: datetime


async def _check_database(request: Request) -> bool:
    session_factory = getattr(request.app.state, "session_factory", None)
    if session_factory is None:
        return False
    try:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as exc:
        logger.warning("Database health check failed", extra={"error": str(exc)})
        return False
    return True


async def _check_counter_store(request: Request) -> bool:
    store = getattr(request.app.state, "counter_store", None)
    if store is None:
        return False
    return await store.health_check()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health",
    description="Database and counter store reachability",
)
async def health_check(request: Request, response: Response) -> HealthResponse:
    checks = {
        "database": await _check_database(request),
        "counter_store": await _check_counter_store(request),
    }

    overall: HealthStatus
    if not checks["database"]:
        overall = "unhealthy"
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    elif not checks["counter_store"]:
        overall = "degraded"
    else:
        overall = "healthy"

    return HealthResponse(status=overall, checks=checks, timestamp=datetime.now(UTC))
