"""Engine and session factory construction for the relational store."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

if TYPE_CHECKING:
    from task_service.core.settings.postgres import PostgresSettings

logger = logging.getLogger(__name__)


def _safe_url(engine: AsyncEngine) -> str:
    return engine.url.render_as_string(hide_password=True)


def create_engine(settings: PostgresSettings, **overrides: Any) -> AsyncEngine:
    return create_async_engine(settings.url, **(settings.engine_kwargs() | overrides))


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Sessions keep loaded attributes after commit; services return ORM rows."""
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


async def init_database(engine: AsyncEngine) -> None:
    """Fail fast when the database cannot answer ``SELECT 1``."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.error("Database unreachable", extra={"url": _safe_url(engine), "error": str(exc)})
        raise
    logger.info("Database connected", extra={"url": _safe_url(engine)})


async def close_database(engine: AsyncEngine) -> None:
    await engine.dispose()
    logger.info("Database connections closed", extra={"url": _safe_url(engine)})
