"""Database engine and session lifecycle."""

from __future__ import annotations

from task_service.infra.database.session import (
    close_database,
    create_engine,
    create_session_factory,
    init_database,
)

__all__ = [
    "close_database",
    "create_engine",
    "create_session_factory",
    "init_database",
]
