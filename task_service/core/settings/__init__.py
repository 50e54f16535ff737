"""Frozen pydantic-settings models, one per concern, each with its own env prefix.

    APP_  DB_  REDIS_  RABBIT_  TASK_  RATE_LIMIT_  LOG_
"""

from __future__ import annotations

from .app import AppSettings
from .loader import (
    clear_settings_cache,
    get_app_settings,
    get_db_settings,
    get_logging_settings,
    get_rabbit_settings,
    get_rate_limit_settings,
    get_redis_settings,
    get_task_settings,
)
from .logs import LoggingSettings
from .postgres import PostgresSettings
from .rabbit import RabbitSettings
from .ratelimit import PolicyConfig, RateLimitSettings
from .redis import RedisSettings
from .tasks import TaskSettings

__all__ = [
    "AppSettings",
    "LoggingSettings",
    "PolicyConfig",
    "PostgresSettings",
    "RabbitSettings",
    "RateLimitSettings",
    "RedisSettings",
    "TaskSettings",
    "clear_settings_cache",
    "get_app_settings",
    "get_db_settings",
    "get_logging_settings",
    "get_rabbit_settings",
    "get_rate_limit_settings",
    "get_redis_settings",
    "get_task_settings",
]
