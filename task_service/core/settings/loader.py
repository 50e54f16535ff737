"""One cached instance per settings model.

Each loader reads the environment on first call only. Tests that change
environment variables call ``clear_settings_cache()`` afterwards.
"""

from __future__ import annotations

from functools import lru_cache

from .app import AppSettings
from .logs import LoggingSettings
from .postgres import PostgresSettings
from .rabbit import RabbitSettings
from .ratelimit import RateLimitSettings
from .redis import RedisSettings
from .tasks import TaskSettings


@lru_cache(maxsize=1)
def get_app_settings() -> AppSettings:
    return AppSettings()


@lru_cache(maxsize=1)
def get_db_settings() -> PostgresSettings:
    return PostgresSettings()


@lru_cache(maxsize=1)
def get_redis_settings() -> RedisSettings:
    return RedisSettings()


@lru_cache(maxsize=1)
def get_rabbit_settings() -> RabbitSettings:
    return RabbitSettings()


@lru_cache(maxsize=1)
def get_task_settings() -> TaskSettings:
    return TaskSettings()


@lru_cache(maxsize=1)
def get_rate_limit_settings() -> RateLimitSettings:
    return RateLimitSettings()


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    return LoggingSettings()


def clear_settings_cache() -> None:
    for loader in (
        get_app_settings,
        get_db_settings,
        get_redis_settings,
        get_rabbit_settings,
        get_task_settings,
        get_rate_limit_settings,
        get_logging_settings,
    ):
        loader.cache_clear()
