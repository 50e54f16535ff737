"""Logging settings, read from ``LOG_*`` variables."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
        frozen=True,
    )

    level: LogLevel = "INFO"
    json_logs: bool = Field(default=True, description="LOG_JSON_LOGS=false switches to plain text.")
    service_name: str = "task-service"
    include_function_name: bool = False
    uvicorn_access_log: bool = Field(
        default=False,
        description="Uvicorn access lines are dropped unless this is set.",
    )
