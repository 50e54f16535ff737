"""HTTP application settings, read from ``APP_*`` variables."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

Environment = Literal["development", "staging", "production", "test"]


class AppSettings(BaseSettings):
    """Identity of the service and how FastAPI exposes it."""

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
        frozen=True,
    )

    service_name: str = Field(
        default="task-service",
        pattern=r"^[a-z0-9]+(-[a-z0-9]+)*$",
        description="Stamped on every log record as ``service``.",
    )
    environment: Environment = "development"
    title: str = "Task Service API"
    version: str = Field(default="0.1.0", pattern=r"^\d+\.\d+\.\d+(-[a-zA-Z0-9]+)?$")

    api_prefix: str = Field(default="/api/v1", pattern=r"^/")
    docs_url: str | None = Field(default="/docs", description="None hides Swagger UI.")
    openapi_url: str | None = "/openapi.json"
    debug: bool = False

    # Only used when the app is started through uvicorn.run
    host: str = "0.0.0.0"  # noqa: S104
    port: int = Field(default=8000, ge=1, le=65535)
