"""Relational store settings, read from ``DB_*`` variables."""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class PostgresSettings(BaseSettings):
    """Database address and engine pool sizing.

    The database is required: the API refuses to start without it. ``DB_DSN``
    is used verbatim when set (tests point it at SQLite); otherwise the URL
    is assembled from the individual fields.
    """

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
        frozen=True,
    )

    dsn: str | None = None
    driver: str = Field(default="postgresql+psycopg", description="SQLAlchemy async dialect+driver.")
    host: str = "localhost"
    port: int = Field(default=5432, ge=1, le=65535)
    user: str = "postgres"
    password: SecretStr = SecretStr("postgres")
    name: str = "tasks"

    # Pool
    pool_size: int = Field(default=10, ge=1, le=100)
    max_overflow: int = Field(default=10, ge=0, le=100)
    pool_timeout: float = Field(default=30.0, ge=1.0, le=300.0, description="Seconds to wait for a free connection.")
    pool_recycle: int = Field(default=1800, ge=60, description="Reconnect connections older than this many seconds.")
    pool_pre_ping: bool = True
    echo: bool = False

    @property
    def url(self) -> str:
        if self.dsn:
            return self.dsn
        credentials = f"{quote(self.user, safe='')}:{quote(self.password.get_secret_value(), safe='')}"
        return f"{self.driver}://{credentials}@{self.host}:{self.port}/{self.name}"

    def engine_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for ``create_async_engine``.

        SQLite rejects queue pool options, so only ``echo`` applies there.
        """
        if self.url.startswith("sqlite"):
            return {"echo": self.echo}
        return {
            "echo": self.echo,
            "pool_size": self.pool_size,
            "max_overflow": self.max_overflow,
            "pool_timeout": self.pool_timeout,
            "pool_recycle": self.pool_recycle,
            "pool_pre_ping": self.pool_pre_ping,
        }
