"""Counter store (Redis) settings, read from ``REDIS_*`` variables."""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class RedisSettings(BaseSettings):
    """Where the counter store lives and how hard startup tries to reach it.

    ``REDIS_URL`` wins when set; otherwise the URL is assembled from the
    host, port, db and password fields.
    """

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )

    redis_url: str | None = Field(default=None, alias="REDIS_URL")
    enabled: bool = Field(
        default=True,
        description="When false the store never connects and every call returns its fallback.",
    )
    host: str = "localhost"
    port: int = Field(default=6379, ge=1, le=65535)
    db: int = Field(default=0, ge=0, le=15)
    password: SecretStr | None = None
    use_tls: bool = Field(default=False, description="Connect with the rediss:// scheme.")

    # Pool
    max_connections: int = Field(default=50, ge=1, le=1000)
    socket_timeout: float = Field(default=5.0, gt=0, le=30.0)
    socket_connect_timeout: float = Field(default=5.0, gt=0, le=30.0)
    health_check_interval: int = Field(
        default=30,
        ge=0,
        le=300,
        description="Seconds between idle connection pings; 0 disables them.",
    )

    # Keys
    key_prefix: str = Field(
        default="task-service:",
        pattern=r"^[a-zA-Z0-9_-]+:?$",
        max_length=100,
        description="Prepended to every key so several services can share one database.",
    )
    default_ttl: int = Field(
        default=300,
        ge=0,
        description="Expiry in seconds for set() calls that pass no ttl; 0 keeps keys forever.",
    )

    # Startup
    startup_retry_attempts: int = Field(default=5, ge=1, le=20)
    startup_retry_delay: float = Field(
        default=0.05,
        ge=0.01,
        le=10.0,
        description="First wait between connection attempts; doubles after each failure.",
    )
    startup_retry_max_delay: float = Field(default=2.0, ge=0.1, le=60.0)
    startup_require_cache: bool = Field(
        default=False,
        description="Abort startup when the store is unreachable instead of running degraded.",
    )

    @property
    def is_configured(self) -> bool:
        return self.enabled

    @property
    def url(self) -> str:
        if self.redis_url:
            return self.redis_url
        auth = f":{quote(self.password.get_secret_value())}@" if self.password else ""
        scheme = "rediss" if self.use_tls else "redis"
        return f"{scheme}://{auth}{self.host}:{self.port}/{self.db}"

    def connection_pool_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for ``ConnectionPool.from_url``."""
        kwargs: dict[str, Any] = {
            "max_connections": self.max_connections,
            "socket_timeout": self.socket_timeout,
            "socket_connect_timeout": self.socket_connect_timeout,
            "decode_responses": True,
        }
        if self.health_check_interval:
            kwargs["health_check_interval"] = self.health_check_interval
        return kwargs
