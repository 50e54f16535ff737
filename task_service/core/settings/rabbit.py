"""Job transport (RabbitMQ) settings, read from ``RABBIT_*`` variables."""

from __future__ import annotations

from urllib.parse import quote, unquote, urlparse

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RabbitSettings(BaseSettings):
    """Broker address plus the exchange and queue the job pipeline uses.

    A full ``AMQP_URI`` overrides the individual
    connection fields. When the transport is disabled the service runs jobs
    on taskiq's in-process broker instead.
    """

    model_config = SettingsConfigDict(
        env_prefix="RABBIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )

    enabled: bool = True
    amqp_uri: str | None = Field(default=None, alias="AMQP_URI")
    host: str = Field(default="localhost", min_length=1)
    port: int = Field(default=5672, ge=1, le=65535)
    username: str = Field(default="guest", min_length=1)
    password: SecretStr = SecretStr("guest")
    vhost: str = "/"
    use_tls: bool = False

    exchange_name: str = Field(default="task-service", pattern=r"^[a-zA-Z0-9_.-]+$")
    queue_prefix: str = Field(
        default="task-service",
        pattern=r"^[a-zA-Z0-9_-]+$",
        description="Joined to queue names with a dot, e.g. task-service.task-processing.",
    )
    prefetch_count: int = Field(
        default=10,
        ge=1,
        le=1000,
        description="Unacknowledged deliveries a worker may hold at once.",
    )
    max_priority: int | None = Field(default=10, ge=1, le=255)

    @model_validator(mode="after")
    def _expand_uri(self) -> RabbitSettings:
        if not self.amqp_uri:
            return self
        parsed = urlparse(self.amqp_uri)
        overrides = {
            "host": parsed.hostname,
            "port": parsed.port,
            "username": unquote(parsed.username) if parsed.username else None,
            "password": SecretStr(unquote(parsed.password)) if parsed.password else None,
            "vhost": unquote(parsed.path[1:]) if len(parsed.path) > 1 else None,
            "use_tls": True if parsed.scheme == "amqps" else None,
        }
        # frozen model
        for name, value in overrides.items():
            if value is not None:
                object.__setattr__(self, name, value)
        return self

    @property
    def url(self) -> str:
        credentials = (
            f"{quote(self.username, safe='')}:{quote(self.password.get_secret_value(), safe='')}"
        )
        vhost = quote(self.vhost.lstrip("/"), safe="")
        scheme = "amqps" if self.use_tls else "amqp"
        return f"{scheme}://{credentials}@{self.host}:{self.port}/{vhost}"

    @property
    def is_configured(self) -> bool:
        return self.enabled

    def get_prefixed_queue(self, queue_name: str) -> str:
        return f"{self.queue_prefix}.{queue_name}"
