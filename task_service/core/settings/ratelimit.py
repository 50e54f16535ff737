"""Rate limiting settings.

Environment variables use RATE_LIMIT_ prefix.
Example: RATE_LIMIT_ENABLED=false

Per-route limits are an explicit map from a route key (``"METHOD /path"``
or ``"/path"``) to a named policy. Overrides are accepted as JSON:

    RATE_LIMIT_ROUTES='{"POST /api/v1/auth/login": {"name": "login", "limit": 5}}'
"""

from __future__ import annotations

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PolicyConfig(BaseModel):
    """One named rate-limit policy."""

    name: str = Field(..., min_length=1, max_length=50, pattern=r"^[a-z0-9_-]+$")
    limit: int = Field(..., ge=1)
    window_ms: int = Field(default=60_000, ge=1000)


def _default_routes() -> dict[str, PolicyConfig]:
    return {
        "/api/v1/auth": PolicyConfig(name="auth", limit=10),
        "POST /api/v1/auth/login": PolicyConfig(name="login", limit=5),
        "POST /api/v1/auth/register": PolicyConfig(name="register", limit=3),
        "POST /api/v1/auth/refresh": PolicyConfig(name="refresh", limit=20),
        "/api/v1/tasks": PolicyConfig(name="tasks", limit=100),
        "/api/v1/users": PolicyConfig(name="users", limit=50),
    }


class RateLimitSettings(BaseSettings):
    """Admission control configuration."""

    enabled: bool = Field(default=True, description="Enable the rate limit middleware")
    default_policy: PolicyConfig = Field(
        default_factory=lambda: PolicyConfig(name="default", limit=100),
        description="Policy applied when no route entry matches",
    )
    routes: dict[str, PolicyConfig] = Field(
        default_factory=_default_routes,
        description="Route key to policy map; longest path prefix wins",
    )
    exempt_paths: list[str] = Field(
        default_factory=lambda: ["/health", "/metrics", "/docs", "/openapi.json"],
        description="Paths never subject to rate limiting",
    )
    namespace: str = Field(
        default="rate_limit",
        min_length=1,
        description="Counter store namespace for rate-limit counters",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
