"""Named rate-limit policies and the route-to-policy map."""

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

    from task_service.core.settings.ratelimit import PolicyConfig, RateLimitSettings


@dataclass(frozen=True, slots=True)
class RateLimitPolicy:
    """Fixed-window admission policy: ``limit`` requests per ``window_ms``."""

    name: str
    limit: int
    window_ms: int = 60_000

    @property
    def window_seconds(self) -> int:
        """Counter ttl in whole seconds (rounded up)."""
        return math.ceil(self.window_ms / 1000)

    @classmethod
    def from_config(cls, config: PolicyConfig) -> RateLimitPolicy:
        return cls(name=config.name, limit=config.limit, window_ms=config.window_ms)


@dataclass(frozen=True, slots=True)
class _RouteEntry:
    method: str | None
    prefix: str
    policy: RateLimitPolicy

    def matches(self, method: str, path: str) -> bool:
        if self.method is not None and self.method != method:
            return False
        if path == self.prefix:
            return True
        return path.startswith(self.prefix.rstrip("/") + "/")


class RateLimitPolicyMap:
    """Explicit map from route keys to policies.

    Route keys are either ``"/path/prefix"`` (any method) or
    ``"METHOD /path/prefix"``. Resolution picks the entry with the longest
    matching prefix; on equal prefixes a method-specific entry beats a
    method-agnostic one. Unmatched requests get the default policy.

    Example:
        policies = RateLimitPolicyMap(
            {
                "/api/v1/auth": RateLimitPolicy("auth", 10),
                "POST /api/v1/auth/login": RateLimitPolicy("login", 5),
            },
            default=RateLimitPolicy("default", 100),
        )
        policies.resolve("POST", "/api/v1/auth/login").name  # "login"
        policies.resolve("GET", "/api/v1/auth/me").name  # "auth"
    """

    def __init__(
        self,
        routes: Mapping[str, RateLimitPolicy],
        *,
        default: RateLimitPolicy,
    ) -> None:
        self.default = default
        entries = [self._parse(key, policy) for key, policy in routes.items()]
        self._entries = sorted(
            entries,
            key=lambda e: (len(e.prefix), e.method is not None),
            reverse=True,
        )

    @classmethod
    def from_settings(cls, settings: RateLimitSettings) -> RateLimitPolicyMap:
        return cls(
            {key: RateLimitPolicy.from_config(cfg) for key, cfg in settings.routes.items()},
            default=RateLimitPolicy.from_config(settings.default_policy),
        )

    @staticmethod
    def _parse(key: str, policy: RateLimitPolicy) -> _RouteEntry:
        method, sep, path = key.strip().partition(" ")
        if not sep:
            return _RouteEntry(method=None, prefix=method, policy=policy)
        if not path.startswith("/"):
            raise ValueError(f"Invalid rate limit route key: {key!r}")
        return _RouteEntry(method=method.upper(), prefix=path.strip(), policy=policy)

    def resolve(self, method: str, path: str) -> RateLimitPolicy:
        method = method.upper()
        for entry in self._entries:
            if entry.matches(method, path):
                return entry.policy
        return self.default

    @property
    def policies(self) -> list[RateLimitPolicy]:
        return [self.default, *(entry.policy for entry in self._entries)]
