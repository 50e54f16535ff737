"""ASGI middleware that admits or rejects requests by rate limit policy."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from starlette.datastructures import MutableHeaders
from starlette.requests import Request
from starlette.responses import JSONResponse

from task_service.core.exceptions import RateLimitException
from task_service.infra.ratelimit.identity import client_identifier

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from starlette.types import ASGIApp, Message, Receive, Scope, Send

    from task_service.infra.ratelimit.limiter import FixedWindowRateLimiter
    from task_service.infra.ratelimit.policy import RateLimitPolicy, RateLimitPolicyMap

logger = logging.getLogger(__name__)

# Probes and docs are never counted
DEFAULT_EXEMPT_PATHS = ("/health", "/metrics", "/docs", "/openapi.json")


def _policy_headers(policy: RateLimitPolicy) -> dict[str, str]:
    return {"X-RateLimit-Limit": str(policy.limit), "X-RateLimit-Policy": policy.name}


class RateLimitMiddleware:
    """Counts each request against the policy its route resolves to.

    Admitted responses gain ``X-RateLimit-Limit`` and ``X-RateLimit-Policy``.
    A rejection short-circuits with 429 and the limiter's rejection body.
    When the counter store is down the limiter admits, so this middleware
    never turns a store outage into client errors.
    """

    def __init__(
        self,
        app: ASGIApp,
        limiter: FixedWindowRateLimiter | None = None,
        policies: RateLimitPolicyMap | None = None,
        enabled: bool = True,
        exempt_paths: Sequence[str] = DEFAULT_EXEMPT_PATHS,
        key_func: Callable[[Request], str] = client_identifier,
    ) -> None:
        if enabled and (limiter is None or policies is None):
            raise ValueError("limiter and policies are required when rate limiting is enabled")
        self.app = app
        self.limiter = limiter
        self.policies = policies
        self.enabled = enabled
        self.exempt_paths = tuple(exempt_paths)
        self.key_func = key_func

    def _applies_to(self, scope: Scope) -> bool:
        return (
            self.enabled
            and scope["type"] == "http"
            and not scope["path"].startswith(self.exempt_paths)
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if not self._applies_to(scope):
            await self.app(scope, receive, send)
            return

        if self.limiter is None or self.policies is None:
            raise RuntimeError("Rate limiting is enabled but no limiter or policies are configured")
        policy = self.policies.resolve(scope["method"], scope["path"])

        try:
            await self.limiter.admit(self.key_func(Request(scope)), policy)
        except RateLimitException as exc:
            logger.info(
                "Request rejected by rate limit",
                extra={"method": scope["method"], "path": scope["path"], "policy": policy.name},
            )
            rejection = JSONResponse(
                exc.extra,
                status_code=exc.status_code,
                headers={**_policy_headers(policy), "X-RateLimit-Remaining": "0"},
            )
            await rejection(scope, receive, send)
            return

        async def send_with_policy_headers(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                for name, value in _policy_headers(policy).items():
                    headers.append(name, value)
            await send(message)

        await self.app(scope, receive, send_with_policy_headers)
