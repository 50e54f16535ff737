"""ASGI middleware and its registration."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from task_service.app.middleware.rate_limit import DEFAULT_EXEMPT_PATHS, RateLimitMiddleware
from task_service.infra.ratelimit import FixedWindowRateLimiter, RateLimitPolicyMap

if TYPE_CHECKING:
    from fastapi import FastAPI

    from task_service.core.settings.ratelimit import RateLimitSettings
    from task_service.infra.cache import CounterStore

logger = logging.getLogger(__name__)


def configure_middleware(
    app: FastAPI,
    store: CounterStore,
    rate_limit_settings: RateLimitSettings,
) -> None:
    """Register middleware on the application.

    The rate limiter shares the application's counter store; the store is
    connected later by the lifespan and the limiter fails open until then.
    """
    policies = RateLimitPolicyMap.from_settings(rate_limit_settings)
    app.add_middleware(
        RateLimitMiddleware,
        limiter=FixedWindowRateLimiter(store, namespace=rate_limit_settings.namespace),
        policies=policies,
        enabled=rate_limit_settings.enabled,
        exempt_paths=rate_limit_settings.exempt_paths,
    )
    logger.info(
        "Rate limiting configured",
        extra={
            "enabled": rate_limit_settings.enabled,
            "policies": [policy.name for policy in policies.policies],
        },
    )


__all__ = ["DEFAULT_EXEMPT_PATHS", "RateLimitMiddleware", "configure_middleware"]
