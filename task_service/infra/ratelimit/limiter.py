"""Fixed-window rate limiter backed by the counter store."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
import logging
from typing import TYPE_CHECKING, Any

from task_service.core.exceptions import RateLimitException
from task_service.infra.metrics.prometheus import (
    rate_limit_fail_open_total,
    rate_limit_rejections_total,
)

if TYPE_CHECKING:
    from task_service.infra.cache.counter import CounterStore
    from task_service.infra.ratelimit.policy import RateLimitPolicy

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _isoformat(moment: datetime) -> str:
    return moment.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class FixedWindowRateLimiter:
    """Per-identifier fixed-window counters.

    Each (policy, identifier) pair owns one counter. The first request in a
    window creates it with a ttl equal to the window; requests past the
    limit are rejected until it expires. A burst of up to twice the limit
    can land around a window boundary; that is the accepted cost of using
    one INCR per request instead of a sliding log.

    The limiter fails open: if the check itself cannot be performed the
    request is admitted and the fault is logged and counted.
    """

    def __init__(
        self,
        store: CounterStore,
        *,
        namespace: str = "rate_limit",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._namespace = namespace
        self._clock = clock

    def counter_key(self, identifier: str, policy: RateLimitPolicy) -> str:
        return f"{policy.name}:{identifier}"

    async def admit(self, identifier: str, policy: RateLimitPolicy) -> bool:
        """Count one request against ``policy``.

        Returns:
            True when the request is admitted.

        Raises:
            RateLimitException: When the caller exceeded the policy limit.
        """
        key = self.counter_key(identifier, policy)
        try:
            count = await self._store.increment(key, self._namespace, ttl=policy.window_seconds)
            if count <= policy.limit:
                return True
            ttl = await self._store.get_ttl(key, self._namespace)
        except Exception as exc:
            rate_limit_fail_open_total.inc()
            logger.error(
                "Rate limit check failed, allowing request (fail-open)",
                extra={"policy": policy.name, "error": str(exc)},
                exc_info=True,
            )
            return True

        rate_limit_rejections_total.labels(policy=policy.name).inc()
        logger.warning(
            "Rate limit exceeded",
            extra={"policy": policy.name, "limit": policy.limit, "count": count},
        )
        raise RateLimitException(
            detail="Rate limit exceeded",
            extra=self.rejection_body(policy, ttl),
        )

    def rejection_body(self, policy: RateLimitPolicy, ttl: int) -> dict[str, Any]:
        """Client-facing rejection payload."""
        now = self._clock()
        reset_at = now + (timedelta(seconds=ttl) if ttl > 0 else timedelta(milliseconds=policy.window_ms))
        window_s = policy.window_ms // 1000
        return {
            "error": "Rate limit exceeded",
            "message": (
                f"You have exceeded the rate limit of {policy.limit} requests "
                f"per {window_s} seconds."
            ),
            "limit": policy.limit,
            "remaining": 0,
            "resetAt": _isoformat(reset_at),
        }
