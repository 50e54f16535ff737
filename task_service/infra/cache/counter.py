"""Failure-tolerant Redis facade for namespaced counters and cached values.

The facade backs both the rate limiter (atomic fixed-window counters) and
general caching. Its contract is that it never raises to callers: every
store error is logged, counted, and degraded to a fallback value.

    Operation      Fallback on failure
    ------------   -------------------
    get            None
    has            False
    set            no-op
    delete         False
    increment      0
    get_ttl        -2 (absent)
    clear          0

Keys are laid out as ``<key_prefix><namespace>:<key>``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from enum import StrEnum
from functools import wraps
import json
import logging
from typing import TYPE_CHECKING, Any, cast

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError

from task_service.core.exceptions import ServiceUnavailableException
from task_service.infra.logging import get_lazy_logger
from task_service.infra.metrics.prometheus import counter_store_errors_total, counter_store_ready

if TYPE_CHECKING:
    from task_service.core.settings.redis import RedisSettings

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)

# Sentinels returned by get_ttl, matching Redis TTL semantics
TTL_NO_EXPIRY = -1
TTL_ABSENT = -2


class ConnectionState(StrEnum):
    """Observable lifecycle of the counter store connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    READY = "ready"
    ERROR = "error"
    CLOSED = "closed"


def _fail_safe(operation: str, fallback: Any) -> Callable[..., Any]:
    """Degrade a facade coroutine to ``fallback`` when the store is unusable."""

    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        @wraps(func)
        async def wrapper(self: CounterStore, *args: Any, **kwargs: Any) -> Any:
            if self._client is None or self.state is not ConnectionState.READY:
                logger.warning(
                    "Counter store not ready, returning fallback",
                    extra={"operation": operation, "state": str(self.state)},
                )
                return fallback
            try:
                return await func(self, *args, **kwargs)
            except (RedisError, OSError, TypeError, ValueError) as exc:
                counter_store_errors_total.labels(operation=operation).inc()
                logger.error(
                    "Counter store operation failed",
                    extra={"operation": operation, "error": str(exc)},
                    exc_info=True,
                )
                return fallback

        return wrapper

    return decorator


class CounterStore:
    """Namespaced atomic counters and key/value cache over Redis.

    Dependencies are passed in; nothing here reads process-wide state. A
    pre-built client may be injected (tests use an in-memory fake),
    otherwise ``connect()`` builds a connection pool from settings.

    Example:
        store = CounterStore(get_redis_settings())
        await store.connect()

        count = await store.increment("login:ab12", namespace="rate_limit", ttl=60)
        await store.set("summary", {"open": 3}, namespace="task", ttl=300)

        await store.disconnect()
    """

    def __init__(
        self,
        settings: RedisSettings,
        *,
        client: Redis | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._settings = settings
        self._client: Redis | None = client
        self._pool: ConnectionPool | None = None
        self._sleep = sleep
        self._state = ConnectionState.DISCONNECTED

    # ──────────────────────────────────────────────────────────────
    # Connection lifecycle
    # ──────────────────────────────────────────────────────────────

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is ConnectionState.READY

    def _set_state(self, state: ConnectionState) -> None:
        if state is not self._state:
            lazy_logger.debug(lambda: f"counter store state {self._state} -> {state}")
        self._state = state
        counter_store_ready.set(1 if state is ConnectionState.READY else 0)

    async def connect(self) -> bool:
        """Connect with bounded exponential backoff.

        Returns:
            True when the store is ready, False when running degraded.

        Raises:
            ServiceUnavailableException: If the store is unreachable and
                ``startup_require_cache`` is set.
        """
        if not self._settings.is_configured and self._client is None:
            logger.warning("Counter store disabled, running in degraded mode")
            return False

        self._set_state(ConnectionState.CONNECTING)
        attempts = self._settings.startup_retry_attempts
        delay = self._settings.startup_retry_delay

        logger.info(
            "Connecting to counter store",
            extra={
                "host": self._settings.host,
                "port": self._settings.port,
                "db": self._settings.db,
                "max_attempts": attempts,
            },
        )

        for attempt in range(1, attempts + 1):
            try:
                if self._client is None:
                    self._pool = ConnectionPool.from_url(
                        self._settings.url,
                        **self._settings.connection_pool_kwargs(),
                    )
                    self._client = Redis(connection_pool=self._pool)
                await cast("Awaitable[bool]", self._client.ping())
            except (RedisError, OSError) as exc:
                logger.warning(
                    "Counter store connection attempt failed",
                    extra={"attempt": attempt, "max_attempts": attempts, "error": str(exc)},
                )
                if attempt < attempts:
                    await self._sleep(delay)
                    delay = min(delay * 2, self._settings.startup_retry_max_delay)
            else:
                self._set_state(ConnectionState.READY)
                logger.info("Counter store connection established", extra={"attempt": attempt})
                return True

        self._set_state(ConnectionState.ERROR)
        logger.error(
            "Counter store unavailable, caching and rate limiting degraded",
            extra={"attempts": attempts},
        )
        if self._settings.startup_require_cache:
            raise ServiceUnavailableException(
                detail="Counter store is unavailable",
                extra={"service": "redis"},
            )
        return False

    async def disconnect(self) -> None:
        """Drain the connection pool and mark the facade closed."""
        logger.info("Disconnecting from counter store")
        client, pool = self._client, self._pool
        self._client = None
        self._pool = None
        self._set_state(ConnectionState.CLOSED)
        try:
            if client is not None:
                await client.aclose()
            if pool is not None:
                await pool.aclose()
        except (RedisError, OSError) as exc:
            logger.warning("Error while closing counter store", extra={"error": str(exc)})
        logger.info("Counter store connection closed")

    async def health_check(self) -> bool:
        """Ping the store; a successful ping also recovers from ERROR."""
        if self._client is None or self._state is ConnectionState.CLOSED:
            return False
        try:
            await cast("Awaitable[bool]", self._client.ping())
        except (RedisError, OSError) as exc:
            counter_store_errors_total.labels(operation="ping").inc()
            logger.warning("Counter store health check failed", extra={"error": str(exc)})
            self._set_state(ConnectionState.ERROR)
            return False
        if self._state is not ConnectionState.READY:
            logger.info("Counter store recovered")
            self._set_state(ConnectionState.READY)
        return True

    # ──────────────────────────────────────────────────────────────
    # Key/value operations
    # ──────────────────────────────────────────────────────────────

    def _key(self, key: str, namespace: str) -> str:
        return f"{self._settings.key_prefix}{namespace}:{key}"

    @property
    def _redis(self) -> Redis:
        return cast("Redis", self._client)

    @_fail_safe("set", None)
    async def set(
        self,
        key: str,
        value: Any,
        namespace: str,
        ttl: int | None = None,
    ) -> None:
        """Store a JSON-serialisable value with an expiry (defaults to default_ttl)."""
        expiry = self._settings.default_ttl if ttl is None else ttl
        payload = json.dumps(value, default=str)
        if expiry > 0:
            await self._redis.set(self._key(key, namespace), payload, ex=expiry)
        else:
            await self._redis.set(self._key(key, namespace), payload)

    @_fail_safe("get", None)
    async def get(self, key: str, namespace: str) -> Any | None:
        """Return the decoded value, or None when absent."""
        raw = await self._redis.get(self._key(key, namespace))
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            return raw

    @_fail_safe("delete", False)
    async def delete(self, key: str, namespace: str) -> bool:
        return bool(await self._redis.delete(self._key(key, namespace)))

    @_fail_safe("has", False)
    async def has(self, key: str, namespace: str) -> bool:
        return bool(await self._redis.exists(self._key(key, namespace)))

    @_fail_safe("increment", 0)
    async def increment(self, key: str, namespace: str, ttl: int | None = None) -> int:
        """Atomically increment a counter and return the new value.

        INCR and EXPIRE run in one MULTI/EXEC transaction, so a counter can
        never be left behind without its ttl. ``EXPIRE ... NX`` only sets the
        ttl when the key has none, so the first increment defines the window
        start and later increments never extend it. NX needs Redis 7 or newer.
        """
        full_key = self._key(key, namespace)
        pipe = self._redis.pipeline(transaction=True)
        pipe.incr(full_key)
        if ttl:
            pipe.expire(full_key, ttl, nx=True)
        results = await pipe.execute()
        return int(results[0])

    @_fail_safe("get_ttl", TTL_ABSENT)
    async def get_ttl(self, key: str, namespace: str) -> int:
        """Seconds remaining, ``-1`` for no expiry, ``-2`` when absent."""
        return int(await self._redis.ttl(self._key(key, namespace)))

    @_fail_safe("clear", 0)
    async def clear(self, namespace: str) -> int:
        """Delete every key under ``namespace``.

        Uses ``KEYS``, which blocks Redis for the duration of the scan and is
        unsafe on large keyspaces. Replace with a ``SCAN`` cursor loop before
        running this against a production-sized store.
        """
        pattern = f"{self._settings.key_prefix}{namespace}:*"
        logger.warning(
            "Clearing counter store namespace with KEYS",
            extra={"namespace": namespace, "pattern": pattern},
        )
        keys = await self._redis.keys(pattern)
        if not keys:
            return 0
        return int(await self._redis.delete(*keys))
