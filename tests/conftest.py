"""Pytest configuration and shared fixtures.

Organization:
    - Environment: settings that keep tests free of external infrastructure
    - Cache Fixtures: in-memory Redis fake and a connected CounterStore
    - Queue Fixtures: recording JobQueue fake
    - Database Fixtures: in-memory SQLite engine, session factory, owners
"""

from __future__ import annotations

import fnmatch
import os
from collections.abc import AsyncGenerator
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncEngine

    from task_service.infra.tasks.jobs import JobOptions, JobRequest

# Ensure tests run without external infrastructure
os.environ.setdefault("RABBIT_ENABLED", "false")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("DB_DSN", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("TASK_SCHEDULER_ENABLED", "false")
os.environ.setdefault("LOG_JSON_LOGS", "false")


# ============================================================================
# Cache Fixtures
# ============================================================================


class FakeRedis:
    """In-memory stand-in for the subset of redis.asyncio.Redis the store uses.

    Expiry is driven by ``advance(seconds)`` rather than wall time. Setting
    ``fail`` makes every command raise a connection error; adding a command
    name to ``failing`` makes only that command raise.
    """

    def __init__(self) -> None:
        self.data: dict[str, Any] = {}
        self.expiry: dict[str, float] = {}
        self.now = 0.0
        self.fail = False
        self.failing: set[str] = set()
        self.closed = False
        self.commands: list[tuple[str, tuple[Any, ...]]] = []

    def _check(self, name: str, *args: Any) -> None:
        self.commands.append((name, args))
        if self.fail or name in self.failing:
            raise RedisConnectionError("connection refused")
        for key, deadline in list(self.expiry.items()):
            if deadline <= self.now:
                self.data.pop(key, None)
                self.expiry.pop(key, None)

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def ping(self) -> bool:
        self._check("ping")
        return True

    async def set(self, key: str, value: Any, ex: int | None = None) -> bool:
        self._check("set", key, value, ex)
        self.data[key] = value
        if ex:
            self.expiry[key] = self.now + ex
        else:
            self.expiry.pop(key, None)
        return True

    async def get(self, key: str) -> Any:
        self._check("get", key)
        return self.data.get(key)

    async def delete(self, *keys: str) -> int:
        self._check("delete", *keys)
        deleted = 0
        for key in keys:
            if key in self.data:
                del self.data[key]
                self.expiry.pop(key, None)
                deleted += 1
        return deleted

    async def exists(self, key: str) -> int:
        self._check("exists", key)
        return int(key in self.data)

    async def incr(self, key: str) -> int:
        self._check("incr", key)
        value = int(self.data.get(key, 0)) + 1
        self.data[key] = str(value)
        return value

    async def expire(self, key: str, seconds: int, nx: bool = False) -> bool:
        self._check("expire", key, seconds, nx)
        if key not in self.data or (nx and key in self.expiry):
            return False
        self.expiry[key] = self.now + seconds
        return True

    async def ttl(self, key: str) -> int:
        self._check("ttl", key)
        if key not in self.data:
            return -2
        if key not in self.expiry:
            return -1
        return int(self.expiry[key] - self.now)

    async def keys(self, pattern: str) -> list[str]:
        self._check("keys", pattern)
        return [key for key in self.data if fnmatch.fnmatchcase(key, pattern)]

    def pipeline(self, transaction: bool = True) -> FakePipeline:
        return FakePipeline(self)

    async def aclose(self) -> None:
        self.closed = True


class FakePipeline:
    """Queues commands and applies them all or none on ``execute``."""

    def __init__(self, redis: FakeRedis) -> None:
        self._redis = redis
        self._queued: list[tuple[str, tuple[Any, ...], dict[str, Any]]] = []

    def __getattr__(self, name: str) -> Any:
        def queue(*args: Any, **kwargs: Any) -> FakePipeline:
            self._queued.append((name, args, kwargs))
            return self

        return queue

    async def execute(self) -> list[Any]:
        data = dict(self._redis.data)
        expiry = dict(self._redis.expiry)
        results = []
        try:
            for name, args, kwargs in self._queued:
                results.append(await getattr(self._redis, name)(*args, **kwargs))
        except Exception:
            self._redis.data = data
            self._redis.expiry = expiry
            raise
        finally:
            self._queued.clear()
        return results


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def redis_settings():
    from task_service.core.settings import RedisSettings

    return RedisSettings(
        enabled=True,
        key_prefix="test:",
        default_ttl=300,
        startup_retry_attempts=3,
        startup_retry_delay=0.01,
        startup_retry_max_delay=0.1,
    )


@pytest.fixture
async def counter_store(redis_settings, fake_redis: FakeRedis):
    """CounterStore connected to the in-memory Redis fake."""
    from task_service.infra.cache import CounterStore

    async def no_sleep(_: float) -> None:
        return None

    store = CounterStore(redis_settings, client=fake_redis, sleep=no_sleep)
    await store.connect()
    return store


# ============================================================================
# Queue Fixtures
# ============================================================================


class FakeJobQueue:
    """Records submissions; ``fail_enqueue`` / ``fail_bulk`` simulate outages."""

    def __init__(self) -> None:
        self.jobs: list[tuple[str, dict[str, Any], JobOptions | None]] = []
        self.bulk_calls = 0
        self.fail_enqueue = False
        self.fail_bulk = False
        self.fail_on_names: set[str] = set()
        self.pending: int | None = 0
        self.pending_sequence: list[int] = []

    async def enqueue(
        self,
        name: str,
        payload: dict[str, Any],
        options: JobOptions | None = None,
    ) -> str:
        if self.fail_enqueue or name in self.fail_on_names:
            raise ConnectionError("queue unavailable")
        self.jobs.append((name, payload, options))
        return str(uuid4())

    async def enqueue_bulk(self, jobs: Sequence[JobRequest]) -> list[str]:
        self.bulk_calls += 1
        if self.fail_bulk or self.fail_enqueue:
            raise ConnectionError("queue unavailable")
        ids = []
        for job in jobs:
            self.jobs.append((job.name, job.payload, job.options))
            ids.append(str(uuid4()))
        return ids

    async def pending_count(self) -> int:
        if self.pending_sequence:
            return self.pending_sequence.pop(0)
        if self.pending is None:
            raise ConnectionError("queue unavailable")
        return self.pending

    def names(self) -> list[str]:
        return [name for name, _, _ in self.jobs]


@pytest.fixture
def job_queue() -> FakeJobQueue:
    return FakeJobQueue()


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine]:
    """In-memory SQLite shared by every session (StaticPool) with tables created."""
    from task_service.core.database import Base
    from task_service.features.tasks import models  # noqa: F401

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    from task_service.infra.database import create_session_factory

    return create_session_factory(db_engine)


@pytest.fixture
async def owner(session_factory: async_sessionmaker[AsyncSession]):
    """A persisted user that owns tasks."""
    from task_service.features.tasks.models import User

    async with session_factory() as session, session.begin():
        user = User(email="owner@example.com", name="Owner")
        session.add(user)
    return user


@pytest.fixture
def task_service(session_factory, job_queue: FakeJobQueue):
    from task_service.features.tasks.service import TaskService
    from task_service.infra.tasks.jobs import JobOptions

    return TaskService(session_factory, job_queue, job_options=JobOptions())
