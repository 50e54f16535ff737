"""Taskiq result backend that keeps failures longer than successes.

A finished job's result stays readable for ``completed_ttl`` seconds and a
failed one for ``failed_ttl``; nothing is stored without an expiry.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from redis.asyncio import BlockingConnectionPool, Redis
from taskiq import AsyncResultBackend
from taskiq.compat import model_dump, model_validate
from taskiq.depends.progress_tracker import TaskProgress
from taskiq.exceptions import ResultGetError
from taskiq.result import TaskiqResult
from taskiq.serializers import PickleSerializer

if TYPE_CHECKING:
    from taskiq.abc.serializer import TaskiqSerializer


class ResultIsMissingError(ResultGetError):
    """No stored result for the requested task id."""


class RetentionRedisResultBackend[R](AsyncResultBackend[R]):
    def __init__(
        self,
        redis_url: str,
        completed_ttl: int,
        failed_ttl: int,
        *,
        key_prefix: str | None = None,
        keep_results: bool = True,
        max_connections: int | None = None,
        serializer: TaskiqSerializer | None = None,
    ) -> None:
        if min(completed_ttl, failed_ttl) <= 0:
            raise ValueError("Result retention must be greater than zero seconds")
        self.completed_ttl = completed_ttl
        self.failed_ttl = failed_ttl
        self.key_prefix = key_prefix
        self.keep_results = keep_results
        self.serializer = serializer or PickleSerializer()
        self._pool = BlockingConnectionPool.from_url(redis_url, max_connections=max_connections)

    def _key(self, task_id: str, suffix: str = "") -> str:
        base = f"{self.key_prefix}:{task_id}" if self.key_prefix else task_id
        return base + suffix

    def expiry_for(self, result: TaskiqResult[Any]) -> int:
        return self.failed_ttl if result.is_err else self.completed_ttl

    async def _write(self, key: str, payload: Any, ttl: int) -> None:
        async with Redis(connection_pool=self._pool) as redis:
            await redis.set(key, self.serializer.dumpb(model_dump(payload)), ex=ttl)

    async def shutdown(self) -> None:
        await self._pool.disconnect()
        await super().shutdown()

    async def set_result(self, task_id: str, result: TaskiqResult[R]) -> None:
        await self._write(self._key(task_id), result, self.expiry_for(result))

    async def is_result_ready(self, task_id: str) -> bool:
        async with Redis(connection_pool=self._pool) as redis:
            return bool(await redis.exists(self._key(task_id)))

    async def get_result(self, task_id: str, with_logs: bool = False) -> TaskiqResult[R]:
        """Load a stored result; it is deleted on read unless ``keep_results``.

        Raises:
            ResultIsMissingError: Nothing stored under ``task_id`` (never
                written, or already expired).
        """
        async with Redis(connection_pool=self._pool) as redis:
            key = self._key(task_id)
            raw = await (redis.get(key) if self.keep_results else redis.getdel(key))
        if raw is None:
            raise ResultIsMissingError
        result = model_validate(TaskiqResult[R], self.serializer.loadb(raw))
        if not with_logs:
            result.log = None
        return result

    async def set_progress(self, task_id: str, progress: TaskProgress[R]) -> None:
        await self._write(self._key(task_id, "__progress"), progress, self.completed_ttl)

    async def get_progress(self, task_id: str) -> TaskProgress[R] | None:
        async with Redis(connection_pool=self._pool) as redis:
            raw = await redis.get(self._key(task_id, "__progress"))
        if raw is None:
            return None
        return model_validate(TaskProgress[R], self.serializer.loadb(raw))
