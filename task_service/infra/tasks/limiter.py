"""Worker-side execution gate: concurrency plus start throughput."""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable
import time
from typing import TYPE_CHECKING, Any, Self

from task_service.infra.logging import get_lazy_logger
from task_service.infra.metrics.prometheus import jobs_in_flight

if TYPE_CHECKING:
    from types import TracebackType

    from task_service.core.settings.tasks import TaskSettings

lazy_logger = get_lazy_logger(__name__)


class WorkerLimiter:
    """Gate job executions on two limits.

    * at most ``concurrency`` executions in flight, and
    * at most ``max_starts`` execution starts in any rolling
      ``window_seconds`` window.

    Waiters are admitted in arrival order. The limiter is process-local;
    with several worker processes the effective limits multiply.

    Example:
        limiter = WorkerLimiter(concurrency=5, max_starts=10, window_seconds=1.0)
        async with limiter:
            await handler.handle(job)
    """

    def __init__(
        self,
        concurrency: int,
        max_starts: int,
        window_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if concurrency < 1 or max_starts < 1 or window_seconds <= 0:
            raise ValueError("Limiter bounds must be positive")
        self.concurrency = concurrency
        self.max_starts = max_starts
        self.window_seconds = window_seconds
        self._clock = clock
        self._sleep = sleep
        self._slots = asyncio.Semaphore(concurrency)
        self._window_lock = asyncio.Lock()
        self._starts: deque[float] = deque()
        self._in_flight = 0

    @classmethod
    def from_settings(cls, settings: TaskSettings) -> WorkerLimiter:
        return cls(
            concurrency=settings.worker_concurrency,
            max_starts=settings.worker_max_starts,
            window_seconds=settings.worker_window_seconds,
        )

    @property
    def in_flight(self) -> int:
        return self._in_flight

    async def _reserve_start(self) -> None:
        async with self._window_lock:
            while True:
                now = self._clock()
                while self._starts and self._starts[0] <= now - self.window_seconds:
                    self._starts.popleft()
                if len(self._starts) < self.max_starts:
                    self._starts.append(now)
                    return
                wait = self._starts[0] + self.window_seconds - now
                lazy_logger.debug(lambda: f"start throughput reached, waiting {wait:.3f}s")
                await self._sleep(wait)

    async def __aenter__(self) -> Self:
        await self._slots.acquire()
        try:
            await self._reserve_start()
        except BaseException:
            self._slots.release()
            raise
        self._in_flight += 1
        jobs_in_flight.inc()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self._in_flight -= 1
        jobs_in_flight.dec()
        self._slots.release()
