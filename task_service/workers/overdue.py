"""Scheduled producer of overdue-notification jobs."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime
from itertools import batched
import logging
import time
from typing import TYPE_CHECKING, Any

from task_service.features.tasks.repository import TaskRepository
from task_service.infra.cache import NAMESPACE_LOCK
from task_service.infra.metrics.prometheus import (
    overdue_scan_duration_seconds,
    overdue_tasks_found_total,
)
from task_service.infra.tasks.jobs import OVERDUE_NOTIFICATION_JOB, JobOptions, JobRequest

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from task_service.core.settings.tasks import TaskSettings
    from task_service.infra.cache import CounterStore
    from task_service.infra.tasks.queue import JobQueue

logger = logging.getLogger(__name__)

LEASE_KEY = "overdue-scan"


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class ScanReport:
    """Outcome of one scan.

    Attributes:
        found: Overdue tasks selected (at most the per-run ceiling).
        queued: Batch jobs submitted successfully.
        batches: Batch jobs built.
        failed_batches: Batch jobs that could not be submitted.
        elapsed_ms: Wall time of the run.
        ceiling_hit: The per-run ceiling truncated the selection.
        skipped: Another run held the lock; nothing was done.
    """

    found: int = 0
    queued: int = 0
    batches: int = 0
    failed_batches: int = 0
    elapsed_ms: float = 0.0
    ceiling_hit: bool = False
    skipped: bool = False


class OverdueScanner:
    """Find overdue tasks and flood them into the queue in fixed-size batches.

    Selection is ``due_date < now`` and status not COMPLETED, oldest due
    date first, capped at ``max_tasks_per_run``. Tasks beyond the ceiling
    wait for the next run.

    Runs never overlap: an in-process lock covers this instance and a lease
    in the counter store covers other instances. When the counter store is
    unavailable the scan proceeds under the local lock only.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        queue: JobQueue,
        repository: TaskRepository | None = None,
        *,
        store: CounterStore | None = None,
        batch_size: int = 100,
        max_tasks_per_run: int = 1000,
        lock_ttl_seconds: int = 3600,
        job_options: JobOptions | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if batch_size < 1 or max_tasks_per_run < 1:
            raise ValueError("batch_size and max_tasks_per_run must be positive")
        self._session_factory = session_factory
        self._queue = queue
        self._repository = repository or TaskRepository()
        self._store = store
        self.batch_size = batch_size
        self.max_tasks_per_run = max_tasks_per_run
        self._lock_ttl = lock_ttl_seconds
        self._job_options = job_options or JobOptions()
        self._clock = clock
        self._local_lock = asyncio.Lock()

    @classmethod
    def from_settings(
        cls,
        settings: TaskSettings,
        session_factory: async_sessionmaker[AsyncSession],
        queue: JobQueue,
        *,
        store: CounterStore | None = None,
    ) -> OverdueScanner:
        return cls(
            session_factory,
            queue,
            store=store,
            batch_size=settings.overdue_batch_size,
            max_tasks_per_run=settings.overdue_max_tasks_per_run,
            lock_ttl_seconds=settings.overdue_lock_ttl_seconds,
            job_options=JobOptions.from_settings(settings),
        )

    # ──────────────────────────────────────────────────────────────
    # Run lock
    # ──────────────────────────────────────────────────────────────

    async def _acquire_lease(self) -> bool | None:
        """True when this run owns the lease, False when another run does,
        None when the counter store is unavailable."""
        if self._store is None:
            return None
        count = await self._store.increment(LEASE_KEY, NAMESPACE_LOCK, ttl=self._lock_ttl)
        if count == 0:
            logger.warning("Scan lease unavailable, relying on the local lock only")
            return None
        return count == 1

    async def _release_lease(self) -> None:
        if self._store is not None:
            await self._store.delete(LEASE_KEY, NAMESPACE_LOCK)

    # ──────────────────────────────────────────────────────────────
    # Scanning
    # ──────────────────────────────────────────────────────────────

    async def scan(self) -> ScanReport:
        """Run one scan unless another is already in progress."""
        if self._local_lock.locked():
            logger.info("Overdue scan already running in this process, skipping")
            return ScanReport(skipped=True)

        async with self._local_lock:
            lease = await self._acquire_lease()
            if lease is False:
                logger.info("Overdue scan running on another instance, skipping")
                return ScanReport(skipped=True)
            try:
                return await self._run()
            finally:
                if lease:
                    await self._release_lease()

    async def _run(self) -> ScanReport:
        start = time.perf_counter()
        now = self._clock()

        async with self._session_factory() as session:
            ids = await self._repository.find_overdue_ids(
                session,
                now=now,
                limit=self.max_tasks_per_run,
            )

        found = len(ids)
        ceiling_hit = found >= self.max_tasks_per_run
        overdue_tasks_found_total.inc(found)

        if not ids:
            elapsed_ms = self._elapsed_ms(start)
            logger.info("No overdue tasks found", extra={"elapsed_ms": elapsed_ms})
            return ScanReport(elapsed_ms=elapsed_ms)

        checked_at = now.isoformat()
        jobs = [
            JobRequest(
                name=OVERDUE_NOTIFICATION_JOB,
                payload={
                    "task_ids": [str(task_id) for task_id in chunk],
                    "batch_size": self.batch_size,
                    "checked_at": checked_at,
                },
                options=self._job_options,
            )
            for chunk in batched(ids, self.batch_size)
        ]
        queued, failed = await self._submit(jobs)

        elapsed_ms = self._elapsed_ms(start)
        report = ScanReport(
            found=found,
            queued=queued,
            batches=len(jobs),
            failed_batches=failed,
            elapsed_ms=elapsed_ms,
            ceiling_hit=ceiling_hit,
        )
        logger.info(
            "Overdue scan completed",
            extra={
                "found": found,
                "queued": queued,
                "batches": len(jobs),
                "failed_batches": failed,
                "elapsed_ms": elapsed_ms,
            },
        )
        if ceiling_hit:
            logger.warning(
                "Overdue scan hit the per-run ceiling; remaining tasks wait for the next run",
                extra={"max_tasks_per_run": self.max_tasks_per_run},
            )
        return report

    async def _submit(self, jobs: Sequence[JobRequest]) -> tuple[int, int]:
        """Submit in bulk, falling back to one-at-a-time on failure.

        Returns:
            (queued, failed) batch counts.
        """
        try:
            await self._queue.enqueue_bulk(jobs)
        except Exception as exc:
            logger.warning(
                "Bulk enqueue failed, falling back to individual submissions",
                extra={"batches": len(jobs), "error": str(exc)},
            )
        else:
            return len(jobs), 0

        queued = failed = 0
        for index, job in enumerate(jobs):
            try:
                await self._queue.enqueue(job.name, job.payload, job.options)
            except Exception as exc:
                failed += 1
                logger.error(
                    "Failed to enqueue overdue batch",
                    extra={
                        "batch_index": index,
                        "batch_size": len(job.payload["task_ids"]),
                        "error": str(exc),
                    },
                )
            else:
                queued += 1
        return queued, failed

    def _elapsed_ms(self, start: float) -> float:
        elapsed = time.perf_counter() - start
        overdue_scan_duration_seconds.observe(elapsed)
        return round(elapsed * 1000, 2)

    async def scan_manual(self) -> dict[str, Any]:
        """Trigger a scan on demand and report its effect on the queue.

        Both figures are estimated from the change in pending jobs around
        the scan, so concurrent producers and consumers skew them; the
        delta is clamped at zero. When the queue cannot report a pending
        count the scan's own report is used instead.
        """
        before = await self._pending_count()
        report = await self.scan()
        after = await self._pending_count()

        if before is None or after is None:
            return {"found": report.found, "queued": report.queued}

        delta = max(after - before, 0)
        return {"found": delta, "queued": delta}

    async def _pending_count(self) -> int | None:
        try:
            return await self._queue.pending_count()
        except Exception as exc:
            logger.warning("Could not read queue pending count", extra={"error": str(exc)})
            return None
