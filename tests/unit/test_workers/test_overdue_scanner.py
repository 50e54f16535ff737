"""Tests for OverdueScanner batching, ceilings and run exclusion."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from task_service.core.settings import TaskSettings
from task_service.features.tasks.models import Task, TaskStatus
from task_service.infra.cache import NAMESPACE_LOCK
from task_service.infra.tasks.jobs import OVERDUE_NOTIFICATION_JOB, JobOptions
from task_service.workers.overdue import LEASE_KEY, OverdueScanner, ScanReport

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)


async def seed_overdue(session_factory, owner, count: int) -> list[str]:
    """Create ``count`` overdue tasks, oldest first, and return their ids."""
    async with session_factory() as session, session.begin():
        tasks = [
            Task(title=f"Task {n}", user_id=owner.id, due_date=NOW - timedelta(hours=count - n))
            for n in range(count)
        ]
        session.add_all(tasks)
        session.add(Task(title="Done", user_id=owner.id, due_date=NOW - timedelta(days=9), status=TaskStatus.COMPLETED))
        session.add(Task(title="Later", user_id=owner.id, due_date=NOW + timedelta(days=1)))
    return [str(task.id) for task in tasks]


def make_scanner(session_factory, job_queue, **kwargs) -> OverdueScanner:
    kwargs.setdefault("clock", lambda: NOW)
    return OverdueScanner(session_factory, job_queue, **kwargs)


# =============================================================================
# Batching
# =============================================================================


class TestBatching:
    async def test_splits_ids_into_fixed_size_batches(self, session_factory, owner, job_queue) -> None:
        ids = await seed_overdue(session_factory, owner, 5)
        scanner = make_scanner(session_factory, job_queue, batch_size=2)

        report = await scanner.scan()

        assert (report.found, report.queued, report.batches, report.failed_batches) == (5, 3, 3, 0)
        assert not report.ceiling_hit
        assert job_queue.bulk_calls == 1
        assert job_queue.names() == [OVERDUE_NOTIFICATION_JOB] * 3
        batches = [payload["task_ids"] for _, payload, _ in job_queue.jobs]
        assert batches == [ids[0:2], ids[2:4], ids[4:5]]
        assert all(payload["batch_size"] == 2 for _, payload, _ in job_queue.jobs)
        assert job_queue.jobs[0][1]["checked_at"] == NOW.isoformat()

    async def test_no_overdue_tasks_queues_nothing(self, session_factory, owner, job_queue) -> None:
        scanner = make_scanner(session_factory, job_queue)

        report = await scanner.scan()

        assert report.found == 0
        assert job_queue.jobs == []
        assert job_queue.bulk_calls == 0

    async def test_ceiling_truncates_selection(self, session_factory, owner, job_queue) -> None:
        ids = await seed_overdue(session_factory, owner, 5)
        scanner = make_scanner(session_factory, job_queue, batch_size=10, max_tasks_per_run=3)

        report = await scanner.scan()

        assert report.found == 3
        assert report.ceiling_hit
        assert job_queue.jobs[0][1]["task_ids"] == ids[:3]

    def test_rejects_non_positive_sizes(self, session_factory, job_queue) -> None:
        with pytest.raises(ValueError):
            OverdueScanner(session_factory, job_queue, batch_size=0)

    def test_from_settings(self, session_factory, job_queue) -> None:
        settings = TaskSettings(overdue_batch_size=25, overdue_max_tasks_per_run=500, max_attempts=5)

        scanner = OverdueScanner.from_settings(settings, session_factory, job_queue)

        assert (scanner.batch_size, scanner.max_tasks_per_run) == (25, 500)
        assert scanner._job_options == JobOptions(attempts=5)


# =============================================================================
# Submission fallback
# =============================================================================


class TestSubmission:
    async def test_falls_back_to_individual_submission(self, session_factory, owner, job_queue) -> None:
        await seed_overdue(session_factory, owner, 4)
        job_queue.fail_bulk = True
        scanner = make_scanner(session_factory, job_queue, batch_size=2)

        report = await scanner.scan()

        assert (report.queued, report.failed_batches) == (2, 0)
        assert len(job_queue.jobs) == 2

    async def test_individual_failures_are_counted(self, session_factory, owner, job_queue) -> None:
        await seed_overdue(session_factory, owner, 4)
        job_queue.fail_enqueue = True
        scanner = make_scanner(session_factory, job_queue, batch_size=2)

        report = await scanner.scan()

        assert (report.found, report.queued, report.failed_batches) == (4, 0, 2)


# =============================================================================
# Run exclusion
# =============================================================================


class TestRunExclusion:
    async def test_lease_held_elsewhere_skips_run(self, session_factory, owner, job_queue, counter_store) -> None:
        await seed_overdue(session_factory, owner, 2)
        await counter_store.increment(LEASE_KEY, NAMESPACE_LOCK, ttl=3600)
        scanner = make_scanner(session_factory, job_queue, store=counter_store)

        report = await scanner.scan()

        assert report == ScanReport(skipped=True)
        assert job_queue.jobs == []

    async def test_lease_released_after_run(self, session_factory, owner, job_queue, counter_store) -> None:
        await seed_overdue(session_factory, owner, 2)
        scanner = make_scanner(session_factory, job_queue, store=counter_store)

        first = await scanner.scan()
        second = await scanner.scan()

        assert not first.skipped
        assert not second.skipped
        assert not await counter_store.has(LEASE_KEY, NAMESPACE_LOCK)

    async def test_store_outage_falls_back_to_local_lock(
        self, session_factory, owner, job_queue, counter_store, fake_redis
    ) -> None:
        await seed_overdue(session_factory, owner, 2)
        fake_redis.fail = True
        scanner = make_scanner(session_factory, job_queue, store=counter_store)

        report = await scanner.scan()

        assert report.found == 2
        assert not report.skipped

    async def test_failed_lease_expiry_does_not_block_later_runs(
        self, session_factory, owner, job_queue, counter_store, fake_redis
    ) -> None:
        await seed_overdue(session_factory, owner, 2)
        scanner = make_scanner(session_factory, job_queue, store=counter_store)
        fake_redis.failing.add("expire")

        first = await scanner.scan()
        fake_redis.failing.clear()
        second = await scanner.scan()

        assert not first.skipped
        assert not second.skipped
        assert not await counter_store.has(LEASE_KEY, NAMESPACE_LOCK)

    async def test_concurrent_runs_in_one_process_do_not_overlap(self, session_factory, owner, job_queue) -> None:
        await seed_overdue(session_factory, owner, 2)
        scanner = make_scanner(session_factory, job_queue)

        reports = await asyncio.gather(scanner.scan(), scanner.scan())

        assert sorted(report.skipped for report in reports) == [False, True]
        assert job_queue.bulk_calls == 1


# =============================================================================
# Manual trigger
# =============================================================================


class TestScanManual:
    async def test_reports_pending_delta(self, session_factory, owner, job_queue) -> None:
        await seed_overdue(session_factory, owner, 3)
        job_queue.pending_sequence = [10, 12]
        scanner = make_scanner(session_factory, job_queue, batch_size=2)

        assert await scanner.scan_manual() == {"found": 2, "queued": 2}

    async def test_delta_clamped_at_zero(self, session_factory, owner, job_queue) -> None:
        await seed_overdue(session_factory, owner, 1)
        job_queue.pending_sequence = [10, 4]
        scanner = make_scanner(session_factory, job_queue)

        assert await scanner.scan_manual() == {"found": 0, "queued": 0}

    async def test_uses_report_without_pending_count(self, session_factory, owner, job_queue) -> None:
        await seed_overdue(session_factory, owner, 3)
        job_queue.pending = None
        scanner = make_scanner(session_factory, job_queue, batch_size=2)

        assert await scanner.scan_manual() == {"found": 3, "queued": 2}
