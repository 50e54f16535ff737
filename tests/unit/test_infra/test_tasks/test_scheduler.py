"""Tests for the APScheduler integration."""

from __future__ import annotations

from apscheduler.triggers.cron import CronTrigger

from task_service.core.settings import TaskSettings
from task_service.infra.tasks.scheduler import (
    OVERDUE_SCAN_JOB_ID,
    create_scheduler,
    schedule_overdue_scan,
    start_scheduler,
    stop_scheduler,
)


async def noop_scan() -> None:
    return None


def test_overdue_scan_registered_hourly() -> None:
    scheduler = create_scheduler()

    schedule_overdue_scan(scheduler, noop_scan, TaskSettings(scan_cron_minute="15"))

    job = scheduler.get_job(OVERDUE_SCAN_JOB_ID)
    assert job is not None
    assert isinstance(job.trigger, CronTrigger)
    fields = {field.name: str(field) for field in job.trigger.fields}
    assert fields["minute"] == "15"
    assert fields["hour"] == "*"


async def test_rescheduling_replaces_job() -> None:
    scheduler = create_scheduler()
    await start_scheduler(scheduler)
    try:
        schedule_overdue_scan(scheduler, noop_scan, TaskSettings())
        schedule_overdue_scan(scheduler, noop_scan, TaskSettings(scan_cron_minute="30"))

        assert len(scheduler.get_jobs()) == 1
    finally:
        await stop_scheduler(scheduler)


async def test_start_and_stop() -> None:
    scheduler = create_scheduler()
    schedule_overdue_scan(scheduler, noop_scan, TaskSettings())

    await start_scheduler(scheduler)
    assert scheduler.running

    await stop_scheduler(scheduler)
    assert not scheduler.running

    # Stopping twice is harmless
    await stop_scheduler(scheduler)
