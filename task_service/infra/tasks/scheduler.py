"""In-process APScheduler that triggers the hourly overdue scan.

The scheduler only calls ``OverdueScanner.scan``; the scan itself publishes
notification jobs that the taskiq workers execute. Every API replica runs a
scheduler, and the scanner's run lease keeps them from scanning together.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from task_service.core.settings.tasks import TaskSettings

logger = logging.getLogger(__name__)

OVERDUE_SCAN_JOB_ID = "overdue-tasks-scan"

# A late tick (event loop busy, process paused) still runs once within a
# minute; ticks missed beyond that collapse into the next one
_JOB_DEFAULTS = {"coalesce": True, "max_instances": 1, "misfire_grace_time": 60}


def create_scheduler() -> AsyncIOScheduler:
    return AsyncIOScheduler(timezone="UTC", job_defaults=_JOB_DEFAULTS)


def schedule_overdue_scan(
    scheduler: AsyncIOScheduler,
    scan: Callable[[], Awaitable[Any]],
    settings: TaskSettings,
) -> None:
    """Run ``scan`` at minute ``scan_cron_minute`` of every hour, replacing any earlier registration."""
    scheduler.add_job(
        scan,
        CronTrigger(minute=settings.scan_cron_minute, timezone="UTC"),
        id=OVERDUE_SCAN_JOB_ID,
        name="overdue task scan",
        replace_existing=True,
    )
    logger.info("Overdue scan scheduled", extra={"minute": settings.scan_cron_minute})


async def start_scheduler(scheduler: AsyncIOScheduler) -> None:
    if scheduler.running:
        return
    scheduler.start()
    logger.info("Scheduler started", extra={"jobs": [job.id for job in scheduler.get_jobs()]})


async def stop_scheduler(scheduler: AsyncIOScheduler) -> None:
    if not scheduler.running:
        return
    scheduler.shutdown(wait=True)
    logger.info("Scheduler stopped")
