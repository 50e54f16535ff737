"""Overdue scan commands."""

from __future__ import annotations

import sys

import click

from task_service.cli.utils import coro, error, header, info, success, warning
from task_service.core.settings import (
    get_db_settings,
    get_rabbit_settings,
    get_redis_settings,
    get_task_settings,
)
from task_service.infra.cache import CounterStore
from task_service.infra.database import close_database, create_engine, create_session_factory


@click.group(name="overdue")
def overdue() -> None:
    """Overdue task scanning commands."""


@overdue.command()
@coro
async def scan() -> None:
    """Run one overdue scan now and queue notification batches.

    Uses the same run lease as the scheduled scan, so it is skipped while
    another instance is scanning.
    """
    from task_service.infra.tasks.broker import broker, start_broker, stop_broker
    from task_service.infra.tasks.queue import TaskiqJobQueue
    from task_service.workers.overdue import OverdueScanner

    task_settings = get_task_settings()
    rabbit_settings = get_rabbit_settings()
    if not rabbit_settings.is_configured:
        warning("RabbitMQ not configured - jobs will run in this process")

    engine = create_engine(get_db_settings())
    store = CounterStore(get_redis_settings())
    await store.connect()
    await start_broker()

    try:
        scanner = OverdueScanner.from_settings(
            task_settings,
            create_session_factory(engine),
            TaskiqJobQueue(
                broker,
                task_settings,
                rabbit_settings if rabbit_settings.is_configured else None,
            ),
            store=store,
        )
        info("Scanning for overdue tasks...")
        report = await scanner.scan()
    except Exception as e:
        error(f"Overdue scan failed: {e}")
        sys.exit(1)
    finally:
        await stop_broker()
        await store.disconnect()
        await close_database(engine)

    if report.skipped:
        warning("Another scan holds the run lease; nothing done")
        return

    header("Overdue scan")
    click.echo(f"  Found:          {report.found}")
    click.echo(f"  Queued:         {report.queued}")
    click.echo(f"  Batches:        {report.batches}")
    click.echo(f"  Failed batches: {report.failed_batches}")
    click.echo(f"  Elapsed:        {report.elapsed_ms} ms")
    if report.ceiling_hit:
        warning(f"Scan ceiling reached ({task_settings.overdue_max_tasks_per_run}); the rest wait for the next run")
    success("Overdue scan complete")
