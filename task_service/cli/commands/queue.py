"""Job queue commands."""

import sys

import click

from task_service.cli.utils import coro, error, info, success
from task_service.core.settings import get_rabbit_settings, get_task_settings


@click.group(name="queue")
def queue() -> None:
    """Job queue inspection commands."""


@queue.command()
@coro
async def pending() -> None:
    """Show the number of jobs waiting in the job queue."""
    from task_service.infra.tasks.broker import broker
    from task_service.infra.tasks.queue import TaskiqJobQueue

    rabbit_settings = get_rabbit_settings()
    task_settings = get_task_settings()
    if not rabbit_settings.is_configured:
        error("RabbitMQ is not configured (set RABBIT_AMQP_URI)")
        sys.exit(1)

    job_queue = TaskiqJobQueue(broker, task_settings, rabbit_settings)
    queue_name = rabbit_settings.get_prefixed_queue(task_settings.queue_name)
    info(f"Inspecting queue: {queue_name}")

    try:
        count = await job_queue.pending_count()
    except Exception as e:
        error(f"Failed to read pending count: {e}")
        sys.exit(1)

    success(f"{count} job(s) pending")
