"""Main CLI entry point for task-service management commands."""

import click

from task_service.cli.commands import cache, overdue, queue, worker
from task_service.infra.logging.config import setup_logging


@click.group()
@click.version_option(version="0.1.0", prog_name="task-service")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Task Service CLI - operator commands for the job pipeline.

    \b
    Command Groups:
      overdue    Overdue task scanning
      queue      Job queue inspection
      cache      Counter store maintenance
      worker     Run the taskiq worker

    \b
    Quick Start:
      task-service overdue scan
      task-service queue pending
      task-service cache clear rate_limit
      task-service worker --dry-run
    """
    setup_logging()
    ctx.ensure_object(dict)


cli.add_command(overdue.overdue)
cli.add_command(queue.queue)
cli.add_command(cache.cache)
cli.add_command(worker.worker)


def main() -> None:
    """Entry point for CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
