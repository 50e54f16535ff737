"""Worker command."""

import shutil
import subprocess
import sys

import click

from task_service.cli.utils import error, info

BROKER_PATH = "task_service.infra.tasks.broker:broker"


def worker_command(workers: int) -> list[str]:
    return ["taskiq", "worker", BROKER_PATH, "--workers", str(workers)]


@click.command()
@click.option(
    "--workers",
    default=1,
    show_default=True,
    type=click.IntRange(min=1),
    help="Number of worker processes",
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Print the taskiq invocation instead of running it",
)
def worker(workers: int, dry_run: bool) -> None:
    """Run the taskiq job worker.

    Per-process concurrency and throughput are set by TASK_WORKER_CONCURRENCY,
    TASK_WORKER_MAX_STARTS and TASK_WORKER_WINDOW_SECONDS.
    """
    cmd = worker_command(workers)
    if dry_run:
        click.echo(" ".join(cmd))
        return

    if shutil.which("taskiq") is None:
        error("taskiq executable not found on PATH")
        sys.exit(1)

    info(f"Starting worker: {' '.join(cmd)}")
    try:
        result = subprocess.run(cmd, check=False)
    except KeyboardInterrupt:
        info("\nShutting down worker...")
        return
    sys.exit(result.returncode)
