"""Counter store commands."""

import sys

import click

from task_service.cli.utils import coro, error, info, success, warning
from task_service.core.settings import get_redis_settings
from task_service.infra.cache import CounterStore


@click.group(name="cache")
def cache() -> None:
    """Counter store management commands."""


@cache.command()
@click.argument("namespace")
@click.option(
    "--force",
    is_flag=True,
    help="Skip confirmation prompt",
)
@coro
async def clear(namespace: str, force: bool) -> None:
    """Delete every key under NAMESPACE (e.g. rate_limit, task)."""
    warning(f"This will delete all keys in namespace: {namespace}")
    warning("Uses KEYS, which blocks Redis while it runs")

    if not force and not click.confirm("Are you sure you want to continue?"):
        info("Clear cancelled")
        return

    store = CounterStore(get_redis_settings())
    if not await store.connect():
        error("Counter store is unavailable")
        sys.exit(1)

    try:
        deleted = await store.clear(namespace)
    finally:
        await store.disconnect()

    success(f"Deleted {deleted} key(s) from namespace '{namespace}'")
