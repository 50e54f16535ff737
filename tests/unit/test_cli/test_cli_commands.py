"""Tests for the task-service CLI.

Testing approach:
- Uses Click's CliRunner for command invocation
- Swaps the counter store for the in-memory Redis fake
- Tests exit codes when RabbitMQ is not configured
"""

from unittest.mock import patch

from click.testing import CliRunner
import pytest

from task_service.cli.commands.worker import BROKER_PATH, worker_command
from task_service.cli.main import cli
from task_service.infra.cache import CounterStore

# =============================================================================
# Test Fixtures
# =============================================================================


@pytest.fixture
def cli_runner():
    """Create Click CLI runner for testing commands."""
    return CliRunner()


@pytest.fixture
def patched_store(fake_redis):
    """Make the cache commands build their store around the Redis fake."""

    async def no_sleep(_):
        return None

    def factory(settings):
        return CounterStore(settings, client=fake_redis, sleep=no_sleep)

    with patch("task_service.cli.commands.cache.CounterStore", side_effect=factory):
        yield fake_redis


# =============================================================================
# Worker
# =============================================================================


def test_worker_command_line() -> None:
    assert worker_command(3) == ["taskiq", "worker", BROKER_PATH, "--workers", "3"]


def test_worker_dry_run_prints_invocation(cli_runner) -> None:
    result = cli_runner.invoke(cli, ["worker", "--workers", "2", "--dry-run"])

    assert result.exit_code == 0
    assert "taskiq worker task_service.infra.tasks.broker:broker --workers 2" in result.output


def test_worker_rejects_zero_processes(cli_runner) -> None:
    result = cli_runner.invoke(cli, ["worker", "--workers", "0", "--dry-run"])

    assert result.exit_code == 2


# =============================================================================
# Queue
# =============================================================================


def test_queue_pending_requires_rabbit(cli_runner) -> None:
    result = cli_runner.invoke(cli, ["queue", "pending"])

    assert result.exit_code == 1
    assert "RabbitMQ is not configured" in result.output


# =============================================================================
# Cache
# =============================================================================


def test_cache_clear_deletes_namespace(cli_runner, patched_store) -> None:
    patched_store.data.update(
        {
            "task-service:rate_limit:login:a": "1",
            "task-service:rate_limit:default:b": "4",
            "task-service:task:summary": "{}",
        }
    )

    result = cli_runner.invoke(cli, ["cache", "clear", "rate_limit", "--force"])

    assert result.exit_code == 0, result.output
    assert "Deleted 2 key(s) from namespace 'rate_limit'" in result.output
    assert list(patched_store.data) == ["task-service:task:summary"]
    assert patched_store.closed


def test_cache_clear_can_be_cancelled(cli_runner, patched_store) -> None:
    patched_store.data["task-service:rate_limit:login:a"] = "1"

    result = cli_runner.invoke(cli, ["cache", "clear", "rate_limit"], input="n\n")

    assert "Clear cancelled" in result.output
    assert patched_store.data


def test_cache_clear_fails_when_store_down(cli_runner, patched_store) -> None:
    patched_store.fail = True

    result = cli_runner.invoke(cli, ["cache", "clear", "task", "--force"])

    assert result.exit_code == 1
    assert "Counter store is unavailable" in result.output
