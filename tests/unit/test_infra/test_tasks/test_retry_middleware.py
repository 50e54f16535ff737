"""Tests for ClassifiedRetryMiddleware and JobMetricsMiddleware."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from taskiq import TaskiqMessage
from taskiq.exceptions import NoResultError

from task_service.infra.metrics.prometheus import (
    job_executions_total,
    job_retries_total,
    jobs_abandoned_total,
)
from task_service.infra.tasks.jobs import PROCESS_JOB_TASK_NAME, FailureKind, JobFailure
from task_service.infra.tasks.middleware import (
    ClassifiedRetryMiddleware,
    JobMetricsMiddleware,
    job_name_of,
)


def make_message(retries: int = 0, **labels) -> TaskiqMessage:
    base = {"max_retries": 3, "backoff_delay": 2.0, "backoff_max_delay": 60.0}
    base.update(labels)
    if retries:
        base["_retries"] = retries
    return TaskiqMessage(
        task_id="task-1",
        task_name=PROCESS_JOB_TASK_NAME,
        labels=base,
        args=[],
        kwargs={"name": "task-status-update", "payload": {"task_id": "x"}},
    )


@pytest.fixture
def kicker():
    """Patch AsyncKicker so re-kicks are recorded instead of sent."""
    with patch("task_service.infra.tasks.middleware.AsyncKicker") as kicker_cls:
        instance = kicker_cls.return_value
        instance.with_labels.return_value = instance
        instance.kiq = AsyncMock()
        yield kicker_cls


def counter_value(counter, **labels) -> float:
    return counter.labels(**labels)._value.get()


def test_job_name_read_from_kwargs_then_args() -> None:
    message = make_message()
    assert job_name_of(message) == "task-status-update"

    message.kwargs = {}
    message.args = ["overdue-tasks-notification", {}]
    assert job_name_of(message) == "overdue-tasks-notification"

    message.args = []
    assert job_name_of(message) == PROCESS_JOB_TASK_NAME


async def test_retryable_failure_is_rekicked_with_backoff(kicker) -> None:
    middleware = ClassifiedRetryMiddleware()
    middleware.set_broker(MagicMock())
    result = MagicMock()
    before = counter_value(job_retries_total, task_name="task-status-update")

    await middleware.on_error(make_message(retries=1), result, RuntimeError("db down"))

    instance = kicker.return_value
    instance.with_labels.assert_called_once_with(_retries=2, delay=4)
    instance.kiq.assert_awaited_once_with(name="task-status-update", payload={"task_id": "x"})
    assert isinstance(result.error, NoResultError)
    assert counter_value(job_retries_total, task_name="task-status-update") == before + 1


async def test_first_retry_waits_base_delay(kicker) -> None:
    middleware = ClassifiedRetryMiddleware()
    middleware.set_broker(MagicMock())

    await middleware.on_error(make_message(), MagicMock(), JobFailure("timeout"))

    kicker.return_value.with_labels.assert_called_once_with(_retries=1, delay=2)


async def test_terminal_failure_is_not_retried(kicker) -> None:
    middleware = ClassifiedRetryMiddleware()
    middleware.set_broker(MagicMock())
    before = counter_value(jobs_abandoned_total, task_name="task-status-update", reason="terminal")

    await middleware.on_error(
        make_message(),
        MagicMock(),
        JobFailure("bad payload", FailureKind.TERMINAL),
    )

    kicker.assert_not_called()
    assert counter_value(jobs_abandoned_total, task_name="task-status-update", reason="terminal") == before + 1


async def test_stops_after_max_attempts(kicker) -> None:
    middleware = ClassifiedRetryMiddleware()
    middleware.set_broker(MagicMock())
    before = counter_value(jobs_abandoned_total, task_name="task-status-update", reason="exhausted")

    # Third delivery of a three-attempt job
    await middleware.on_error(make_message(retries=2), MagicMock(), RuntimeError("still down"))

    kicker.assert_not_called()
    assert counter_value(jobs_abandoned_total, task_name="task-status-update", reason="exhausted") == before + 1


def test_retry_delay_rounds_up_and_respects_cap() -> None:
    middleware = ClassifiedRetryMiddleware()

    assert middleware.retry_delay(make_message(backoff_delay=0.5), 0) == 1
    assert middleware.retry_delay(make_message(backoff_max_delay=5.0), 3) == 5


async def test_metrics_middleware_counts_outcomes() -> None:
    middleware = JobMetricsMiddleware()
    message = make_message()
    success_before = counter_value(job_executions_total, job_name="task-status-update", outcome="success")
    terminal_before = counter_value(job_executions_total, job_name="task-status-update", outcome="terminal")

    await middleware.pre_execute(message)
    await middleware.post_execute(message, MagicMock(is_err=False))
    await middleware.on_error(message, MagicMock(), JobFailure("bad", FailureKind.TERMINAL))

    assert counter_value(job_executions_total, job_name="task-status-update", outcome="success") == success_before + 1
    assert counter_value(job_executions_total, job_name="task-status-update", outcome="terminal") == terminal_before + 1
