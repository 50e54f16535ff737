"""Tests for job types, options and backoff."""

from __future__ import annotations

import pickle

import pytest

from task_service.core.settings import TaskSettings
from task_service.infra.tasks.jobs import (
    FailureKind,
    Job,
    JobFailure,
    JobOptions,
    backoff_delay,
    failure_kind,
)


@pytest.mark.parametrize(
    ("retries_made", "expected"),
    [(0, 2.0), (1, 4.0), (2, 8.0), (5, 60.0), (10, 60.0)],
)
def test_backoff_doubles_and_is_capped(retries_made: int, expected: float) -> None:
    assert backoff_delay(retries_made, base=2.0, cap=60.0) == expected


def test_job_failure_defaults_to_retryable() -> None:
    failure = JobFailure("db timeout")

    assert failure.kind is FailureKind.RETRYABLE
    assert failure.retryable


def test_job_failure_survives_pickling() -> None:
    failure = JobFailure("bad payload", FailureKind.TERMINAL, "task-status-update")

    restored = pickle.loads(pickle.dumps(failure))

    assert restored.kind is FailureKind.TERMINAL
    assert restored.job_name == "task-status-update"
    assert str(restored) == "bad payload"


def test_failure_kind_of_unclassified_error_is_retryable() -> None:
    assert failure_kind(RuntimeError("x")) is FailureKind.RETRYABLE
    assert failure_kind(JobFailure("x", FailureKind.TERMINAL)) is FailureKind.TERMINAL


def test_job_options_from_settings() -> None:
    settings = TaskSettings(max_attempts=5, backoff_delay_seconds=1.5, backoff_max_delay_seconds=30)

    options = JobOptions.from_settings(settings, priority=3)

    assert options == JobOptions(attempts=5, backoff_delay=1.5, backoff_max_delay=30.0, priority=3)


def test_job_options_labels() -> None:
    assert JobOptions().labels() == {
        "max_retries": 3,
        "backoff_delay": 2.0,
        "backoff_max_delay": 60.0,
    }
    assert JobOptions(priority=7).labels()["priority"] == 7


def test_last_attempt() -> None:
    assert not Job(id="1", name="n", attempt=2, max_attempts=3).is_last_attempt
    assert Job(id="1", name="n", attempt=3, max_attempts=3).is_last_attempt
