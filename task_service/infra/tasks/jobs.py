"""Job-level types shared by producers, the transport and the worker.

A job is a named, JSON-serialisable payload. Producers describe delivery
with ``JobOptions``; the worker sees a ``Job`` carrying the attempt it is
executing. Handler failures surface as ``JobFailure`` whose ``kind``
decides whether the transport redelivers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from task_service.core.settings.tasks import TaskSettings

STATUS_UPDATE_JOB = "task-status-update"
OVERDUE_NOTIFICATION_JOB = "overdue-tasks-notification"

# Single taskiq task that carries every job; the job name travels as an argument
PROCESS_JOB_TASK_NAME = "task_service.process_job"


class FailureKind(StrEnum):
    """Whether redelivering a failed job can succeed."""

    TERMINAL = "terminal"
    RETRYABLE = "retryable"


class JobFailure(Exception):
    """A job execution failed.

    Attributes:
        kind: TERMINAL failures are never retried; RETRYABLE ones are
            redelivered with backoff until attempts run out.
        job_name: Name of the job that failed, when known.
    """

    def __init__(
        self,
        message: str,
        kind: FailureKind = FailureKind.RETRYABLE,
        job_name: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.kind = FailureKind(kind)
        self.job_name = job_name

    def __reduce__(self) -> tuple[Any, ...]:
        return (type(self), (self.message, self.kind, self.job_name))

    @property
    def retryable(self) -> bool:
        return self.kind is FailureKind.RETRYABLE


def failure_kind(exc: BaseException) -> FailureKind:
    """Kind carried by ``exc``; unclassified errors are retryable."""
    if isinstance(exc, JobFailure):
        return exc.kind
    return FailureKind.RETRYABLE


@dataclass(frozen=True, slots=True)
class JobOptions:
    """Producer-side delivery options.

    ``attempts`` counts the first delivery, so ``attempts=3`` means at
    most two redeliveries. Redelivery waits ``backoff_delay * 2**n``
    seconds (n = retries already made), capped at ``backoff_max_delay``.
    """

    attempts: int = 3
    backoff_delay: float = 2.0
    backoff_max_delay: float = 60.0
    priority: int | None = None

    @classmethod
    def from_settings(cls, settings: TaskSettings, **overrides: Any) -> JobOptions:
        values: dict[str, Any] = {
            "attempts": settings.max_attempts,
            "backoff_delay": settings.backoff_delay_seconds,
            "backoff_max_delay": settings.backoff_max_delay_seconds,
        }
        values.update(overrides)
        return cls(**values)

    def labels(self) -> dict[str, Any]:
        """Message labels understood by the retry middleware."""
        labels: dict[str, Any] = {
            "max_retries": self.attempts,
            "backoff_delay": self.backoff_delay,
            "backoff_max_delay": self.backoff_max_delay,
        }
        if self.priority is not None:
            labels["priority"] = self.priority
        return labels


@dataclass(frozen=True, slots=True)
class JobRequest:
    """One entry of a bulk submission."""

    name: str
    payload: dict[str, Any]
    options: JobOptions | None = None


@dataclass(frozen=True, slots=True)
class Job:
    """A job as seen by the worker."""

    id: str
    name: str
    payload: dict[str, Any] = field(default_factory=dict)
    attempt: int = 1
    max_attempts: int = 3

    @property
    def is_last_attempt(self) -> bool:
        return self.attempt >= self.max_attempts


def backoff_delay(retries_made: int, base: float, cap: float) -> float:
    """Seconds to wait before the next delivery after ``retries_made`` retries."""
    return min(base * (2**retries_made), cap)
