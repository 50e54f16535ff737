"""Taskiq middleware for retry classification and job metrics.

Middleware order matters:
1. ClassifiedRetryMiddleware - decides redelivery from the failure kind
2. JobMetricsMiddleware - records outcome and duration for every attempt
"""

from __future__ import annotations

import logging
import math
import time
from typing import TYPE_CHECKING, Any

from taskiq import TaskiqMiddleware
from taskiq.exceptions import NoResultError
from taskiq.kicker import AsyncKicker

from task_service.infra.metrics.prometheus import (
    job_duration_seconds,
    job_executions_total,
    job_retries_total,
    jobs_abandoned_total,
)
from task_service.infra.tasks.jobs import FailureKind, backoff_delay, failure_kind

if TYPE_CHECKING:
    from taskiq import TaskiqMessage, TaskiqResult

logger = logging.getLogger(__name__)


def job_name_of(message: TaskiqMessage) -> str:
    """Logical job name carried by a ``process_job`` message."""
    name = message.kwargs.get("name")
    if name is None and message.args:
        name = message.args[0]
    return str(name) if name is not None else message.task_name


class ClassifiedRetryMiddleware(TaskiqMiddleware):
    """Redeliver retryable failures with bounded exponential backoff.

    Terminal failures (``JobFailure`` with ``FailureKind.TERMINAL``) are
    never redelivered. Retryable failures are re-kicked with ``_retries``
    incremented and a ``delay`` label until ``max_retries`` deliveries have
    been made. Per-message ``max_retries``, ``backoff_delay`` and
    ``backoff_max_delay`` labels override the defaults.
    """

    def __init__(
        self,
        default_max_attempts: int = 3,
        default_backoff_delay: float = 2.0,
        default_backoff_max_delay: float = 60.0,
        no_result_on_retry: bool = True,
    ) -> None:
        super().__init__()
        self.default_max_attempts = default_max_attempts
        self.default_backoff_delay = default_backoff_delay
        self.default_backoff_max_delay = default_backoff_max_delay
        self.no_result_on_retry = no_result_on_retry

    def retry_delay(self, message: TaskiqMessage, retries_made: int) -> int:
        """Whole seconds to delay the next delivery (the transport takes integer delays)."""
        base = float(message.labels.get("backoff_delay", self.default_backoff_delay))
        cap = float(message.labels.get("backoff_max_delay", self.default_backoff_max_delay))
        return math.ceil(backoff_delay(retries_made, base, cap))

    async def on_error(
        self,
        message: TaskiqMessage,
        result: TaskiqResult[Any],
        exception: BaseException,
    ) -> None:
        job_name = job_name_of(message)
        retries_made = int(message.labels.get("_retries", 0))
        max_attempts = int(message.labels.get("max_retries", self.default_max_attempts))

        if failure_kind(exception) is FailureKind.TERMINAL:
            jobs_abandoned_total.labels(task_name=job_name, reason="terminal").inc()
            logger.warning(
                "Job failed terminally, not retrying",
                extra={
                    "task_id": message.task_id,
                    "job_name": job_name,
                    "attempt": retries_made + 1,
                    "error": str(exception),
                },
            )
            return

        if retries_made + 1 >= max_attempts:
            jobs_abandoned_total.labels(task_name=job_name, reason="exhausted").inc()
            logger.error(
                "Job abandoned after exhausting attempts",
                extra={
                    "task_id": message.task_id,
                    "job_name": job_name,
                    "attempts": retries_made + 1,
                    "max_attempts": max_attempts,
                    "error": str(exception),
                },
            )
            return

        delay = self.retry_delay(message, retries_made)
        await (
            AsyncKicker(
                task_name=message.task_name,
                broker=self.broker,
                labels=message.labels,
            )
            .with_labels(_retries=retries_made + 1, delay=delay)
            .kiq(*message.args, **message.kwargs)
        )
        job_retries_total.labels(task_name=job_name).inc()
        logger.info(
            "Job scheduled for retry",
            extra={
                "task_id": message.task_id,
                "job_name": job_name,
                "next_attempt": retries_made + 2,
                "max_attempts": max_attempts,
                "delay_seconds": delay,
            },
        )
        if self.no_result_on_retry:
            result.error = NoResultError()


class JobMetricsMiddleware(TaskiqMiddleware):
    """Record Prometheus metrics for job executions.

    Metrics recorded:
    - job_executions_total: Counter with labels [job_name, outcome]
    - job_duration_seconds: Histogram with labels [job_name]
    """

    def __init__(self) -> None:
        super().__init__()
        self._start_times: dict[str, float] = {}

    async def pre_execute(self, message: TaskiqMessage) -> TaskiqMessage:
        self._start_times[message.task_id] = time.perf_counter()
        return message

    async def on_error(
        self,
        message: TaskiqMessage,
        result: TaskiqResult[Any],
        exception: BaseException,
    ) -> None:
        outcome = failure_kind(exception).value
        job_executions_total.labels(job_name=job_name_of(message), outcome=outcome).inc()

    async def post_execute(
        self,
        message: TaskiqMessage,
        result: TaskiqResult[Any],
    ) -> None:
        job_name = job_name_of(message)
        start_time = self._start_times.pop(message.task_id, None)
        if start_time is not None:
            job_duration_seconds.labels(job_name=job_name).observe(time.perf_counter() - start_time)
        if not result.is_err:
            job_executions_total.labels(job_name=job_name, outcome="success").inc()

    async def shutdown(self) -> None:
        self._start_times.clear()
