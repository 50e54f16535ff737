"""Job routing, execution gating and failure classification."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any, Protocol

from pydantic import ValidationError

from task_service.core.exceptions import NotFoundException, ValidationException
from task_service.infra.tasks.jobs import FailureKind, JobFailure

if TYPE_CHECKING:
    from collections.abc import Mapping

    from task_service.infra.tasks.jobs import Job
    from task_service.infra.tasks.limiter import WorkerLimiter

logger = logging.getLogger(__name__)

# Errors that no amount of redelivery can fix
TERMINAL_ERRORS: tuple[type[BaseException], ...] = (
    ValidationException,
    ValidationError,
    NotFoundException,
)


class JobHandler(Protocol):
    """Executes one kind of job."""

    async def handle(self, job: Job) -> dict[str, Any]: ...


class JobProcessor:
    """Route jobs to handlers by exact name and run them under the limiter.

    Every failure leaves as a ``JobFailure`` whose kind tells the transport
    whether to redeliver. Unknown job names are terminal.

    Example:
        processor = JobProcessor(limiter=WorkerLimiter.from_settings(settings))
        processor.register(STATUS_UPDATE_JOB, StatusUpdateHandler(service))
        result = await processor.process(job)
    """

    def __init__(
        self,
        limiter: WorkerLimiter,
        handlers: Mapping[str, JobHandler] | None = None,
    ) -> None:
        self._limiter = limiter
        self._handlers: dict[str, JobHandler] = dict(handlers or {})

    def register(self, name: str, handler: JobHandler) -> None:
        if name in self._handlers:
            raise ValueError(f"Handler already registered for job {name!r}")
        self._handlers[name] = handler

    @property
    def job_names(self) -> list[str]:
        return sorted(self._handlers)

    @staticmethod
    def classify(exc: BaseException) -> FailureKind:
        """Decide whether a handler error is worth redelivering."""
        if isinstance(exc, JobFailure):
            return exc.kind
        if isinstance(exc, TERMINAL_ERRORS):
            return FailureKind.TERMINAL
        return FailureKind.RETRYABLE

    async def process(self, job: Job) -> dict[str, Any]:
        """Execute ``job`` and return the handler's result.

        Raises:
            JobFailure: On any handler error, carrying its classification.
        """
        handler = self._handlers.get(job.name)
        if handler is None:
            self._log_started(job)
            start = time.perf_counter()
            failure = JobFailure(f"Unknown job {job.name!r}", FailureKind.TERMINAL, job.name)
            logger.error(
                "No handler registered for job",
                extra={**self._job_fields(job), "known": self.job_names},
            )
            self._log_failure(job, failure, failure, round((time.perf_counter() - start) * 1000, 2))
            raise failure

        async with self._limiter:
            self._log_started(job)
            start = time.perf_counter()
            try:
                result = await handler.handle(job)
            except Exception as exc:
                elapsed_ms = round((time.perf_counter() - start) * 1000, 2)
                failure = exc if isinstance(exc, JobFailure) else JobFailure(
                    str(exc) or type(exc).__name__,
                    self.classify(exc),
                    job.name,
                )
                self._log_failure(job, failure, exc, elapsed_ms)
                if failure is exc:
                    raise
                raise failure from exc

        elapsed_ms = round((time.perf_counter() - start) * 1000, 2)
        logger.info("Job completed", extra={**self._job_fields(job), "elapsed_ms": elapsed_ms})
        return result

    @staticmethod
    def _job_fields(job: Job) -> dict[str, Any]:
        return {
            "job_id": job.id,
            "job_name": job.name,
            "attempt": job.attempt,
            "max_attempts": job.max_attempts,
        }

    def _log_started(self, job: Job) -> None:
        logger.info("Job started", extra=self._job_fields(job))

    def _log_failure(
        self,
        job: Job,
        failure: JobFailure,
        cause: BaseException,
        elapsed_ms: float,
    ) -> None:
        extra = {
            **self._job_fields(job),
            "elapsed_ms": elapsed_ms,
            "failure_kind": str(failure.kind),
            "error_type": type(cause).__name__,
            "error": str(cause),
        }
        if failure.kind is FailureKind.TERMINAL:
            logger.warning("Job failed terminally", extra=extra)
        elif job.is_last_attempt:
            logger.error("Job failed on its last attempt, abandoning", extra=extra, exc_info=cause)
        else:
            logger.warning("Job failed, will be retried", extra=extra)
