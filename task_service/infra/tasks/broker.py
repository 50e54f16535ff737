"""Taskiq broker configuration for the job pipeline.

All jobs travel through one RabbitMQ queue (``task-processing`` with the
configured prefix) as invocations of a single ``process_job`` task; the job
name is an argument and the worker routes on it.

Run worker:
    taskiq worker task_service.infra.tasks.broker:broker

When RabbitMQ is not configured the broker is taskiq's ``InMemoryBroker``,
which executes jobs inline in the calling process. That keeps local runs
and tests free of infrastructure.

Middleware order:
1. ClassifiedRetryMiddleware - decides redelivery (must wrap everything)
2. JobMetricsMiddleware - records every attempt
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from taskiq import AsyncBroker, InMemoryBroker
from taskiq_aio_pika import AioPikaBroker

from task_service.core.settings import (
    get_rabbit_settings,
    get_redis_settings,
    get_task_settings,
)
from task_service.infra.logging.config import setup_logging
from task_service.infra.results import RetentionRedisResultBackend
from task_service.infra.tasks.middleware import ClassifiedRetryMiddleware, JobMetricsMiddleware

if TYPE_CHECKING:
    from task_service.core.settings.rabbit import RabbitSettings
    from task_service.core.settings.redis import RedisSettings
    from task_service.core.settings.tasks import TaskSettings

logger = logging.getLogger(__name__)


def create_broker(
    rabbit_settings: RabbitSettings,
    redis_settings: RedisSettings,
    task_settings: TaskSettings,
) -> AsyncBroker:
    """Build the broker described by settings."""
    middlewares = (
        ClassifiedRetryMiddleware(
            default_max_attempts=task_settings.max_attempts,
            default_backoff_delay=task_settings.backoff_delay_seconds,
            default_backoff_max_delay=task_settings.backoff_max_delay_seconds,
        ),
        JobMetricsMiddleware(),
    )

    if not rabbit_settings.is_configured:
        logger.warning("RabbitMQ not configured - jobs run in-process via InMemoryBroker")
        return InMemoryBroker().with_middlewares(*middlewares)

    queue_name = rabbit_settings.get_prefixed_queue(task_settings.queue_name)
    new_broker: AsyncBroker = AioPikaBroker(
        url=rabbit_settings.url,
        exchange_name=rabbit_settings.exchange_name,
        queue_name=queue_name,
        qos=rabbit_settings.prefetch_count,
        max_priority=rabbit_settings.max_priority,
        declare_exchange=True,
        declare_queues=True,
    )

    if redis_settings.is_configured:
        new_broker = new_broker.with_result_backend(
            RetentionRedisResultBackend(
                redis_url=redis_settings.url,
                completed_ttl=task_settings.completed_retention_seconds,
                failed_ttl=task_settings.failed_retention_seconds,
                key_prefix=task_settings.result_key_prefix,
            )
        )
    else:
        logger.warning("Redis not configured - job results are not stored")

    logger.info(
        "Taskiq broker configured",
        extra={
            "queue": queue_name,
            "middlewares": [type(m).__name__ for m in middlewares],
        },
    )
    return new_broker.with_middlewares(*middlewares)


setup_logging()
broker: AsyncBroker = create_broker(get_rabbit_settings(), get_redis_settings(), get_task_settings())


async def start_broker() -> None:
    """Open the broker connection so the API process can publish jobs.

    Consuming happens in the worker process, never here.
    """
    try:
        await broker.startup()
    except Exception:
        logger.exception("Job broker failed to start", extra={"broker": type(broker).__name__})
        raise
    logger.info("Job broker started", extra={"broker": type(broker).__name__})


async def stop_broker() -> None:
    # Shutdown continues past a broker that fails to close
    try:
        await broker.shutdown()
    except Exception:
        logger.exception("Job broker failed to stop cleanly")
    else:
        logger.info("Job broker stopped")


# Importing the task module registers process_job with the broker; the
# worker only imports this module.
import task_service.workers.tasks  # noqa: E402, F401
