"""Process-wide logging setup shared by the API, the worker and the CLI.

Records are put on a queue by the root handler and written to stderr by a
listener thread, so a slow log sink never blocks the event loop.
"""

from __future__ import annotations

import atexit
import logging
import logging.config
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from logging.handlers import QueueListener

    from task_service.core.settings.logs import LoggingSettings

TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

# Chatty at INFO during normal operation
QUIET_LOGGERS = ("aiormq", "aio_pika", "apscheduler.executors.default", "taskiq.receiver.receiver")

_listener: QueueListener | None = None


def shutdown() -> None:
    """Flush queued records and stop the listener thread."""
    global _listener
    if _listener is not None:
        _listener.stop()
        _listener = None


atexit.register(shutdown)


def setup_logging(log_settings: LoggingSettings | None = None, *, force: bool = False) -> None:
    """Configure logging unless an earlier entrypoint already did."""
    if _listener is not None and not force:
        return
    if log_settings is None:
        from task_service.core.settings import get_logging_settings

        log_settings = get_logging_settings()
    configure_logging(log_settings)


def _formatter(settings: LoggingSettings) -> dict[str, Any]:
    if settings.json_logs:
        return {
            "()": "task_service.infra.logging.formatters.JSONFormatter",
            "static": {"service": settings.service_name},
            "include_function": settings.include_function_name,
        }
    if settings.include_function_name:
        return {"format": TEXT_FORMAT.replace("%(name)s", "%(name)s.%(funcName)s")}
    return {"format": TEXT_FORMAT}


def configure_logging(settings: LoggingSettings) -> None:
    global _listener
    shutdown()

    loggers: dict[str, Any] = {name: {"level": "WARNING"} for name in QUIET_LOGGERS}
    # uvicorn ships its own handlers; send its records through ours instead
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        loggers[name] = {"handlers": [], "propagate": True}
    if not settings.uvicorn_access_log:
        loggers["uvicorn.access"]["level"] = "WARNING"

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"default": _formatter(settings)},
            "handlers": {
                "stderr": {"class": "logging.StreamHandler", "formatter": "default"},
                "queue": {
                    "class": "logging.handlers.QueueHandler",
                    "handlers": ["stderr"],
                    "respect_handler_level": True,
                },
            },
            "root": {"level": settings.level, "handlers": ["queue"]},
            "loggers": loggers,
        }
    )

    queue_handler = logging.getHandlerByName("queue")
    _listener = getattr(queue_handler, "listener", None)
    if _listener is not None:
        _listener.start()
