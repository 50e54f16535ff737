"""Logger wiring shared by service classes."""

from __future__ import annotations

import logging
from typing import ClassVar

from task_service.infra.logging import LazyLoggerAdapter, get_lazy_logger


class BaseService:
    """Gives each service a named ``logger`` and a lazy ``_lazy`` debug logger.

    The logger name defaults to the subclass's qualified module path so that
    per-feature log levels can be set from LOG_ configuration.
    """

    logger_name: ClassVar[str | None] = None

    logger: logging.Logger
    _lazy: LazyLoggerAdapter

    def __init__(self) -> None:
        cls = type(self)
        name = cls.logger_name or f"{cls.__module__}.{cls.__qualname__}"
        self.logger = logging.getLogger(name)
        self._lazy = get_lazy_logger(name)
