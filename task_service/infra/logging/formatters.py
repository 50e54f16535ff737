"""JSON Lines formatter used by every process the service runs."""

from __future__ import annotations

from datetime import UTC, datetime
import json
import logging
from typing import Any

# Everything a bare LogRecord carries; anything else arrived via ``extra``
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with ``extra`` fields at the top level.

    ``{"timestamp": "2026-10-19T09:00:00.120Z", "level": "INFO",
    "logger": "task_service.workers.overdue", "message": "Overdue scan
    completed", "service": "task-service", "found": 12}``

    Keys from ``static`` are added to every record; a call-site ``extra``
    never overrides the standard keys.
    """

    def __init__(self, static: dict[str, Any] | None = None, *, include_function: bool = False) -> None:
        super().__init__()
        self.static = dict(static or {})
        self.include_function = include_function

    @staticmethod
    def _timestamp(record: logging.LogRecord) -> str:
        moment = datetime.fromtimestamp(record.created, tz=UTC)
        return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")

    def format(self, record: logging.LogRecord) -> str:
        body: dict[str, Any] = {
            "timestamp": self._timestamp(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if self.include_function:
            body["function"] = record.funcName
        body.update(self.static)
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS:
                body.setdefault(key, value)
        if record.exc_info:
            body["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            body["stack"] = self.formatStack(record.stack_info)
        # json.dumps escapes embedded newlines, so a traceback stays on one line
        return json.dumps(body, ensure_ascii=False, default=str)
