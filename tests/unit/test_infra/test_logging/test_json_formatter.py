"""Tests for the JSONL formatter and lazy logger adapter."""

from __future__ import annotations

import json
import logging
import sys

from task_service.infra.logging import JSONFormatter, get_lazy_logger


def make_record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="task_service.workers.overdue",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="Overdue scan completed",
        args=(),
        exc_info=None,
    )
    record.__dict__.update(extra)
    return record


def test_extra_fields_become_top_level_keys() -> None:
    formatter = JSONFormatter(static={"service": "task-service"})

    data = json.loads(formatter.format(make_record(found=12, queued=1)))

    assert data["level"] == "INFO"
    assert data["logger"] == "task_service.workers.overdue"
    assert data["message"] == "Overdue scan completed"
    assert data["service"] == "task-service"
    assert (data["found"], data["queued"]) == (12, 1)
    assert data["timestamp"].endswith("Z")


def test_output_is_single_line_with_exception() -> None:
    formatter = JSONFormatter()
    try:
        raise ValueError("boom")
    except ValueError:
        record = make_record()
        record.exc_info = sys.exc_info()

    line = formatter.format(record)

    assert "\n" not in line
    assert "ValueError: boom" in json.loads(line)["exception"]


def test_lazy_message_not_evaluated_below_level() -> None:
    calls = []
    logger = get_lazy_logger("task_service.tests.lazy")
    logger.logger.setLevel(logging.INFO)

    logger.debug(lambda: calls.append("evaluated") or "expensive")

    assert calls == []


def test_lazy_logger_binds_context(caplog) -> None:
    logger = get_lazy_logger("task_service.tests.bound", job_name="task-status-update")

    with caplog.at_level(logging.DEBUG, logger="task_service.tests.bound"):
        logger.debug(lambda: "routing job", extra={"job_id": "j1"})

    record = caplog.records[-1]
    assert record.getMessage() == "routing job"
    assert (record.job_name, record.job_id) == ("task-status-update", "j1")
