"""Tests for RetentionRedisResultBackend."""

from __future__ import annotations

import pytest
from taskiq.result import TaskiqResult

from task_service.infra.results.redis_backend import RetentionRedisResultBackend

REDIS_URL = "redis://localhost:6379/0"


@pytest.mark.parametrize(("completed", "failed"), [(0, 60), (60, 0), (-1, -1)])
def test_rejects_non_positive_expiry(completed: int, failed: int) -> None:
    with pytest.raises(ValueError, match="greater than zero"):
        RetentionRedisResultBackend(REDIS_URL, completed, failed)


def test_failed_results_kept_longer() -> None:
    backend = RetentionRedisResultBackend(REDIS_URL, 3600, 86400, key_prefix="results")

    ok = TaskiqResult(is_err=False, return_value={"success": True}, execution_time=0.1)
    failed = TaskiqResult(is_err=True, return_value=None, execution_time=0.1)

    assert backend.expiry_for(ok) == 3600
    assert backend.expiry_for(failed) == 86400
    assert backend._key("abc") == "results:abc"
