"""Counter store facade over Redis."""

from __future__ import annotations

from task_service.infra.cache.counter import (
    TTL_ABSENT,
    TTL_NO_EXPIRY,
    ConnectionState,
    CounterStore,
)

# Namespaces used across the service
NAMESPACE_RATE_LIMIT = "rate_limit"
NAMESPACE_LOCK = "lock"

__all__ = [
    "NAMESPACE_LOCK",
    "NAMESPACE_RATE_LIMIT",
    "TTL_ABSENT",
    "TTL_NO_EXPIRY",
    "ConnectionState",
    "CounterStore",
]
