"""Admission control: client identity, policies and the fixed-window limiter."""

from __future__ import annotations

from task_service.infra.ratelimit.identity import client_address, client_identifier, hash_identifier
from task_service.infra.ratelimit.limiter import FixedWindowRateLimiter
from task_service.infra.ratelimit.policy import RateLimitPolicy, RateLimitPolicyMap

__all__ = [
    "FixedWindowRateLimiter",
    "RateLimitPolicy",
    "RateLimitPolicyMap",
    "client_address",
    "client_identifier",
    "hash_identifier",
]
