"""Client identity derivation for rate limiting.

The raw network address is hashed before it is used anywhere, so counter
keys, logs and rejection bodies never carry it.
"""

from __future__ import annotations

import hashlib
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from starlette.requests import Request

IDENTIFIER_LENGTH = 16


def client_address(request: Request) -> str:
    """Best-effort originating address (proxy headers first)."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

    real_ip = request.headers.get("X-Real-IP")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def hash_identifier(address: str) -> str:
    return hashlib.sha256(address.encode("utf-8")).hexdigest()[:IDENTIFIER_LENGTH]


def client_identifier(request: Request) -> str:
    """Opaque, stable identifier for the caller (16 hex characters)."""
    return hash_identifier(client_address(request))
