"""Application errors rendered as RFC 7807 problem details.

Each subclass fixes the HTTP status, the default problem ``type`` and the
``title``; call sites supply the human-readable ``detail`` and may override
``type`` for a more specific problem (``task-not-found``) and attach
``extra`` members that are merged into the response body.
"""

from __future__ import annotations

from typing import Any, ClassVar


class AppException(Exception):
    """Base for errors that map onto an HTTP problem response.

    The job processor also classifies failures by these classes, so raising
    one from a handler decides whether the job is retried.
    """

    status_code: ClassVar[int] = 500
    default_type: ClassVar[str] = "about:blank"
    title: ClassVar[str] = "Internal Server Error"

    def __init__(
        self,
        detail: str,
        type: str | None = None,  # noqa: A002
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(detail)
        self.detail = detail
        self.type = type or self.default_type
        self.instance = instance
        self.extra = extra or {}


class NotFoundException(AppException):
    """A referenced record does not exist. Never retried inside a job."""

    status_code = 404
    default_type = "not-found"
    title = "Not Found"


class ValidationException(AppException):
    """Malformed input, whether from a request body or a job payload."""

    status_code = 422
    default_type = "validation-error"
    title = "Unprocessable Entity"


class RateLimitException(AppException):
    """A rate limit policy rejected the request.

    ``extra`` is the rejection body: ``error``, ``message``, ``limit``,
    ``remaining`` and ``resetAt``.
    """

    status_code = 429
    default_type = "rate-limit-exceeded"
    title = "Too Many Requests"


class ServiceUnavailableException(AppException):
    """A backing store the operation needs is down or not wired."""

    status_code = 503
    default_type = "service-unavailable"
    title = "Service Unavailable"
