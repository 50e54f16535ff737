"""Map exceptions onto RFC 7807 problem responses."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from fastapi import status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from task_service.core.exceptions import AppException
from task_service.core.schemas import FieldError, ProblemDetail, ValidationProblemDetail

if TYPE_CHECKING:
    from fastapi import FastAPI, Request

logger = logging.getLogger(__name__)

PROBLEM_MEDIA_TYPE = "application/problem+json"


def _problem_response(problem: ProblemDetail, extra: dict[str, Any] | None = None) -> JSONResponse:
    body = problem.model_dump(mode="json", exclude_none=True)
    # extension members sit beside the standard ones
    body.update(extra or {})
    return JSONResponse(body, status_code=problem.status, media_type=PROBLEM_MEDIA_TYPE)


def _request_context(request: Request) -> dict[str, str]:
    return {"method": request.method, "path": request.url.path}


async def app_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, AppException)
    logger.warning(
        exc.detail,
        extra={**_request_context(request), "problem_type": exc.type, "status": exc.status_code},
    )
    problem = ProblemDetail(
        type=exc.type,
        title=exc.title,
        status=exc.status_code,
        detail=exc.detail,
        instance=exc.instance or request.url.path,
    )
    return _problem_response(problem, exc.extra)


async def validation_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """One ``errors`` entry per invalid field, addressed by dotted location."""
    assert isinstance(exc, RequestValidationError)
    errors = [
        FieldError(
            field=".".join(map(str, err["loc"])),
            message=err["msg"],
            type=err["type"],
            value=err.get("input"),
        )
        for err in exc.errors()
    ]
    logger.info(
        "Request rejected by validation",
        extra={**_request_context(request), "fields": [e.field for e in errors]},
    )
    problem = ValidationProblemDetail(
        type="validation-error",
        title="Validation Error",
        status=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail=f"{len(errors)} invalid field(s)",
        instance=request.url.path,
        errors=errors,
    )
    return _problem_response(problem)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log the traceback; the client only learns that something failed."""
    logger.error(
        "Unhandled exception",
        extra={**_request_context(request), "exception_type": type(exc).__name__},
        exc_info=exc,
    )
    problem = ProblemDetail(
        type="internal-error",
        title="Internal Server Error",
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="The server failed to process the request",
        instance=request.url.path,
    )
    return _problem_response(problem)


def configure_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
