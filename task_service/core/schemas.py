"""RFC 7807 problem detail schemas."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ProblemDetail(BaseModel):
    """RFC 7807 Problem Details body."""

    type: str = Field(default="about:blank", description="Error type identifier")
    title: str = Field(..., description="Short, human-readable summary")
    status: int = Field(..., description="HTTP status code")
    detail: str | None = Field(default=None, description="Human-readable explanation")
    instance: str | None = Field(default=None, description="URI of this occurrence")


class FieldError(BaseModel):
    """One invalid input field."""

    field: str
    message: str
    type: str
    value: Any | None = None


class ValidationProblemDetail(ProblemDetail):
    errors: list[FieldError] = Field(default_factory=list)
