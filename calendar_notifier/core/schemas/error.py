"""RFC 7807 Problem Details schemas."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

_DEFAULT_TITLES = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    409: "Conflict",
    422: "Unprocessable Entity",
    500: "Internal Server Error",
    503: "Service Unavailable",
}


class ProblemDetail(BaseModel):
    """Problem Details for HTTP APIs (RFC 7807).

    ``type`` holds a stable reason code such as ``notification-not-found``.
    """

    model_config = ConfigDict(extra="allow")

    type: str = Field(default="about:blank", description="Reason code")
    title: str = Field(..., description="Short summary of the problem type")
    status: int = Field(..., ge=400, le=599, description="HTTP status code")
    detail: str | None = Field(default=None, description="Explanation of this occurrence")
    instance: str | None = Field(default=None, description="URI of this occurrence")
    request_id: str | None = Field(default=None, description="Correlation id of the request")

    @staticmethod
    def default_title(status_code: int) -> str:
        return _DEFAULT_TITLES.get(status_code, "Error")


class ValidationError(BaseModel):
    """One field-level validation failure."""

    field: str
    message: str
    type: str
    value: Any | None = None


class ValidationProblemDetail(ProblemDetail):
    errors: list[ValidationError] = Field(default_factory=list)
