"""Global exception handlers for FastAPI application."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from calendar_notifier.core.exceptions import AppException
from calendar_notifier.core.schemas.error import (
    ProblemDetail,
    ValidationError,
    ValidationProblemDetail,
)
from calendar_notifier.infra.metrics import tracking

logger = logging.getLogger(__name__)

PROBLEM_JSON = "application/problem+json"
UNPROCESSABLE_STATUS = 422


def _get_request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def _endpoint(request: Request) -> str:
    """Route template (``/notifications/{notification_id}``) to keep metric labels bounded."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


def _create_problem_detail(
    status_code: int,
    detail: str,
    type_: str = "about:blank",
    title: str | None = None,
    instance: str | None = None,
    extra: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Create RFC 7807 Problem Details response body."""
    problem = ProblemDetail(
        type=type_,
        title=title or ProblemDetail.default_title(status_code),
        status=status_code,
        detail=detail,
        instance=instance,
    )

    response_data = problem.model_dump(exclude_none=True)
    if extra:
        response_data.update(extra)
    return response_data


def _problem_response(
    request: Request,
    status_code: int,
    content: dict[str, Any],
) -> JSONResponse:
    request_id = _get_request_id(request)
    if request_id:
        content["request_id"] = request_id
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(content),
        media_type=PROBLEM_JSON,
    )


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Convert AppException instances into RFC 7807 Problem Details responses."""
    tracking.track_error(
        error_type=exc.type,
        endpoint=_endpoint(request),
        status_code=exc.status_code,
        extra={"detail": exc.detail},
    )

    logger.warning(
        "Application exception occurred",
        extra={
            "request_id": _get_request_id(request),
            "path": request.url.path,
            "method": request.method,
            "exception_type": exc.type,
            "status_code": exc.status_code,
            "detail": exc.detail,
        },
    )

    problem_data = _create_problem_detail(
        status_code=exc.status_code,
        detail=exc.detail,
        type_=exc.type,
        title=exc.title,
        instance=exc.instance or request.url.path,
        extra=exc.extra,
    )
    return _problem_response(request, exc.status_code, problem_data)


async def storage_unavailable_handler(request: Request, exc: OperationalError) -> JSONResponse:
    """The database could not be reached or refused the statement."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    tracking.track_error(
        error_type="storage-unavailable", endpoint=_endpoint(request), status_code=status_code
    )
    logger.error(
        "Storage unavailable",
        extra={"path": request.url.path, "error": str(exc.orig or exc)},
    )

    problem_data = _create_problem_detail(
        status_code=status_code,
        detail="The notification store is temporarily unavailable",
        type_="storage-unavailable",
        instance=request.url.path,
    )
    response = _problem_response(request, status_code, problem_data)
    response.headers["Retry-After"] = "30"
    return response


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Convert request validation errors into a 422 problem with field details."""
    validation_errors = []
    for error in exc.errors():
        field_path = ".".join(str(loc) for loc in error["loc"])
        validation_errors.append(
            ValidationError(
                field=field_path,
                message=error["msg"],
                type=error["type"],
                value=error.get("input"),
            )
        )
        tracking.track_validation_error(_endpoint(request), field_path)

    logger.warning(
        "Request validation failed",
        extra={
            "request_id": _get_request_id(request),
            "path": request.url.path,
            "method": request.method,
            "error_count": len(validation_errors),
        },
    )

    problem = ValidationProblemDetail(
        type="validation-error",
        title="Validation Error",
        status=UNPROCESSABLE_STATUS,
        detail=f"Request validation failed for {len(validation_errors)} field(s)",
        instance=request.url.path,
        errors=validation_errors,
    )
    return _problem_response(
        request, UNPROCESSABLE_STATUS, problem.model_dump(exclude_none=True)
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all: log the traceback and return a generic 500 problem."""
    tracking.track_unhandled_exception(
        exception_type=type(exc).__name__,
        endpoint=_endpoint(request),
    )

    logger.error(
        "Unexpected exception occurred",
        extra={
            "request_id": _get_request_id(request),
            "path": request.url.path,
            "method": request.method,
            "exception_type": type(exc).__name__,
            "exception_message": str(exc),
        },
        exc_info=exc,
    )

    # Don't expose internal details
    problem_data = _create_problem_detail(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="An unexpected error occurred while processing your request",
        type_="internal-error",
        title="Internal Server Error",
        instance=request.url.path,
    )
    return _problem_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, problem_data)


def configure_exception_handlers(app: FastAPI) -> None:
    """Register the handlers that render errors as RFC 7807 Problem Details."""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(OperationalError, storage_unavailable_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    logger.debug("Exception handlers configured")
