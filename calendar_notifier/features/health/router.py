"""Health check API endpoints.

- Liveness check: /health/live, is the process alive?
- Readiness check: /health/ready, can the service reach its database?
- Full health: /health, dependency checks plus the scheduler state
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response, status

from calendar_notifier.core.settings import get_app_settings
from calendar_notifier.features.health.schemas import (
    HealthResponse,
    LivenessResponse,
    ReadinessResponse,
)
from calendar_notifier.infra.database import check_database

router = APIRouter(prefix="/health", tags=["health"])


def get_database_ping() -> Callable[[], Awaitable[bool]]:
    return check_database


DatabasePingDep = Annotated[Callable[[], Awaitable[bool]], Depends(get_database_ping)]


def _scheduler_running(request: Request) -> bool:
    scheduler = getattr(request.app.state, "scheduler", None)
    return bool(scheduler is not None and scheduler.running)


@router.get(
    "",
    response_model=HealthResponse,
    summary="Comprehensive health check",
    description="Returns the overall health status including dependency checks",
)
async def health_check(request: Request, ping: DatabasePingDep) -> HealthResponse:
    """Overall status is healthy when the database answers.

    The scheduler flag is informational: instances can run the API with the
    scheduler disabled.
    """
    settings = get_app_settings()
    database_ok = await ping()
    return HealthResponse(
        status="healthy" if database_ok else "unhealthy",
        timestamp=datetime.now(UTC),
        service=settings.service_name,
        version=settings.version,
        checks={"database": database_ok, "scheduler": _scheduler_running(request)},
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    status_code=status.HTTP_200_OK,
    responses={503: {"description": "Service not ready to accept traffic"}},
    summary="Readiness check (Kubernetes)",
    description="Returns 200 if ready to accept traffic, 503 if not ready",
)
async def readiness_check(response: Response, ping: DatabasePingDep) -> ReadinessResponse:
    database_ok = await ping()
    if not database_ok:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return ReadinessResponse(
        ready=database_ok,
        checks={"database": database_ok},
        timestamp=datetime.now(UTC),
    )


@router.get(
    "/live",
    response_model=LivenessResponse,
    status_code=status.HTTP_200_OK,
    summary="Liveness check (Kubernetes)",
)
async def liveness_check() -> LivenessResponse:
    return LivenessResponse(
        timestamp=datetime.now(UTC),
        service=get_app_settings().service_name,
    )
