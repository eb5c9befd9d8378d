"""Health check response schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

HealthStatus = Literal["healthy", "unhealthy"]


class HealthResponse(BaseModel):
    """Overall health with per-dependency checks.

    Example:
        ```json
        {
            "status": "healthy",
            "timestamp": "2026-01-01T00:00:00Z",
            "service": "calendar-notifier",
            "version": "0.1.0",
            "checks": {"database": true, "scheduler": true}
        }
        ```
    """

    status: HealthStatus = Field(description="Health status (healthy, unhealthy)")
    timestamp: datetime = Field(description="Check timestamp")
    service: str = Field(min_length=1, max_length=100, description="Service name")
    version: str = Field(min_length=1, max_length=50, description="Service version")
    checks: dict[str, bool] = Field(
        default_factory=dict, description="Individual dependency health checks"
    )

    model_config = ConfigDict(str_strip_whitespace=True)


class ReadinessResponse(BaseModel):
    ready: bool = Field(description="Whether the service can accept traffic")
    checks: dict[str, bool] = Field(default_factory=dict)
    timestamp: datetime


class LivenessResponse(BaseModel):
    alive: bool = True
    timestamp: datetime
    service: str
