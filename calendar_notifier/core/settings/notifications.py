"""Notification engine settings (scheduling, retry, retention, dispatch)."""

from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .yaml_sources import create_yaml_source


class NotificationSettings(BaseSettings):
    """Tuning knobs for the periodic jobs and delivery pipeline.

    Environment variables use NOTIFY_ prefix.
    Example: NOTIFY_RETENTION_DAYS=14, NOTIFY_DEFAULT_ADVANCE_OFFSETS='[10, 30]'
    """

    # Periodic job cadence
    scheduler_enabled: bool = Field(
        default=True, description="Start the periodic job scheduler with the application"
    )
    tick_interval_seconds: int = Field(
        default=60, ge=1, le=3600, description="Due-notification ticker interval"
    )
    retry_interval_seconds: int = Field(
        default=300, ge=1, le=86_400, description="Retry coordinator interval"
    )
    retention_hour_utc: int = Field(
        default=0, ge=0, le=23, description="Hour of day (UTC) when the retention sweep runs"
    )
    health_check_interval_minutes: int = Field(
        default=30, ge=1, le=1440, description="Interval of the periodic health check job"
    )

    # Retry policy
    retry_window_minutes: int = Field(
        default=60, ge=1, le=10_080, description="Only failures newer than this are retried"
    )
    retry_batch_size: int = Field(
        default=50, ge=1, le=1000, description="Maximum failed notifications retried per run"
    )
    default_max_retries: int = Field(
        default=3, ge=0, le=5, description="max_retries assigned to new notifications"
    )

    # Retention
    retention_days: int = Field(
        default=30, ge=1, le=3650, description="Terminal notifications older than this are deleted"
    )

    # Materialization
    default_advance_offsets: list[int] = Field(
        default_factory=lambda: [15, 60],
        description="Advance reminder offsets (minutes) for users without preferences",
    )
    default_snooze_minutes: int = Field(
        default=10, ge=1, le=1440, description="Snooze length when the caller omits snooze_minutes"
    )

    # Dispatch
    dispatch_concurrency: int = Field(
        default=10, ge=1, le=200, description="Notifications dispatched concurrently per tick"
    )
    channel_timeout_seconds: float = Field(
        default=10.0, gt=0, le=300, description="Upper bound for a single channel send attempt"
    )

    # Safety-net event scan
    event_scan_enabled: bool = Field(
        default=True, description="Run the fallback scan over upcoming events"
    )
    event_scan_offsets: list[int] = Field(
        default_factory=lambda: [15, 60, 1440],
        description="Offsets (minutes) checked by the fallback scan",
    )
    event_scan_window_seconds: int = Field(
        default=30, ge=1, le=600, description="Half-width of the start time window matched per offset"
    )
    dedup_ttl_minutes: int = Field(
        default=60, ge=1, le=1440, description="Lifetime of duplicate-delivery guard entries"
    )

    @field_validator("default_advance_offsets", "event_scan_offsets")
    @classmethod
    def validate_offsets(cls, v: list[int]) -> list[int]:
        """Offsets must be positive; duplicates are dropped and order is normalised."""
        if any(offset <= 0 for offset in v):
            raise ValueError("offsets must be positive minute values")
        return sorted(set(v))

    model_config = SettingsConfigDict(
        env_prefix="NOTIFY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: Any,
        env_settings: Any,
        dotenv_settings: Any,
        file_secret_settings: Any,
    ) -> tuple[Any, ...]:
        return (
            init_settings,
            create_yaml_source(settings_cls, "notifications", "NOTIFY_CONFIG_DIR"),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )
