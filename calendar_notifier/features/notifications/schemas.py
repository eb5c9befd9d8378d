"""Pydantic schemas for the notifications API."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from calendar_notifier.features.notifications.models import UserAction

# ============================================================================
# Notification Schemas
# ============================================================================


class NotificationResponse(BaseModel):
    """Representation of a notification returned from the API."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: str
    event_id: str
    kind: str
    title: str
    message: str
    priority: str
    status: str
    scheduled_time: datetime
    channels: list[str]
    retry_count: int
    max_retries: int
    error_message: str | None = None
    user_action: str | None = None
    sent_at: datetime | None = None
    failed_at: datetime | None = None
    acknowledged_at: datetime | None = None
    read_at: datetime | None = None
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("extra_metadata", "metadata"),
        description="Offsets, offered actions and snooze chain details",
    )
    delivery_receipt: dict[str, Any] | None = Field(
        default=None, description="Per-channel outcome of the last dispatch"
    )
    created_at: datetime
    updated_at: datetime


class PaginationInfo(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class NotificationListResponse(BaseModel):
    """Page of notifications, newest first."""

    notifications: list[NotificationResponse]
    pagination: PaginationInfo


class UnreadCountResponse(BaseModel):
    unread_count: int


class ReadAllResponse(BaseModel):
    updated_count: int


# ============================================================================
# Acknowledgment Schemas
# ============================================================================


class AcknowledgeRequest(BaseModel):
    """User response to a delivered notification.

    Unrecognised actions are accepted and treated as ``dismissed``.
    """

    action: str = Field(
        default=UserAction.DISMISSED.value,
        max_length=32,
        description="confirmed, snooze, ready or dismissed",
        examples=["ready"],
    )
    snooze_minutes: int | None = Field(
        default=None,
        ge=1,
        le=1440,
        description="Snooze length in minutes (default 10)",
    )


class AcknowledgeResponse(BaseModel):
    message: str
    action: str
    notification_id: UUID
    timestamp: datetime
    follow_up_id: UUID | None = Field(
        default=None, description="Snooze reminder created by this acknowledgment"
    )
    cancelled_id: UUID | None = Field(
        default=None, description="Start reminder cancelled by this acknowledgment"
    )


# ============================================================================
# Statistics Schemas
# ============================================================================


class StatsBreakdownItem(BaseModel):
    status: str
    type: str
    count: int


class NotificationStatsResponse(BaseModel):
    """Counts grouped by status and type over the trailing period."""

    period_days: int
    since: datetime
    total: int
    by_status: dict[str, int]
    by_type: dict[str, int]
    breakdown: list[StatsBreakdownItem]
