"""Read model of calendar events.

Event CRUD belongs to the calendar application; this service only reads
``calendar_events`` to find upcoming starts for the fallback scan.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Protocol

from sqlalchemy import Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from calendar_notifier.core.database import Base, StringArray, TimestampMixin, UTCDateTime


class EventStatus(StrEnum):
    DRAFT = "draft"
    PUBLISHED = "published"
    CANCELLED = "cancelled"


class EventLike(Protocol):
    """What the notification engine needs to know about an event."""

    id: str
    title: str
    start_time: datetime
    timezone: str | None
    location: str | None


class CalendarEvent(Base, TimestampMixin):
    __tablename__ = "calendar_events"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text(), nullable=True)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    start_time: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    end_time: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    timezone: Mapped[str | None] = mapped_column(String(64), nullable=True, default="UTC")
    owner_id: Mapped[str] = mapped_column(String(255), nullable=False)
    participant_ids: Mapped[list[str]] = mapped_column(
        StringArray(),
        nullable=False,
        default=list,
        comment="Group members / invitees besides the owner",
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=EventStatus.PUBLISHED
    )

    __table_args__ = (Index("ix_calendar_events_status_start", "status", "start_time"),)

    @property
    def attendee_ids(self) -> list[str]:
        """Owner first, then participants, without duplicates."""
        seen: dict[str, None] = {self.owner_id: None}
        for user_id in self.participant_ids or []:
            seen.setdefault(user_id, None)
        return list(seen)
