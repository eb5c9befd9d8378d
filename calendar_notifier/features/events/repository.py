"""Read-only queries over ``calendar_events``."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select

from calendar_notifier.core.database import BaseRepository
from calendar_notifier.features.events.models import CalendarEvent, EventStatus

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession


class EventRepository(BaseRepository[CalendarEvent]):
    def __init__(self) -> None:
        super().__init__(CalendarEvent)

    async def list_starting_between(
        self,
        session: AsyncSession,
        start: datetime,
        end: datetime,
    ) -> Sequence[CalendarEvent]:
        """Published events whose start lies in ``[start, end]``."""
        stmt = (
            select(CalendarEvent)
            .where(
                CalendarEvent.status == EventStatus.PUBLISHED,
                CalendarEvent.start_time >= start,
                CalendarEvent.start_time <= end,
            )
            .order_by(CalendarEvent.start_time)
        )
        result = await session.execute(stmt)
        return result.scalars().all()
