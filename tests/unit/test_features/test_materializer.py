"""Tests for reminder materialization."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import select

from calendar_notifier.features.notifications.models import (
    Notification,
    NotificationKind,
    NotificationStatus,
)
from tests.utils import add_all, make_event, make_preferences

# Clock starts at 2026-03-02 09:00 UTC
EVENT_START = datetime(2026, 3, 2, 11, 0, tzinfo=UTC)


async def _rows(session_factory) -> list[Notification]:
    async with session_factory() as session:
        result = await session.execute(select(Notification).order_by(Notification.scheduled_time))
        return list(result.scalars().all())


@pytest.mark.unit
class TestMaterializer:
    async def test_advance_and_start_reminders(self, engine, db_session, session_factory) -> None:
        created = await engine.schedule_event(db_session, make_event(EVENT_START))

        assert len(created) == 3
        rows = await _rows(session_factory)
        assert [(n.kind, n.scheduled_time) for n in rows] == [
            (NotificationKind.ADVANCE_REMINDER, EVENT_START - timedelta(minutes=60)),
            (NotificationKind.ADVANCE_REMINDER, EVENT_START - timedelta(minutes=15)),
            (NotificationKind.START_REMINDER, EVENT_START),
        ]
        assert all(n.status == NotificationStatus.PENDING for n in rows)
        assert all(n.channels == ["push", "email"] for n in rows)
        assert all(n.priority == "medium" for n in rows)
        assert all(n.max_retries == 3 and n.retry_count == 0 for n in rows)

    async def test_advance_reminder_content(self, engine, db_session) -> None:
        created = await engine.schedule_event(db_session, make_event(EVENT_START))

        hour_before = next(n for n in created if n.minutes_before == 60)
        assert hour_before.title == "Upcoming: Standup"
        assert hour_before.message == "Standup starts in 1 hour. Location: Room 4."
        assert hour_before.extra_metadata["source"] == "materializer"
        assert hour_before.extra_metadata["event_title"] == "Standup"
        assert [a["action"] for a in hour_before.extra_metadata["actions"]] == [
            "confirmed",
            "snooze",
            "ready",
        ]
        start = next(n for n in created if n.kind == NotificationKind.START_REMINDER)
        assert start.minutes_before == 0
        assert start.title == "Starting now: Standup"

    async def test_user_actions_can_be_withheld(self, engine, db_session) -> None:
        created = await engine.schedule_event(
            db_session, make_event(EVENT_START), allow_user_actions=False
        )

        advance = [n for n in created if n.kind == NotificationKind.ADVANCE_REMINDER]
        assert advance
        assert all(n.extra_metadata["actions"] == [] for n in advance)
        assert all(n.extra_metadata["allow_user_actions"] is False for n in advance)

    async def test_past_times_are_skipped(self, engine, db_session) -> None:
        # 60 minutes before 09:30 has already passed at 09:00
        created = await engine.schedule_event(
            db_session, make_event(datetime(2026, 3, 2, 9, 30, tzinfo=UTC))
        )

        assert sorted(n.minutes_before for n in created) == [0, 15]

    async def test_event_already_started_creates_nothing(self, engine, db_session) -> None:
        created = await engine.schedule_event(
            db_session, make_event(datetime(2026, 3, 2, 8, 0, tzinfo=UTC))
        )

        assert created == []

    async def test_quiet_hours_are_skipped(self, engine, session_factory, db_session) -> None:
        await add_all(session_factory, make_preferences(quiet_hours=("22:00", "07:00")))
        # Reminders at 06:10 and 06:55 fall in quiet hours, the start at 07:10 does not
        event = make_event(datetime(2026, 3, 3, 7, 10, tzinfo=UTC))

        created = await engine.schedule_event(db_session, event)

        assert [n.kind for n in created] == [NotificationKind.START_REMINDER]

    async def test_quiet_hours_follow_event_timezone(
        self, engine, session_factory, db_session
    ) -> None:
        await add_all(
            session_factory,
            make_preferences(quiet_hours=("22:00", "07:00"), timezone="UTC"),
        )
        # 14:00 UTC is 23:00 in Tokyo: every reminder lands in quiet hours
        event = make_event(datetime(2026, 3, 2, 14, 0, tzinfo=UTC), timezone="Asia/Tokyo")

        created = await engine.schedule_event(db_session, event)

        assert created == []

    async def test_user_offsets_and_channels(self, engine, session_factory, db_session) -> None:
        await add_all(session_factory, make_preferences(channels=["realtime"], offsets=[5, 30]))

        created = await engine.schedule_event(db_session, make_event(EVENT_START))

        assert sorted(n.minutes_before for n in created) == [0, 5, 30]
        assert all(n.channels == ["realtime"] for n in created)

    async def test_user_without_channels_is_skipped(
        self, engine, session_factory, db_session
    ) -> None:
        await add_all(session_factory, make_preferences("user-2", channels=[]))
        event = make_event(EVENT_START, participant_ids=["user-2"])

        created = await engine.schedule_event(db_session, event)

        assert {n.user_id for n in created} == {"user-1"}

    async def test_participants_each_get_reminders(self, engine, db_session) -> None:
        event = make_event(EVENT_START, participant_ids=["user-2", "user-1", "user-3"])

        created = await engine.schedule_event(db_session, event)

        assert len(created) == 9
        assert {n.user_id for n in created} == {"user-1", "user-2", "user-3"}

    async def test_rescheduling_does_not_duplicate(
        self, engine, db_session, session_factory
    ) -> None:
        event = make_event(EVENT_START)
        await engine.schedule_event(db_session, event)

        again = await engine.schedule_event(db_session, event)

        assert again == []
        assert len(await _rows(session_factory)) == 3

    async def test_explicit_user_ids(self, engine, db_session) -> None:
        created = await engine.schedule_event(db_session, make_event(EVENT_START), ["user-9"])

        assert {n.user_id for n in created} == {"user-9"}
