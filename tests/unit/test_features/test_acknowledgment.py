"""Tests for acknowledgment handling (confirmed / snooze / ready / dismissed)."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
import uuid

import pytest
from sqlalchemy import select

from calendar_notifier.core.exceptions import ValidationException
from calendar_notifier.features.notifications.acknowledgment import normalize_action
from calendar_notifier.features.notifications.exceptions import (
    InvalidStatusTransitionError,
    NotificationAccessDeniedError,
    NotificationNotFoundError,
)
from calendar_notifier.features.notifications.models import (
    Notification,
    NotificationKind,
    NotificationStatus,
    UserAction,
)
from tests.utils import add_all, load, make_event, make_notification

EVENT_START = datetime(2026, 3, 2, 11, 0, tzinfo=UTC)


async def _scheduled(engine, db_session) -> dict[int, Notification]:
    """Materialize the standard event and index the rows by minutes_before."""
    created = await engine.schedule_event(db_session, make_event(EVENT_START))
    return {n.minutes_before: n for n in created}


@pytest.mark.unit
class TestNormalizeAction:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("ready", UserAction.READY),
            (" Snooze ", UserAction.SNOOZE),
            ("CONFIRMED", UserAction.CONFIRMED),
            ("maybe", UserAction.DISMISSED),
            (None, UserAction.DISMISSED),
        ],
    )
    def test_normalize(self, raw, expected) -> None:
        assert normalize_action(raw) == expected


@pytest.mark.unit
class TestAcknowledgment:
    async def test_ready_cancels_start_reminder(
        self, engine, clock, db_session, session_factory, push_sender
    ) -> None:
        rows = await _scheduled(engine, db_session)
        clock.set(EVENT_START - timedelta(minutes=15))
        await engine.ticker.tick()

        result = await engine.acknowledge(db_session, rows[15].id, "user-1", "ready")

        assert result.action == "ready"
        assert result.cancelled_id == rows[0].id
        assert result.message == (
            'You\'re ready for "Standup". The start reminder has been cancelled.'
        )
        assert (await load(session_factory, rows[15].id)).status == NotificationStatus.ACKNOWLEDGED
        assert (await load(session_factory, rows[0].id)).status == NotificationStatus.CANCELLED

        sent_before = len(push_sender.sent)
        clock.set(EVENT_START + timedelta(minutes=1))
        assert await engine.ticker.tick() == 0
        assert len(push_sender.sent) == sent_before

    async def test_ready_without_start_reminder(self, engine, session_factory, db_session) -> None:
        notification = make_notification(datetime(2026, 3, 2, 8, 45, tzinfo=UTC))
        await add_all(session_factory, notification)

        result = await engine.acknowledge(db_session, notification.id, "user-1", "ready")

        assert result.cancelled_id is None
        assert (await load(session_factory, notification.id)).user_action == "ready"

    async def test_snooze_schedules_follow_up(
        self, engine, clock, db_session, session_factory
    ) -> None:
        rows = await _scheduled(engine, db_session)
        clock.set(EVENT_START - timedelta(minutes=15))

        result = await engine.acknowledge(db_session, rows[15].id, "user-1", "snooze", 10)

        assert result.message == 'Reminder for "Standup" snoozed for 10 minutes.'
        follow_up = await load(session_factory, result.follow_up_id)
        assert follow_up.kind == NotificationKind.SNOOZE_REMINDER
        assert follow_up.status == NotificationStatus.PENDING
        assert follow_up.scheduled_time == clock.now() + timedelta(minutes=10)
        assert follow_up.extra_metadata["original_notification_id"] == str(rows[15].id)
        assert follow_up.extra_metadata["snooze_count"] == 1
        assert follow_up.channels == ["push", "email"]

        original = await load(session_factory, rows[15].id)
        assert original.status == NotificationStatus.ACKNOWLEDGED
        assert original.user_action == "snooze"
        assert original.acknowledged_at == clock.now()
        # The start reminder is untouched by a snooze
        assert (await load(session_factory, rows[0].id)).status == NotificationStatus.PENDING

    async def test_snooze_uses_default_length(self, engine, clock, db_session, session_factory) -> None:
        rows = await _scheduled(engine, db_session)

        result = await engine.acknowledge(db_session, rows[60].id, "user-1", "snooze")

        follow_up = await load(session_factory, result.follow_up_id)
        assert follow_up.scheduled_time == clock.now() + timedelta(minutes=10)

    async def test_confirmed_keeps_start_reminder(
        self, engine, db_session, session_factory
    ) -> None:
        rows = await _scheduled(engine, db_session)

        result = await engine.acknowledge(db_session, rows[60].id, "user-1", "confirmed")

        assert result.message == 'Attendance confirmed for "Standup".'
        assert result.follow_up_id is None and result.cancelled_id is None
        assert (await load(session_factory, rows[0].id)).status == NotificationStatus.PENDING

    async def test_unknown_action_is_dismissed(self, engine, db_session) -> None:
        rows = await _scheduled(engine, db_session)

        result = await engine.acknowledge(db_session, rows[60].id, "user-1", "later maybe")

        assert result.action == "dismissed"
        assert result.message == 'Reminder for "Standup" dismissed.'

    async def test_non_advance_reminder_gets_generic_reply(self, engine, db_session) -> None:
        rows = await _scheduled(engine, db_session)

        result = await engine.acknowledge(db_session, rows[0].id, "user-1", "ready")

        assert result.message == "Notification acknowledged."
        assert result.cancelled_id is None

    async def test_realtime_echo(self, engine, db_session, realtime_sender) -> None:
        rows = await _scheduled(engine, db_session)

        await engine.acknowledge(db_session, rows[60].id, "user-1", "confirmed")

        user_id, message = realtime_sender.messages[-1]
        assert user_id == "user-1"
        assert message["type"] == "notification_response"
        assert message["data"]["action"] == "confirmed"
        assert message["data"]["notification_id"] == str(rows[60].id)

    async def test_sent_notification_can_be_acknowledged(
        self, engine, session_factory, db_session
    ) -> None:
        notification = make_notification(
            datetime(2026, 3, 2, 8, 45, tzinfo=UTC), status=NotificationStatus.SENT
        )
        await add_all(session_factory, notification)

        await engine.acknowledge(db_session, notification.id, "user-1", "confirmed")

        assert (await load(session_factory, notification.id)).status == NotificationStatus.ACKNOWLEDGED


@pytest.mark.unit
class TestAcknowledgmentErrors:
    async def test_not_found(self, engine, db_session) -> None:
        with pytest.raises(NotificationNotFoundError) as exc_info:
            await engine.acknowledge(db_session, uuid.uuid4(), "user-1", "ready")

        assert exc_info.value.status_code == 404
        assert exc_info.value.type == "notification-not-found"

    async def test_other_users_notification(self, engine, db_session) -> None:
        rows = await _scheduled(engine, db_session)

        with pytest.raises(NotificationAccessDeniedError) as exc_info:
            await engine.acknowledge(db_session, rows[60].id, "user-2", "ready")

        assert exc_info.value.status_code == 403

    @pytest.mark.parametrize(
        "status", [NotificationStatus.ACKNOWLEDGED, NotificationStatus.CANCELLED, NotificationStatus.FAILED]
    )
    async def test_final_states_cannot_be_acknowledged(
        self, engine, session_factory, db_session, status
    ) -> None:
        notification = make_notification(datetime(2026, 3, 2, 8, 45, tzinfo=UTC), status=status)
        await add_all(session_factory, notification)

        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            await engine.acknowledge(db_session, notification.id, "user-1", "confirmed")

        assert exc_info.value.status_code == 409

    async def test_non_positive_snooze(self, engine, db_session) -> None:
        rows = await _scheduled(engine, db_session)

        with pytest.raises(ValidationException):
            await engine.acknowledge(db_session, rows[60].id, "user-1", "snooze", 0)

    async def test_rejected_acknowledgment_changes_nothing(
        self, engine, db_session, session_factory
    ) -> None:
        rows = await _scheduled(engine, db_session)

        with pytest.raises(NotificationAccessDeniedError):
            await engine.acknowledge(db_session, rows[60].id, "user-2", "snooze")

        async with session_factory() as session:
            result = await session.execute(
                select(Notification).where(Notification.kind == NotificationKind.SNOOZE_REMINDER)
            )
            assert result.scalars().all() == []
        assert (await load(session_factory, rows[60].id)).status == NotificationStatus.PENDING
