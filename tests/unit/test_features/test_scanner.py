"""Tests for the fallback event scan."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import select

from calendar_notifier.features.notifications.models import Notification, NotificationStatus
from calendar_notifier.features.notifications.scanner import ScanResult
from tests.utils import add_all, make_event, make_preferences

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


async def _notifications(session_factory) -> list[Notification]:
    async with session_factory() as session:
        result = await session.execute(select(Notification))
        return list(result.scalars().all())


@pytest.mark.unit
class TestEventScanner:
    async def test_uncovered_event_gets_a_reminder_once(
        self, engine, session_factory, push_sender
    ) -> None:
        await add_all(session_factory, make_event(NOW + timedelta(minutes=15, seconds=20)))

        first = await engine.scanner.scan()
        second = await engine.scanner.scan()

        assert first == ScanResult(events=1, sent=1)
        assert second == ScanResult(events=1, deduplicated=1)
        assert len(push_sender.sent) == 1

        rows = await _notifications(session_factory)
        assert len(rows) == 1
        assert rows[0].status == NotificationStatus.SENT
        assert rows[0].extra_metadata["source"] == "event_scan"
        assert rows[0].minutes_before == 15
        assert rows[0].scheduled_time == NOW

    async def test_scan_row_covers_after_guard_reset(self, engine, session_factory) -> None:
        await add_all(session_factory, make_event(NOW + timedelta(minutes=15)))
        await engine.scanner.scan()

        assert engine.clear_guard() == 1
        result = await engine.scanner.scan()

        assert result == ScanResult(events=1, covered=1)
        assert len(await _notifications(session_factory)) == 1

    async def test_materialized_event_is_covered(
        self, engine, session_factory, db_session, push_sender
    ) -> None:
        event = make_event(NOW + timedelta(minutes=60))
        await add_all(session_factory, event)
        await engine.schedule_event(db_session, event)

        result = await engine.scanner.scan()

        assert result == ScanResult(events=1, covered=1)
        assert push_sender.sent == []

    async def test_events_outside_window_are_ignored(self, engine, session_factory) -> None:
        await add_all(
            session_factory,
            make_event(NOW + timedelta(minutes=15, seconds=31), event_id="late"),
            make_event(NOW + timedelta(minutes=30), event_id="between"),
        )

        assert await engine.scanner.scan() == ScanResult()

    async def test_unpublished_events_are_ignored(self, engine, session_factory) -> None:
        await add_all(
            session_factory,
            make_event(NOW + timedelta(minutes=15), status="draft"),
        )

        assert await engine.scanner.scan() == ScanResult()

    async def test_users_without_channels(self, engine, session_factory) -> None:
        await add_all(
            session_factory,
            make_event(NOW + timedelta(minutes=15)),
            make_preferences(channels=[]),
        )

        result = await engine.scanner.scan()

        assert result == ScanResult(events=1, no_channels=1)
        assert await _notifications(session_factory) == []

    async def test_failed_delivery_is_not_guarded(
        self, engine, session_factory, push_sender
    ) -> None:
        push_sender.succeed = False
        await add_all(session_factory, make_event(NOW + timedelta(minutes=15)))

        result = await engine.scanner.scan()

        assert result == ScanResult(events=1, failed=1)
        assert len(engine.guard) == 0
        rows = await _notifications(session_factory)
        assert rows[0].status == NotificationStatus.FAILED

    async def test_every_attendee_is_considered(self, engine, session_factory) -> None:
        await add_all(
            session_factory,
            make_event(NOW + timedelta(days=1), participant_ids=["user-2"]),
        )

        result = await engine.scanner.scan()

        assert result == ScanResult(events=1, sent=2)
