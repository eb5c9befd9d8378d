"""Tests for the multi-channel dispatcher and channel adapters."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from calendar_notifier.core.clock import ManualClock
from calendar_notifier.core.settings import NotificationSettings
from calendar_notifier.features.notifications.channels import (
    ALL_CHANNELS_FAILED,
    ChannelRegistry,
    DeliveryContext,
    Dispatcher,
    EmailChannel,
    PushChannel,
    RealtimeChannel,
)
from calendar_notifier.features.notifications.channels.email import email_body, email_subject
from calendar_notifier.features.notifications.models import NotificationStatus
from calendar_notifier.features.notifications.preferences import DatabasePreferenceResolver
from tests.utils import (
    BrokenChannel,
    FakeEmailSender,
    FakePushSender,
    FakeRealtimeSender,
    SlowChannel,
    add_all,
    make_notification,
    make_preferences,
)

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


def _dispatcher(*channels, timeout: float = 0.5) -> Dispatcher:
    return Dispatcher(
        ChannelRegistry(channels),
        DatabasePreferenceResolver(NotificationSettings()),
        ManualClock(NOW),
        channel_timeout=timeout,
    )


@pytest.mark.unit
class TestDispatcher:
    async def test_any_success_marks_sent(self, session_factory, db_session) -> None:
        await add_all(session_factory, make_preferences())
        push = FakePushSender(succeed=False)
        email = FakeEmailSender()
        dispatcher = _dispatcher(PushChannel(push), EmailChannel(email))
        notification = make_notification(NOW, channels=["push", "email"])
        db_session.add(notification)
        await db_session.flush()

        outcome = await dispatcher.dispatch(db_session, notification)

        assert outcome.sent
        assert notification.status == NotificationStatus.SENT
        assert notification.sent_at == NOW
        assert notification.error_message is None
        receipt = notification.delivery_receipt
        assert receipt["push"]["success"] is False
        assert receipt["push"]["error"] == "HTTP 503"
        assert receipt["push"]["status_code"] == 503
        assert receipt["email"]["success"] is True
        assert receipt["email"]["metadata"] == {"message_id": "<1@test>"}
        assert receipt["email"]["attempted_at"] == NOW.isoformat()
        assert email.sent[0]["to"] == "user-1@example.com"

    async def test_all_failures_mark_failed(self, db_session) -> None:
        dispatcher = _dispatcher(PushChannel(FakePushSender(succeed=False)))
        notification = make_notification(NOW, channels=["push"])
        db_session.add(notification)
        await db_session.flush()

        outcome = await dispatcher.dispatch(db_session, notification)

        assert outcome.status == NotificationStatus.FAILED
        assert notification.failed_at == NOW
        assert notification.error_message == ALL_CHANNELS_FAILED

    async def test_email_without_address_fails_with_no_recipient(self, db_session) -> None:
        email = FakeEmailSender()
        dispatcher = _dispatcher(EmailChannel(email))
        notification = make_notification(NOW, channels=["email"])
        db_session.add(notification)
        await db_session.flush()

        await dispatcher.dispatch(db_session, notification)

        assert notification.status == NotificationStatus.FAILED
        assert notification.delivery_receipt["email"]["error_category"] == "no_recipient"
        assert email.sent == []

    async def test_unknown_channel_is_recorded(self, db_session) -> None:
        dispatcher = _dispatcher(PushChannel(FakePushSender()))
        notification = make_notification(NOW, channels=["sms", "push"])
        db_session.add(notification)
        await db_session.flush()

        outcome = await dispatcher.dispatch(db_session, notification)

        assert outcome.sent
        assert notification.delivery_receipt["sms"] == {
            "success": False,
            "error": "Unknown channel: sms",
            "attempted_at": NOW.isoformat(),
            "error_category": "unknown_channel",
        }

    async def test_slow_channel_times_out_without_blocking_others(self, db_session) -> None:
        push = FakePushSender()
        dispatcher = _dispatcher(SlowChannel("email"), PushChannel(push), timeout=0.05)
        notification = make_notification(NOW, channels=["email", "push"])
        db_session.add(notification)
        await db_session.flush()

        outcome = await dispatcher.dispatch(db_session, notification)

        assert outcome.sent
        assert notification.delivery_receipt["email"]["error_category"] == "timeout"
        assert notification.delivery_receipt["push"]["success"] is True
        assert len(push.sent) == 1

    async def test_raising_channel_is_isolated(self, db_session) -> None:
        dispatcher = _dispatcher(BrokenChannel("push"))
        notification = make_notification(NOW, channels=["push"])
        db_session.add(notification)
        await db_session.flush()

        outcome = await dispatcher.dispatch(db_session, notification)

        assert outcome.status == NotificationStatus.FAILED
        entry = notification.delivery_receipt["push"]
        assert entry["error_category"] == "exception"
        assert entry["error"] == "gateway hung up"

    async def test_no_channels(self, db_session) -> None:
        dispatcher = _dispatcher(PushChannel(FakePushSender()))
        notification = make_notification(NOW, channels=[])
        db_session.add(notification)
        await db_session.flush()

        await dispatcher.dispatch(db_session, notification)

        assert notification.status == NotificationStatus.FAILED
        assert notification.error_message == "No delivery channels"
        assert notification.delivery_receipt == {}

    async def test_non_pending_is_not_attempted(self, db_session) -> None:
        push = FakePushSender()
        dispatcher = _dispatcher(PushChannel(push))
        notification = make_notification(NOW, status=NotificationStatus.CANCELLED)
        db_session.add(notification)
        await db_session.flush()

        outcome = await dispatcher.dispatch(db_session, notification)

        assert not outcome.attempted
        assert outcome.status == NotificationStatus.CANCELLED
        assert push.sent == []


@pytest.mark.unit
class TestChannels:
    async def test_push_payload(self) -> None:
        push = FakePushSender()
        notification = make_notification(NOW, metadata={"actions": [{"action": "ready"}]})

        result = await PushChannel(push).send(notification, DeliveryContext())

        assert result.success
        data = push.sent[0]["data"]
        assert data["kind"] == "advance_reminder"
        assert data["scheduled_time"] == NOW.isoformat()
        assert data["actions"] == [{"action": "ready"}]

    async def test_realtime_requires_a_connection(self) -> None:
        notification = make_notification(NOW)

        offline = await RealtimeChannel(FakeRealtimeSender(0)).send(notification, DeliveryContext())
        online = await RealtimeChannel(FakeRealtimeSender(2)).send(notification, DeliveryContext())

        assert not offline.success
        assert offline.error_category == "no_recipient"
        assert online.success
        assert online.metadata == {"connections": 2}

    def test_email_subject_prefix_by_priority(self) -> None:
        assert email_subject(make_notification(NOW)) == "Upcoming: Standup"
        assert email_subject(make_notification(NOW, priority="high")).startswith("[Important] ")
        assert email_subject(make_notification(NOW, priority="urgent")).startswith("[URGENT] ")

    def test_email_body_lists_actions(self) -> None:
        notification = make_notification(
            NOW,
            metadata={"actions": [{"action": "ready", "label": "I'm ready", "description": "Skip"}]},
        )

        body = email_body(notification)

        assert body.startswith("Standup starts in 15 minutes.")
        assert "  - I'm ready: Skip" in body

    async def test_high_priority_email_header(self) -> None:
        email = FakeEmailSender()
        notification = make_notification(NOW, priority="high")

        await EmailChannel(email).send(notification, DeliveryContext(email="a@example.com"))

        assert email.sent[0]["headers"]["X-Priority"] == "1"
