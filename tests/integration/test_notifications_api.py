"""End-to-end tests for the notifications API."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
import uuid

from httpx import AsyncClient
import pytest

from calendar_notifier.features.notifications.models import NotificationKind, NotificationStatus
from tests.utils import add_all, load, make_event, make_notification

EVENT_START = datetime(2026, 3, 2, 11, 0, tzinfo=UTC)
NOW = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)

PROBLEM_JSON = "application/problem+json"


@pytest.fixture
async def scheduled(engine, db_session) -> dict[int, object]:
    """Standard event materialized for user-1, indexed by minutes_before."""
    created = await engine.schedule_event(db_session, make_event(EVENT_START))
    return {n.minutes_before: n for n in created}


@pytest.mark.integration
class TestListNotifications:
    async def test_requires_user_header(self, client: AsyncClient) -> None:
        response = await client.get("/notifications")

        assert response.status_code == 401
        assert response.headers["content-type"].startswith(PROBLEM_JSON)
        assert response.json()["type"] == "missing-user-id"

    async def test_lists_newest_first_with_pagination(
        self, client: AsyncClient, session_factory, user_headers
    ) -> None:
        rows = [
            make_notification(NOW, created_at=NOW - timedelta(minutes=i), event_id=f"evt-{i}")
            for i in range(5)
        ]
        await add_all(session_factory, *rows, make_notification(NOW, user_id="user-2"))

        response = await client.get("/notifications?page=2&limit=2", headers=user_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["pagination"] == {"page": 2, "limit": 2, "total": 5, "pages": 3}
        assert [n["event_id"] for n in body["notifications"]] == ["evt-2", "evt-3"]

    async def test_filters(
        self, client: AsyncClient, session_factory, user_headers
    ) -> None:
        await add_all(
            session_factory,
            make_notification(NOW, kind=NotificationKind.START_REMINDER),
            make_notification(NOW, status=NotificationStatus.SENT),
            make_notification(NOW, priority="high"),
        )

        by_type = await client.get("/notifications?type=start_reminder", headers=user_headers)
        by_status = await client.get("/notifications?status=sent", headers=user_headers)
        unread = await client.get(
            "/notifications?unread_only=true&status=sent", headers=user_headers
        )
        by_priority = await client.get("/notifications?priority=high", headers=user_headers)

        assert by_type.json()["pagination"]["total"] == 1
        assert by_status.json()["notifications"][0]["status"] == "sent"
        assert unread.json()["pagination"]["total"] == 2
        assert by_priority.json()["notifications"][0]["priority"] == "high"

    async def test_invalid_query_is_a_problem_response(
        self, client: AsyncClient, user_headers
    ) -> None:
        response = await client.get("/notifications?limit=500", headers=user_headers)

        assert response.status_code == 422
        body = response.json()
        assert body["type"] == "validation-error"
        assert body["errors"][0]["field"].endswith("limit")


@pytest.mark.integration
class TestReadState:
    async def test_unread_count_and_read_all(
        self, client: AsyncClient, scheduled, user_headers
    ) -> None:
        before = await client.get("/notifications/unread-count", headers=user_headers)
        read_all = await client.put("/notifications/read-all", headers=user_headers)
        after = await client.get("/notifications/unread-count", headers=user_headers)

        assert before.json() == {"unread_count": 3}
        assert read_all.json() == {"updated_count": 3}
        assert after.json() == {"unread_count": 0}

    async def test_read_all_retires_future_reminders(
        self,
        client: AsyncClient,
        scheduled,
        engine,
        clock,
        session_factory,
        push_sender,
        user_headers,
    ) -> None:
        start_reminder = scheduled[0]

        await client.put("/notifications/read-all", headers=user_headers)
        clock.set(EVENT_START)
        processed = await engine.ticker.tick()

        stored = await load(session_factory, start_reminder.id)
        assert stored.status == NotificationStatus.ACKNOWLEDGED
        assert stored.read_at is not None
        assert processed == 0
        assert push_sender.sent == []

    async def test_mark_read(
        self, client: AsyncClient, scheduled, session_factory, user_headers
    ) -> None:
        target = scheduled[60]

        response = await client.put(f"/notifications/{target.id}/read", headers=user_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "acknowledged"
        assert body["read_at"] is not None
        assert body["metadata"]["minutes_before"] == 60

    async def test_mark_read_keeps_sent_status(
        self, client: AsyncClient, session_factory, user_headers
    ) -> None:
        notification = make_notification(NOW, status=NotificationStatus.SENT)
        await add_all(session_factory, notification)

        response = await client.put(f"/notifications/{notification.id}/read", headers=user_headers)

        assert response.json()["status"] == "sent"
        assert (await load(session_factory, notification.id)).read_at == NOW

    async def test_get_single(self, client: AsyncClient, scheduled, user_headers) -> None:
        target = scheduled[0]

        response = await client.get(f"/notifications/{target.id}", headers=user_headers)

        assert response.status_code == 200
        assert response.json()["kind"] == "start_reminder"

    async def test_unknown_and_foreign_ids(self, client: AsyncClient, scheduled) -> None:
        missing = await client.get(f"/notifications/{uuid.uuid4()}", headers={"X-User-ID": "user-1"})
        foreign = await client.get(
            f"/notifications/{scheduled[0].id}", headers={"X-User-ID": "user-2"}
        )

        assert missing.status_code == 404
        assert missing.json()["type"] == "notification-not-found"
        assert foreign.status_code == 403
        assert foreign.json()["type"] == "notification-not-owned"


@pytest.mark.integration
class TestAcknowledgeEndpoint:
    async def test_ready(
        self, client: AsyncClient, scheduled, session_factory, user_headers
    ) -> None:
        response = await client.post(
            f"/notifications/{scheduled[15].id}/acknowledge",
            json={"action": "ready"},
            headers=user_headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["action"] == "ready"
        assert body["cancelled_id"] == str(scheduled[0].id)
        assert (await load(session_factory, scheduled[0].id)).status == NotificationStatus.CANCELLED

    async def test_snooze(self, client: AsyncClient, scheduled, user_headers) -> None:
        response = await client.post(
            f"/notifications/{scheduled[60].id}/acknowledge",
            json={"action": "snooze", "snooze_minutes": 20},
            headers=user_headers,
        )

        body = response.json()
        assert body["message"] == 'Reminder for "Standup" snoozed for 20 minutes.'
        assert body["follow_up_id"] is not None

    async def test_second_acknowledgment_conflicts(
        self, client: AsyncClient, scheduled, user_headers
    ) -> None:
        url = f"/notifications/{scheduled[60].id}/acknowledge"

        first = await client.post(url, json={"action": "confirmed"}, headers=user_headers)
        second = await client.post(url, json={"action": "confirmed"}, headers=user_headers)

        assert first.status_code == 200
        assert second.status_code == 409
        assert second.json()["type"] == "invalid-status-transition"

    async def test_invalid_snooze_length(
        self, client: AsyncClient, scheduled, user_headers
    ) -> None:
        response = await client.post(
            f"/notifications/{scheduled[60].id}/acknowledge",
            json={"action": "snooze", "snooze_minutes": 0},
            headers=user_headers,
        )

        assert response.status_code == 422

    async def test_foreign_notification(self, client: AsyncClient, scheduled) -> None:
        response = await client.post(
            f"/notifications/{scheduled[60].id}/acknowledge",
            json={"action": "ready"},
            headers={"X-User-ID": "user-2"},
        )

        assert response.status_code == 403


@pytest.mark.integration
class TestStatsAndDelete:
    async def test_stats(self, client: AsyncClient, session_factory, user_headers) -> None:
        await add_all(
            session_factory,
            make_notification(NOW),
            make_notification(NOW, status=NotificationStatus.SENT),
            make_notification(NOW, kind=NotificationKind.START_REMINDER),
            make_notification(NOW - timedelta(days=40), created_at=NOW - timedelta(days=40)),
        )

        response = await client.get("/notifications/stats", headers=user_headers)

        body = response.json()
        assert body["period_days"] == 30
        assert body["total"] == 3
        assert body["by_status"] == {"pending": 2, "sent": 1}
        assert body["by_type"] == {"advance_reminder": 2, "start_reminder": 1}
        assert {"status": "sent", "type": "advance_reminder", "count": 1} in body["breakdown"]

    async def test_delete(
        self, client: AsyncClient, scheduled, session_factory, user_headers
    ) -> None:
        target = scheduled[60]

        response = await client.delete(f"/notifications/{target.id}", headers=user_headers)
        again = await client.get(f"/notifications/{target.id}", headers=user_headers)

        assert response.status_code == 204
        assert again.status_code == 404

    async def test_delete_foreign(self, client: AsyncClient, scheduled) -> None:
        response = await client.delete(
            f"/notifications/{scheduled[60].id}", headers={"X-User-ID": "user-2"}
        )

        assert response.status_code == 403
