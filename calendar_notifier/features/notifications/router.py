"""API router for the notifications feature.

Endpoints:
- GET /notifications - List the caller's notifications
- GET /notifications/unread-count - Count of pending notifications
- GET /notifications/stats - Counts by status and type
- PUT /notifications/read-all - Mark every pending notification read
- GET /notifications/{notification_id} - Single notification
- PUT /notifications/{notification_id}/read - Mark one notification read
- POST /notifications/{notification_id}/acknowledge - Respond to a reminder
- DELETE /notifications/{notification_id} - Delete a notification
"""

from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query, status

from calendar_notifier.features.notifications.dependencies import (
    CurrentUserIdDep,
    NotificationEngineDep,
    SessionDep,
)
from calendar_notifier.features.notifications.models import (
    NotificationKind,
    NotificationPriority,
    NotificationStatus,
)
from calendar_notifier.features.notifications.schemas import (
    AcknowledgeRequest,
    AcknowledgeResponse,
    NotificationListResponse,
    NotificationResponse,
    NotificationStatsResponse,
    PaginationInfo,
    ReadAllResponse,
    StatsBreakdownItem,
    UnreadCountResponse,
)
from calendar_notifier.infra.logging import get_lazy_logger

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)

router = APIRouter(
    prefix="/notifications",
    tags=["notifications"],
)

_NOT_FOUND_OR_FORBIDDEN = {
    404: {"description": "Notification not found (type: notification-not-found)"},
    403: {"description": "Notification belongs to another user (type: notification-not-owned)"},
}


@router.get(
    "",
    response_model=NotificationListResponse,
    summary="List notifications",
    description="""
List notifications for the caller, newest first.

**Query Parameters:**
- `type`: Filter by kind (advance_reminder, start_reminder, snooze_reminder, cancellation)
- `status`: Filter by status
- `priority`: Filter by priority
- `unread_only`: Only pending notifications (overrides `status`)
- `page` / `limit`: Pagination
""",
)
async def list_notifications(
    user_id: CurrentUserIdDep,
    session: SessionDep,
    engine: NotificationEngineDep,
    page: Annotated[int, Query(ge=1, description="Page number")] = 1,
    limit: Annotated[int, Query(ge=1, le=100, description="Page size")] = 20,
    kind: Annotated[
        NotificationKind | None, Query(alias="type", description="Filter by notification type")
    ] = None,
    status_filter: Annotated[
        NotificationStatus | None, Query(alias="status", description="Filter by status")
    ] = None,
    priority: Annotated[
        NotificationPriority | None, Query(description="Filter by priority")
    ] = None,
    unread_only: Annotated[bool, Query(description="Only unread (pending) notifications")] = False,
) -> NotificationListResponse:
    result = await engine.service.list_notifications(
        session,
        user_id,
        page=page,
        limit=limit,
        kind=kind,
        status=status_filter,
        priority=priority,
        unread_only=unread_only,
    )
    lazy_logger.debug(
        lambda: f"router.list_notifications: user_id={user_id}, page={page}, total={result.total}"
    )
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in result.items],
        pagination=PaginationInfo(
            page=page,
            limit=limit,
            total=result.total,
            pages=result.pages,
        ),
    )


@router.get(
    "/unread-count",
    response_model=UnreadCountResponse,
    summary="Count unread notifications",
)
async def unread_count(
    user_id: CurrentUserIdDep,
    session: SessionDep,
    engine: NotificationEngineDep,
) -> UnreadCountResponse:
    return UnreadCountResponse(unread_count=await engine.service.unread_count(session, user_id))


@router.get(
    "/stats",
    response_model=NotificationStatsResponse,
    summary="Notification statistics",
    description="Counts grouped by status and type over the trailing `days` (default 30).",
)
async def notification_stats(
    user_id: CurrentUserIdDep,
    session: SessionDep,
    engine: NotificationEngineDep,
    days: Annotated[int, Query(ge=1, le=365, description="Trailing period in days")] = 30,
) -> NotificationStatsResponse:
    stats = await engine.service.stats(session, user_id, days)
    return NotificationStatsResponse(
        period_days=stats.period_days,
        since=stats.since,
        total=stats.total,
        by_status=stats.by_status,
        by_type=stats.by_kind,
        breakdown=[StatsBreakdownItem.model_validate(item) for item in stats.breakdown],
    )


@router.put(
    "/read-all",
    response_model=ReadAllResponse,
    summary="Mark all notifications read",
    description="""
Every `pending` notification of the caller becomes `acknowledged` with
`read_at` set. This includes reminders scheduled in the future, such as the
start reminder of an upcoming event: they will not be delivered afterwards.
Notifications in other states are left unchanged.
""",
)
async def mark_all_read(
    user_id: CurrentUserIdDep,
    session: SessionDep,
    engine: NotificationEngineDep,
) -> ReadAllResponse:
    updated = await engine.service.mark_all_read(session, user_id)
    return ReadAllResponse(updated_count=updated)


@router.get(
    "/{notification_id}",
    response_model=NotificationResponse,
    summary="Get a notification",
    responses=_NOT_FOUND_OR_FORBIDDEN,
)
async def get_notification(
    notification_id: UUID,
    user_id: CurrentUserIdDep,
    session: SessionDep,
    engine: NotificationEngineDep,
) -> NotificationResponse:
    notification = await engine.service.get_owned(session, notification_id, user_id)
    return NotificationResponse.model_validate(notification)


@router.put(
    "/{notification_id}/read",
    response_model=NotificationResponse,
    summary="Mark a notification read",
    description="""
Stamps `read_at`. A `pending` notification also becomes `acknowledged`;
notifications in any other state keep their status.
""",
    responses=_NOT_FOUND_OR_FORBIDDEN,
)
async def mark_read(
    notification_id: UUID,
    user_id: CurrentUserIdDep,
    session: SessionDep,
    engine: NotificationEngineDep,
) -> NotificationResponse:
    notification = await engine.service.mark_read(session, notification_id, user_id)
    return NotificationResponse.model_validate(notification)


@router.post(
    "/{notification_id}/acknowledge",
    response_model=AcknowledgeResponse,
    summary="Respond to a reminder",
    description="""
Acknowledge a notification with an action.

On an advance reminder:
- `confirmed`: acknowledged, the start reminder still fires
- `snooze`: acknowledged, a snooze reminder is scheduled `snooze_minutes` from now
- `ready`: acknowledged, the pending start reminder is cancelled
- `dismissed` or anything else: acknowledged only
""",
    responses={
        **_NOT_FOUND_OR_FORBIDDEN,
        409: {"description": "Notification already final (type: invalid-status-transition)"},
    },
)
async def acknowledge_notification(
    notification_id: UUID,
    payload: AcknowledgeRequest,
    user_id: CurrentUserIdDep,
    session: SessionDep,
    engine: NotificationEngineDep,
) -> AcknowledgeResponse:
    result = await engine.acknowledge(
        session,
        notification_id,
        user_id,
        payload.action,
        payload.snooze_minutes,
    )
    return AcknowledgeResponse(
        message=result.message,
        action=result.action,
        notification_id=result.notification_id,
        timestamp=result.timestamp,
        follow_up_id=result.follow_up_id,
        cancelled_id=result.cancelled_id,
    )


@router.delete(
    "/{notification_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a notification",
    responses=_NOT_FOUND_OR_FORBIDDEN,
)
async def delete_notification(
    notification_id: UUID,
    user_id: CurrentUserIdDep,
    session: SessionDep,
    engine: NotificationEngineDep,
) -> None:
    await engine.service.delete(session, notification_id, user_id)
    logger.info(
        "Notification deleted",
        extra={"notification_id": str(notification_id), "user_id": user_id},
    )
