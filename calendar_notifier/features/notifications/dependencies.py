"""FastAPI dependencies for the notifications feature.

Example usage:
    from calendar_notifier.features.notifications.dependencies import (
        CurrentUserIdDep,
        NotificationEngineDep,
        SessionDep,
    )

    @router.get("/notifications/unread-count")
    async def unread_count(
        user_id: CurrentUserIdDep,
        session: SessionDep,
        engine: NotificationEngineDep,
    ) -> UnreadCountResponse:
        ...
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from calendar_notifier.core.dependencies.auth import get_current_user_id
from calendar_notifier.core.dependencies.database import get_db_session
from calendar_notifier.features.notifications.engine import (
    NotificationEngine,
    get_notification_engine,
)

# Database session dependency
SessionDep = Annotated[AsyncSession, Depends(get_db_session)]

# Caller identity (X-User-ID header)
CurrentUserIdDep = Annotated[str, Depends(get_current_user_id)]

NotificationEngineDep = Annotated[NotificationEngine, Depends(get_notification_engine)]
