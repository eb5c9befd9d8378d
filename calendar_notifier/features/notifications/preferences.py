"""Preference resolution and quiet-hours evaluation.

The resolver turns a user id into the channels, advance offsets and
quiet-hours window the materializer works with. Users without a stored
preference row get the configured defaults.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, time, tzinfo
from typing import TYPE_CHECKING, Protocol

from dateutil import tz

from calendar_notifier.features.notifications.models import DeliveryChannel
from calendar_notifier.features.notifications.repository import PreferenceRepository

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

    from calendar_notifier.core.settings import NotificationSettings
    from calendar_notifier.features.notifications.models import UserNotificationPreference

logger = logging.getLogger(__name__)


def parse_clock_time(value: str) -> time:
    """Parse an ``HH:MM`` wall-clock string.

    Raises:
        ValueError: If the value is not a valid 24h time.
    """
    hours, sep, minutes = value.strip().partition(":")
    if not sep or not hours.isdigit() or not minutes.isdigit():
        raise ValueError(f"Invalid clock time {value!r}, expected HH:MM")
    return time(int(hours), int(minutes))


@dataclass(frozen=True, slots=True)
class QuietHours:
    """Local wall-clock window during which no reminder is scheduled.

    When ``start > end`` the window wraps midnight (e.g. 22:00-07:00).
    Both bounds are inclusive, compared at minute resolution.
    """

    enabled: bool = False
    start: time = time(22, 0)
    end: time = time(8, 0)

    @classmethod
    def from_strings(cls, enabled: bool, start: str, end: str) -> QuietHours:
        return cls(enabled=enabled, start=parse_clock_time(start), end=parse_clock_time(end))

    def contains(self, local_time: time) -> bool:
        if not self.enabled:
            return False
        t = local_time.replace(second=0, microsecond=0, tzinfo=None)
        if self.start > self.end:
            return t >= self.start or t <= self.end
        return self.start <= t <= self.end

    def contains_instant(self, instant: datetime, zone: tzinfo) -> bool:
        """Whether ``instant`` falls inside the window in timezone ``zone``."""
        return self.contains(instant.astimezone(zone).time())


def resolve_timezone(*names: str | None) -> tzinfo:
    """Return the first resolvable IANA zone among ``names``, else UTC."""
    for name in names:
        if not name:
            continue
        zone = tz.gettz(name)
        if zone is not None:
            return zone
        logger.warning("Unknown timezone, trying next candidate", extra={"timezone": name})
    return tz.UTC


@dataclass(frozen=True, slots=True)
class NotificationPreferences:
    user_id: str
    channels: tuple[str, ...]
    advance_offsets: tuple[int, ...]
    quiet_hours: QuietHours = field(default_factory=QuietHours)
    timezone: str = "UTC"
    email: str | None = None


class PreferenceResolver(Protocol):
    """Collaborator contract: user id -> delivery preferences."""

    async def get_preferences(self, session: AsyncSession, user_id: str) -> NotificationPreferences: ...


class DatabasePreferenceResolver:
    """Reads ``notification_preferences`` rows and fills gaps with defaults."""

    def __init__(
        self,
        settings: NotificationSettings,
        repository: PreferenceRepository | None = None,
    ) -> None:
        self._settings = settings
        self._repository = repository or PreferenceRepository()

    def defaults(self, user_id: str) -> NotificationPreferences:
        return NotificationPreferences(
            user_id=user_id,
            channels=(DeliveryChannel.PUSH.value, DeliveryChannel.EMAIL.value),
            advance_offsets=tuple(self._settings.default_advance_offsets),
        )

    async def get_preferences(self, session: AsyncSession, user_id: str) -> NotificationPreferences:
        row = await self._repository.get_for_user(session, user_id)
        if row is None:
            return self.defaults(user_id)
        return self._from_row(row)

    async def get_many(
        self,
        session: AsyncSession,
        user_ids: Iterable[str],
    ) -> dict[str, NotificationPreferences]:
        ids = list(user_ids)
        rows = await self._repository.get_many(session, ids)
        return {
            user_id: self._from_row(rows[user_id]) if user_id in rows else self.defaults(user_id)
            for user_id in ids
        }

    def _from_row(self, row: UserNotificationPreference) -> NotificationPreferences:
        known = {c.value for c in DeliveryChannel}
        channels = tuple(c for c in row.enabled_channels or [] if c in known)
        offsets = tuple(sorted({int(o) for o in row.advance_offsets or [] if int(o) > 0}))
        try:
            quiet_hours = QuietHours.from_strings(
                row.quiet_hours_enabled, row.quiet_hours_start, row.quiet_hours_end
            )
        except ValueError:
            logger.warning(
                "Ignoring malformed quiet hours",
                extra={
                    "user_id": row.user_id,
                    "start": row.quiet_hours_start,
                    "end": row.quiet_hours_end,
                },
            )
            quiet_hours = QuietHours(enabled=False)
        return NotificationPreferences(
            user_id=row.user_id,
            channels=channels,
            advance_offsets=offsets or tuple(self._settings.default_advance_offsets),
            quiet_hours=quiet_hours,
            timezone=row.timezone or "UTC",
            email=row.email,
        )
