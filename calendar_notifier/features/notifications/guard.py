"""Short-lived memory of fallback deliveries already made.

The event scan runs every minute with a window wider than its interval, so
the same ``(event, user, offset)`` can match on consecutive runs. The guard
remembers what was sent so it is sent once.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, NamedTuple

if TYPE_CHECKING:
    from calendar_notifier.core.clock import Clock


class GuardKey(NamedTuple):
    event_id: str
    user_id: str
    offset_minutes: int


class DuplicateDeliveryGuard:
    """In-memory TTL set of :class:`GuardKey`.

    Entries expire ``ttl`` after they were marked; ``clear()`` drops
    everything and is run hourly by the scheduler.
    """

    def __init__(self, clock: Clock, ttl: timedelta = timedelta(hours=1)) -> None:
        self._clock = clock
        self._ttl = ttl
        self._entries: dict[GuardKey, datetime] = {}

    def seen(self, key: GuardKey) -> bool:
        expires_at = self._entries.get(key)
        if expires_at is None:
            return False
        if expires_at <= self._clock.now():
            del self._entries[key]
            return False
        return True

    def mark(self, key: GuardKey) -> None:
        self._entries[key] = self._clock.now() + self._ttl

    def clear(self) -> int:
        """Forget every entry; returns how many there were."""
        count = len(self._entries)
        self._entries.clear()
        return count

    def purge_expired(self) -> int:
        now = self._clock.now()
        expired = [key for key, expires_at in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)
