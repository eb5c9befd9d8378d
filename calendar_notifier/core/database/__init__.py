"""Core database package: declarative base, mixins, column types and repository."""

from calendar_notifier.core.database.base import (
    Base,
    TimestampMixin,
    UUIDv7PKMixin,
    generate_uuid7,
)
from calendar_notifier.core.database.repository import BaseRepository, SearchResult
from calendar_notifier.core.database.types import StringArray, UTCDateTime

__all__ = [
    "Base",
    "BaseRepository",
    "SearchResult",
    "StringArray",
    "TimestampMixin",
    "UTCDateTime",
    "UUIDv7PKMixin",
    "generate_uuid7",
]
