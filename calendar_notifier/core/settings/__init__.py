"""Modular Pydantic Settings v2 configuration.

One frozen settings model per domain, each with its own env prefix:
APP_, DB_, LOG_, NOTIFY_, CHANNEL_.

Configuration precedence (highest to lowest):
    1. init kwargs (testing/overrides)
    2. YAML/conf.d files (optional, local/dev)
    3. Environment variables
    4. .env file
    5. secrets_dir
"""

from __future__ import annotations

from .app import AppSettings
from .channels import ChannelSettings
from .database import DatabaseSettings
from .loader import (
    clear_all_caches,
    get_app_settings,
    get_channel_settings,
    get_db_settings,
    get_logging_settings,
    get_notification_settings,
)
from .logs import LoggingSettings
from .notifications import NotificationSettings

__all__ = [
    "AppSettings",
    "ChannelSettings",
    "DatabaseSettings",
    "LoggingSettings",
    "NotificationSettings",
    "clear_all_caches",
    "get_app_settings",
    "get_channel_settings",
    "get_db_settings",
    "get_logging_settings",
    "get_notification_settings",
]
