"""Human-readable titles, bodies and acknowledgment replies."""

from __future__ import annotations

from datetime import datetime, tzinfo

from calendar_notifier.features.notifications.models import UserAction

# Offered on advance reminders when the caller allows user actions
ADVANCE_REMINDER_ACTIONS: tuple[dict[str, str], ...] = (
    {
        "action": UserAction.CONFIRMED.value,
        "label": "I'll be there",
        "description": "Confirm attendance, keep the start reminder",
    },
    {
        "action": UserAction.SNOOZE.value,
        "label": "Remind me later",
        "description": "Send this reminder again in a few minutes",
    },
    {
        "action": UserAction.READY.value,
        "label": "I'm ready",
        "description": "Skip the reminder at start time",
    },
)


def humanize_offset(minutes: int) -> str:
    """``15`` -> ``"15 minutes"``, ``60`` -> ``"1 hour"``, ``1440`` -> ``"1 day"``."""
    if minutes % 1440 == 0:
        days = minutes // 1440
        return f"{days} day" if days == 1 else f"{days} days"
    if minutes % 60 == 0:
        hours = minutes // 60
        return f"{hours} hour" if hours == 1 else f"{hours} hours"
    return "1 minute" if minutes == 1 else f"{minutes} minutes"


def format_local(instant: datetime, zone: tzinfo) -> str:
    return instant.astimezone(zone).strftime("%Y-%m-%d %H:%M")


def advance_reminder(title: str, minutes: int, location: str | None) -> tuple[str, str]:
    body = f"{title} starts in {humanize_offset(minutes)}."
    if location:
        body += f" Location: {location}."
    return f"Upcoming: {title}", body


def start_reminder(title: str, location: str | None) -> tuple[str, str]:
    body = f"{title} is starting now."
    if location:
        body += f" Location: {location}."
    return f"Starting now: {title}", body


def snooze_reminder(title: str, snooze_count: int) -> tuple[str, str]:
    suffix = "" if snooze_count == 1 else f" (snoozed {snooze_count} times)"
    return f"Reminder: {title}", f"You asked to be reminded again about {title}.{suffix}"


def cancellation(title: str, start_local: str) -> tuple[str, str]:
    return f"Cancelled: {title}", f"{title} scheduled for {start_local} has been cancelled."


def acknowledgment_reply(action: str, title: str | None, snooze_minutes: int | None = None) -> str:
    """Confirmation message returned to the caller after an acknowledgment."""
    subject = f'"{title}"' if title else "this event"
    if action == UserAction.CONFIRMED:
        return f"Attendance confirmed for {subject}."
    if action == UserAction.SNOOZE:
        return f"Reminder for {subject} snoozed for {humanize_offset(snooze_minutes or 0)}."
    if action == UserAction.READY:
        return f"You're ready for {subject}. The start reminder has been cancelled."
    return f"Reminder for {subject} dismissed."


GENERIC_ACKNOWLEDGMENT = "Notification acknowledged."
