"""Prometheus metrics for the notification engine.

Usage:
    from calendar_notifier.features.notifications.metrics import notification_created_total

    notification_created_total.labels(kind="advance_reminder", priority="medium").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

from calendar_notifier.infra.metrics.prometheus import DEFAULT_LATENCY_BUCKETS, REGISTRY

# =============================================================================
# Materialization
# =============================================================================

notification_created_total = Counter(
    "notification_created_total",
    "Total number of notifications created",
    labelnames=["kind", "priority"],
    registry=REGISTRY,
)

notification_materialize_skipped_total = Counter(
    "notification_materialize_skipped_total",
    "Reminder times not materialized",
    labelnames=["reason"],  # past, quiet_hours, duplicate, no_channels
    registry=REGISTRY,
)
"""
Counter for reminder times the materializer discarded.

Labels:
    reason: past (already elapsed), quiet_hours, duplicate (already pending),
        no_channels (user has every channel disabled)
"""

# =============================================================================
# Dispatch
# =============================================================================

notification_dispatch_total = Counter(
    "notification_dispatch_total",
    "Dispatch attempts by resulting status",
    labelnames=["kind", "outcome"],  # outcome: sent, failed, skipped
    registry=REGISTRY,
)

notification_dispatch_duration_seconds = Histogram(
    "notification_dispatch_duration_seconds",
    "Time to attempt every channel of one notification",
    buckets=DEFAULT_LATENCY_BUCKETS,
    registry=REGISTRY,
)

notification_channel_delivery_total = Counter(
    "notification_channel_delivery_total",
    "Per-channel delivery attempts",
    labelnames=["channel", "outcome"],  # outcome: success, failure, timeout, error
    registry=REGISTRY,
)

notification_channel_duration_seconds = Histogram(
    "notification_channel_duration_seconds",
    "Duration of a single channel send attempt",
    labelnames=["channel"],
    buckets=DEFAULT_LATENCY_BUCKETS,
    registry=REGISTRY,
)

# =============================================================================
# Retry / retention
# =============================================================================

notification_retry_total = Counter(
    "notification_retry_total",
    "Failed notifications re-queued by the retry coordinator",
    labelnames=["outcome"],  # outcome: sent, failed
    registry=REGISTRY,
)

notification_retention_deleted_total = Counter(
    "notification_retention_deleted_total",
    "Terminal notifications removed by the retention sweeper",
    registry=REGISTRY,
)

# =============================================================================
# Acknowledgment
# =============================================================================

notification_acknowledged_total = Counter(
    "notification_acknowledged_total",
    "User acknowledgments by action",
    labelnames=["kind", "action"],
    registry=REGISTRY,
)

notification_start_reminder_cancelled_total = Counter(
    "notification_start_reminder_cancelled_total",
    "Start reminders cancelled by a 'ready' acknowledgment",
    registry=REGISTRY,
)

# =============================================================================
# Fallback event scan
# =============================================================================

notification_event_scan_total = Counter(
    "notification_event_scan_total",
    "Fallback scan decisions per (event, user, offset)",
    labelnames=["outcome"],  # outcome: sent, failed, covered, deduplicated, no_channels
    registry=REGISTRY,
)
