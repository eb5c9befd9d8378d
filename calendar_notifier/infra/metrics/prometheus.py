"""Prometheus metrics for infrastructure monitoring."""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

# Custom registry so /metrics only exposes this service's collectors
REGISTRY = CollectorRegistry()

# Covers durations from 1ms to 10s
DEFAULT_LATENCY_BUCKETS = (
    0.001,
    0.005,
    0.01,
    0.025,
    0.05,
    0.1,
    0.25,
    0.5,
    1.0,
    2.5,
    5.0,
    10.0,
)

# Periodic jobs can run much longer than a single request
JOB_DURATION_BUCKETS = (0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 15.0, 30.0, 60.0, 120.0, 300.0)

# ============================================================================
# Database Metrics
# ============================================================================

database_query_duration_seconds = Histogram(
    "database_query_duration_seconds",
    "Database query execution time in seconds",
    ["operation"],
    buckets=DEFAULT_LATENCY_BUCKETS,
    registry=REGISTRY,
)

database_slow_queries_total = Counter(
    "database_slow_queries_total",
    "Queries that took longer than one second",
    ["operation"],
    registry=REGISTRY,
)

# ============================================================================
# Scheduled Job Metrics
# ============================================================================

scheduled_job_runs_total = Counter(
    "scheduled_job_runs_total",
    "Periodic job executions by outcome",
    ["job", "outcome"],  # outcome: success, error, skipped
    registry=REGISTRY,
)

scheduled_job_duration_seconds = Histogram(
    "scheduled_job_duration_seconds",
    "Periodic job execution time in seconds",
    ["job"],
    buckets=JOB_DURATION_BUCKETS,
    registry=REGISTRY,
)

scheduled_job_running = Gauge(
    "scheduled_job_running",
    "1 while a periodic job is executing",
    ["job"],
    registry=REGISTRY,
)

# ============================================================================
# Realtime Metrics
# ============================================================================

websocket_connections_active = Gauge(
    "websocket_connections_active",
    "Currently open websocket connections",
    registry=REGISTRY,
)

# ============================================================================
# Application Info
# ============================================================================

application_info = Gauge(
    "application_info",
    "Static application information (always 1)",
    ["version", "service", "environment"],
    registry=REGISTRY,
)
