"""Prometheus metrics registry and tracking helpers."""

from calendar_notifier.infra.metrics.prometheus import REGISTRY

__all__ = ["REGISTRY"]
