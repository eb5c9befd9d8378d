"""Deferred log messages.

Repository and dispatcher debug lines format whole receipts and query
summaries. Passing a callable instead of a string keeps that work off the
hot path unless DEBUG is enabled for the logger.
"""

from __future__ import annotations

import logging
from typing import Any


class LazyLoggerAdapter(logging.LoggerAdapter):
    """Adapter whose message (and positional args) may be zero-argument callables.

    Example:
        lazy = get_lazy_logger(__name__)
        lazy.debug(lambda: f"Receipt: {json.dumps(notification.delivery_receipt)}")
    """

    def log(self, level: int, msg: Any, *args: Any, **kwargs: Any) -> None:
        if not self.isEnabledFor(level):
            return
        if callable(msg):
            msg = msg()
        if args:
            args = tuple(arg() if callable(arg) else arg for arg in args)
        super().log(level, msg, *args, **kwargs)

    def process(self, msg: Any, kwargs: dict[str, Any]) -> tuple[Any, dict[str, Any]]:
        # Bound context first, call-site extra wins on collisions
        kwargs["extra"] = {**(self.extra or {}), **kwargs.get("extra", {})}
        return msg, kwargs

    def debug(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        self.log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        self.log(logging.INFO, msg, *args, **kwargs)


def get_lazy_logger(name: str, **context: Any) -> LazyLoggerAdapter:
    """Return a lazy adapter for ``name`` with ``context`` bound as extra fields."""
    return LazyLoggerAdapter(logging.getLogger(name), context)
