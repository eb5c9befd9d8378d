"""Command line interface (``calendar-notifier``)."""
