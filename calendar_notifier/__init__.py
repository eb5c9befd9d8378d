"""Calendar notification scheduling and acknowledgment service."""

__version__ = "0.1.0"
