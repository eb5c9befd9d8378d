"""Calendar notification scheduling, delivery and acknowledgment."""
