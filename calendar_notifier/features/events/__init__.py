"""Calendar event read model."""
