"""Core building blocks: settings, database base classes, errors, dependencies."""
