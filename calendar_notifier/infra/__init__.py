"""Infrastructure adapters (database, logging, metrics, transports)."""
