"""Core infrastructure: configuration, persistence, scheduling and logging."""
