"""taskhub - small-team task management with real-time sync."""
