from taskhub.services import (
    audit_service,
    connection_registry,
    event_delivery,
    notification_service,
    recurring_task_service,
    task_service,
    user_service,
)


__all__ = [
    "audit_service",
    "connection_registry",
    "event_delivery",
    "notification_service",
    "recurring_task_service",
    "task_service",
    "user_service",
]
