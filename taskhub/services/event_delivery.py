"""Publishes real-time events to live connections.

Delivery is best effort and at most once: an offline user misses the event,
and a connection that cannot keep up is dropped. Nothing here raises into the
mutation that produced the event.
"""

import logging
from typing import Any

from taskhub.core.errors import DeliveryError
from taskhub.domain.events import BROADCAST, Event, EventKind
from taskhub.domain.notification import Notification
from taskhub.domain.task import Task
from taskhub.services.connection_registry import Connection, ConnectionRegistry


logger = logging.getLogger(__name__)


class EventDeliveryService:
    """Resolves event targets through the registry and enqueues wire frames."""

    def __init__(self, registry: ConnectionRegistry) -> None:
        self._registry = registry

    def notify(self, user_id: str, event: Event) -> int:
        """Deliver to every live connection of one user.

        Returns:
            Number of connections the event was queued on (0 if the user is offline)
        """
        connection_ids = self._registry.connections_for(user_id)
        if not connection_ids:
            logger.debug("No live connections, event dropped", extra={"user_id": user_id, "kind": event.kind})
            return 0

        connections = [self._registry.get(connection_id) for connection_id in connection_ids]
        return self._deliver([c for c in connections if c is not None], event)

    def broadcast(self, event: Event) -> int:
        """Deliver to every live connection."""
        return self._deliver(self._registry.all_connections(), event)

    def publish(self, event: Event) -> int:
        """Deliver according to the event's target."""
        try:
            if event.is_broadcast:
                return self.broadcast(event)
            return self.notify(event.target, event)
        except Exception:
            logger.exception("Event publish failed", extra={"kind": event.kind, "target": event.target})
            return 0

    def _deliver(self, connections: list[Connection], event: Event) -> int:
        frame = event.to_wire()
        delivered = 0
        for connection in connections:
            try:
                connection.enqueue(frame)
            except DeliveryError as e:
                logger.warning(
                    "Event delivery failed",
                    extra={
                        "connection_id": e.connection_id,
                        "user_id": connection.user_id,
                        "kind": event.kind,
                        "reason": e.reason,
                    },
                )
                self._registry.drop(connection.connection_id)
                continue
            delivered += 1
        return delivered

    # Typed helpers used by the mutation paths

    def notification_created(self, notification: Notification) -> int:
        return self.publish(
            Event(kind=EventKind.NOTIFICATION, target=notification.user_id, payload=_dump(notification))
        )

    def task_updated(self, task: Task) -> int:
        return self.publish(Event(kind=EventKind.TASK_UPDATED, target=BROADCAST, payload=_dump(task)))

    def task_deleted(self, task_id: str) -> int:
        return self.publish(Event(kind=EventKind.TASK_DELETED, target=BROADCAST, entity_id=task_id))

    def task_assigned(self, task: Task) -> int:
        """Tell the new assignee; no-op for unassigned tasks."""
        if not task.assigned_to:
            return 0
        return self.publish(Event(kind=EventKind.TASK_ASSIGNED, target=task.assigned_to, payload=_dump(task)))


def _dump(model: Task | Notification) -> dict[str, Any]:
    return model.model_dump(mode="json")
