"""Real-time event model and its wire encoding."""

from enum import StrEnum
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator


# Target marker for events delivered to every live connection
BROADCAST = "*"


class EventKind(StrEnum):
    NOTIFICATION = "notification"
    TASK_UPDATED = "task-updated"
    TASK_DELETED = "task-deleted"
    TASK_ASSIGNED = "task-assigned"


# Event names as sent over the socket
WIRE_NAMES: dict[EventKind, str] = {
    EventKind.NOTIFICATION: "notification",
    EventKind.TASK_UPDATED: "taskUpdate",
    EventKind.TASK_DELETED: "taskDelete",
    EventKind.TASK_ASSIGNED: "taskAssigned",
}

_KINDS_BY_NAME: dict[str, EventKind] = {
    **{name: kind for kind, name in WIRE_NAMES.items()},
    **{kind.value: kind for kind in EventKind},
}


def kind_from_wire(name: str) -> EventKind | None:
    """Resolve an inbound event name, accepting both wire names and kind names."""
    return _KINDS_BY_NAME.get(name)


class Event(BaseModel):
    """Immutable real-time event.

    ``task-deleted`` carries only ``entity_id``; every other kind carries the
    full entity snapshot in ``payload``. Events are never persisted, retried
    or acknowledged.
    """

    model_config = ConfigDict(frozen=True)

    kind: EventKind
    target: str = Field(..., description="Recipient user ID, or BROADCAST")
    payload: dict[str, Any] | None = None
    entity_id: str | None = None

    @model_validator(mode="after")
    def validate_body(self) -> Self:
        if self.kind == EventKind.TASK_DELETED:
            if not self.entity_id:
                raise ValueError("task-deleted events carry an entity_id")
        elif self.payload is None:
            raise ValueError(f"{self.kind} events carry a payload")
        return self

    @property
    def is_broadcast(self) -> bool:
        return self.target == BROADCAST

    def to_wire(self) -> dict[str, Any]:
        """Encode as the ``{"event": ..., "data": ...}`` frame sent to clients."""
        data = self.entity_id if self.kind == EventKind.TASK_DELETED else self.payload
        return {"event": WIRE_NAMES[self.kind], "data": data}
