"""Client-side caches that mirror server state from snapshots plus pushed events.

Both stores are refreshed wholesale by ``hydrate`` and patched incrementally
by events. Events that arrive while a store is not hydrated (before the first
snapshot, or while a refresh is in flight) are buffered and replayed in
arrival order once the snapshot lands.

Every change builds a new mapping and swaps it in, so a reader holding the
previous view never sees a half-applied update.
"""

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime
from types import MappingProxyType
from typing import Any

from taskhub.domain.events import EventKind
from taskhub.domain.notification import Notification
from taskhub.domain.task import Task


logger = logging.getLogger(__name__)

# Deleted task ids remembered per store; the oldest are forgotten first
MAX_TOMBSTONES = 1024


class ReconciliationConflict(Exception):
    """An event arrived before the store had a snapshot to apply it to."""

    def __init__(self, kind: EventKind, entity_id: str | None) -> None:
        super().__init__(f"{kind} for {entity_id} arrived before hydration")
        self.kind = kind
        self.entity_id = entity_id


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _is_stale(incoming: Task, cached: Task) -> bool:
    """True if ``incoming`` is an older version than what is cached."""
    incoming_at = _parse_timestamp(incoming.updated)
    cached_at = _parse_timestamp(cached.updated)
    if incoming_at is None or cached_at is None:
        return False
    return incoming_at < cached_at


class TaskStore:
    """Keyed cache of tasks.

    A deleted id is remembered, so an update for it that arrives late cannot
    bring it back. Task ids are never reused. Only the most recent
    ``MAX_TOMBSTONES`` deletions are remembered.
    """

    def __init__(self) -> None:
        self._tasks: Mapping[str, Task] = MappingProxyType({})
        self._hydrated = False
        self._pending: list[tuple[EventKind, Any]] = []
        # Insertion-ordered set of deleted ids
        self._deleted: dict[str, None] = {}

    @property
    def tasks(self) -> Mapping[str, Task]:
        """Read-only view of the current cache."""
        return self._tasks

    @property
    def is_hydrated(self) -> bool:
        return self._hydrated

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def get(self, task_id: str) -> Task | None:
        return self._tasks.get(task_id)

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def invalidate(self) -> None:
        """Start buffering events until the next ``hydrate`` (call before refetching)."""
        self._hydrated = False

    def hydrate(self, snapshot: Iterable[Task | dict[str, Any]]) -> None:
        """Replace the cache with an authoritative snapshot, then replay buffered events."""
        tasks = {}
        for item in snapshot:
            task = item if isinstance(item, Task) else Task.model_validate(item)
            if task.id not in self._deleted:
                tasks[task.id] = task
        self._tasks = MappingProxyType(tasks)
        self._hydrated = True

        pending, self._pending = self._pending, []
        for kind, data in pending:
            self.apply(kind, data)
        logger.debug("Task store hydrated", extra={"tasks": len(tasks), "replayed": len(pending)})

    def apply(self, kind: EventKind, data: Any) -> None:  # noqa: ANN401
        """Fold one task event into the cache."""
        try:
            if kind == EventKind.TASK_DELETED:
                self._apply_deleted(str(data))
            elif kind in (EventKind.TASK_UPDATED, EventKind.TASK_ASSIGNED):
                task = data if isinstance(data, Task) else Task.model_validate(data)
                self._apply_updated(kind, task)
            else:
                msg = f"Not a task event: {kind}"
                raise ValueError(msg)
        except ReconciliationConflict as e:
            logger.debug("Buffering event until hydration", extra={"kind": e.kind, "entity_id": e.entity_id})
            self._pending.append((kind, data))

    def apply_task_updated(self, task: Task | dict[str, Any]) -> None:
        self.apply(EventKind.TASK_UPDATED, task)

    def apply_task_deleted(self, task_id: str) -> None:
        self.apply(EventKind.TASK_DELETED, task_id)

    def _apply_updated(self, kind: EventKind, task: Task) -> None:
        if not self._hydrated:
            raise ReconciliationConflict(kind, task.id)
        if task.id in self._deleted:
            logger.debug("Ignoring update for deleted task", extra={"task_id": task.id})
            return
        cached = self._tasks.get(task.id)
        if cached is not None and _is_stale(task, cached):
            logger.debug("Ignoring stale task update", extra={"task_id": task.id})
            return
        self._tasks = MappingProxyType({**self._tasks, task.id: task})

    def _apply_deleted(self, task_id: str) -> None:
        if not self._hydrated:
            raise ReconciliationConflict(EventKind.TASK_DELETED, task_id)
        self._deleted.pop(task_id, None)
        self._deleted[task_id] = None
        while len(self._deleted) > MAX_TOMBSTONES:
            del self._deleted[next(iter(self._deleted))]
        if task_id in self._tasks:
            self._tasks = MappingProxyType({k: v for k, v in self._tasks.items() if k != task_id})


class NotificationStore:
    """Newest-first list of the user's notifications."""

    def __init__(self) -> None:
        self._items: tuple[Notification, ...] = ()
        self._hydrated = False
        self._pending: list[Any] = []

    @property
    def notifications(self) -> tuple[Notification, ...]:
        return self._items

    @property
    def unread_count(self) -> int:
        # Derived from the entries every time so it can never drift
        return sum(1 for n in self._items if not n.read)

    @property
    def is_hydrated(self) -> bool:
        return self._hydrated

    def __len__(self) -> int:
        return len(self._items)

    def invalidate(self) -> None:
        self._hydrated = False

    def hydrate(self, snapshot: Iterable[Notification | dict[str, Any]]) -> None:
        items: list[Notification] = []
        seen: set[str] = set()
        for item in snapshot:
            notification = item if isinstance(item, Notification) else Notification.model_validate(item)
            if notification.id not in seen:
                seen.add(notification.id)
                items.append(notification)
        self._items = tuple(items)
        self._hydrated = True

        pending, self._pending = self._pending, []
        for data in pending:
            self.apply_notification(data)

    def apply_notification(self, data: Notification | dict[str, Any]) -> None:
        """Prepend a pushed notification, replacing any entry with the same id."""
        try:
            self._apply(data)
        except ReconciliationConflict as e:
            logger.debug("Buffering notification until hydration", extra={"notification_id": e.entity_id})
            self._pending.append(data)

    def _apply(self, data: Notification | dict[str, Any]) -> None:
        if not self._hydrated:
            raise ReconciliationConflict(EventKind.NOTIFICATION, _id_of(data))
        notification = data if isinstance(data, Notification) else Notification.model_validate(data)
        rest = tuple(n for n in self._items if n.id != notification.id)
        self._items = (notification, *rest)

    def mark_read(self, notification_id: str) -> None:
        """Local echo of a successful mark-read call."""
        self._items = tuple(n.model_copy(update={"read": True}) if n.id == notification_id else n for n in self._items)

    def clear(self) -> None:
        self._items = ()


def _id_of(data: Notification | dict[str, Any]) -> str | None:
    return data.id if isinstance(data, Notification) else data.get("id")
