"""Tests for the client-side reconciliation stores."""

from types import MappingProxyType

import pytest

from taskhub.client.reconciliation import NotificationStore, TaskStore
from taskhub.domain.events import EventKind


def _task(task_id: str, updated: str = "2024-03-05T10:00:00.000Z", **overrides) -> dict:
    return {
        "id": task_id,
        "created": "2024-03-05T09:00:00.000Z",
        "updated": updated,
        "title": f"Task {task_id}",
        "due_date": "2024-03-06T17:00:00+00:00",
        "created_by": "1",
        **overrides,
    }


def _notification(notification_id: str, read: bool = False, **overrides) -> dict:
    return {
        "id": notification_id,
        "user_id": "1",
        "title": "Heads up",
        "message": f"Notification {notification_id}",
        "read": read,
        "timestamp": "2024-03-05T10:00:00.000Z",
        **overrides,
    }


@pytest.fixture
def store() -> TaskStore:
    store = TaskStore()
    store.hydrate([_task("1"), _task("2")])
    return store


@pytest.mark.unit
def test_hydrate_replaces_cache(store):
    """Test a snapshot becomes the cache."""
    assert store.is_hydrated
    assert set(store.tasks) == {"1", "2"}

    store.hydrate([_task("3")])

    assert set(store.tasks) == {"3"}


@pytest.mark.unit
def test_update_upserts_task(store):
    """Test an update replaces a cached task and adds an unknown one."""
    store.apply_task_updated(_task("1", updated="2024-03-05T11:00:00.000Z", title="Renamed"))
    store.apply(EventKind.TASK_ASSIGNED, _task("4", assigned_to="2"))

    assert store.get("1").title == "Renamed"
    assert store.get("4").assigned_to == "2"
    assert len(store) == 3


@pytest.mark.unit
def test_update_never_duplicates(store):
    """Test repeated updates for one id keep a single entry."""
    for minute in range(3):
        store.apply_task_updated(_task("1", updated=f"2024-03-05T11:0{minute}:00.000Z"))

    assert len(store) == 2
    assert list(store.tasks).count("1") == 1


@pytest.mark.unit
def test_delete_removes_task(store):
    """Test a delete event removes the task."""
    store.apply_task_deleted("1")

    assert "1" not in store
    assert set(store.tasks) == {"2"}


@pytest.mark.unit
def test_delete_of_unknown_task_is_noop(store):
    """Test deleting an id the cache never had leaves it unchanged."""
    store.apply_task_deleted("99")

    assert set(store.tasks) == {"1", "2"}


@pytest.mark.unit
def test_stale_update_is_ignored(store):
    """Test an update older than the cached version does not roll it back."""
    store.apply_task_updated(_task("1", updated="2024-03-05T12:00:00.000Z", title="Newest"))
    store.apply_task_updated(_task("1", updated="2024-03-05T11:00:00.000Z", title="Older"))

    assert store.get("1").title == "Newest"


@pytest.mark.unit
def test_late_update_after_delete_does_not_resurrect(store):
    """Test an update that arrives after the delete leaves the task deleted."""
    store.apply_task_deleted("1")
    store.apply_task_updated(_task("1", updated="2024-03-05T12:00:00.000Z"))

    assert "1" not in store


@pytest.mark.unit
def test_deleted_task_filtered_from_later_snapshot(store):
    """Test a snapshot fetched before the delete cannot bring the task back."""
    store.apply_task_deleted("1")
    store.invalidate()

    store.hydrate([_task("1"), _task("2")])

    assert set(store.tasks) == {"2"}


@pytest.mark.unit
def test_events_before_hydration_are_buffered_and_replayed():
    """Test events that arrive before the snapshot are applied on top of it."""
    store = TaskStore()

    store.apply_task_updated(_task("1", updated="2024-03-05T12:00:00.000Z", title="From event"))
    store.apply_task_deleted("2")

    assert not store.is_hydrated
    assert store.pending_count == 2
    assert len(store) == 0

    store.hydrate([_task("1"), _task("2"), _task("3")])

    assert store.pending_count == 0
    assert store.get("1").title == "From event"
    assert set(store.tasks) == {"1", "3"}


@pytest.mark.unit
def test_events_during_refresh_are_buffered(store):
    """Test events arriving while a refresh is in flight wait for the new snapshot."""
    store.invalidate()
    store.apply_task_updated(_task("5"))

    assert "5" not in store
    assert store.pending_count == 1

    store.hydrate([_task("1")])

    assert set(store.tasks) == {"1", "5"}


@pytest.mark.unit
def test_previous_view_is_untouched_by_updates(store):
    """Test a reader holding the old view never sees a partial change."""
    before = store.tasks

    store.apply_task_updated(_task("3"))
    store.apply_task_deleted("1")

    assert set(before) == {"1", "2"}
    assert set(store.tasks) == {"2", "3"}


@pytest.mark.unit
def test_view_is_read_only(store):
    """Test the exposed mapping cannot be mutated."""
    assert isinstance(store.tasks, MappingProxyType)
    with pytest.raises(TypeError):
        store.tasks["9"] = store.get("1")


@pytest.mark.unit
def test_non_task_event_is_rejected(store):
    """Test notification events are not accepted by the task store."""
    with pytest.raises(ValueError, match="Not a task event"):
        store.apply(EventKind.NOTIFICATION, _notification("1"))


@pytest.mark.unit
def test_notification_store_prepends_and_dedupes():
    """Test pushed notifications go first and replace same-id entries."""
    store = NotificationStore()
    store.hydrate([_notification("2"), _notification("1")])

    store.apply_notification(_notification("3"))
    store.apply_notification(_notification("3", message="Edited"))

    assert [n.id for n in store.notifications] == ["3", "2", "1"]
    assert store.notifications[0].message == "Edited"


@pytest.mark.unit
def test_notification_hydrate_dedupes_snapshot():
    """Test a snapshot with repeated ids keeps the first occurrence."""
    store = NotificationStore()

    store.hydrate([_notification("1"), _notification("1", message="Duplicate")])

    assert len(store) == 1
    assert store.notifications[0].message == "Notification 1"


@pytest.mark.unit
def test_unread_count_follows_entries():
    """Test the unread count always equals the unread entries."""
    store = NotificationStore()
    store.hydrate([_notification("1"), _notification("2", read=True)])
    assert store.unread_count == 1

    store.apply_notification(_notification("3"))
    assert store.unread_count == 2

    store.mark_read("1")
    assert store.unread_count == 1

    store.clear()
    assert store.unread_count == 0
    assert store.notifications == ()


@pytest.mark.unit
def test_notification_before_hydration_is_buffered():
    """Test a notification pushed before the snapshot shows up after it."""
    store = NotificationStore()

    store.apply_notification(_notification("9"))
    assert len(store) == 0

    store.hydrate([_notification("1")])

    assert [n.id for n in store.notifications] == ["9", "1"]


@pytest.mark.unit
def test_tombstones_are_bounded(store, monkeypatch):
    """Test only the most recent deletions are remembered in a long-running store."""
    monkeypatch.setattr("taskhub.client.reconciliation.MAX_TOMBSTONES", 2)

    for task_id in ("1", "2", "3"):
        store.apply_task_deleted(task_id)
    store.apply_task_updated(_task("1"))
    store.apply_task_updated(_task("3"))

    assert "1" in store
    assert "3" not in store
