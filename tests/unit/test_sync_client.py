"""Tests for the sync client's REST hydration and frame handling."""

import json

import httpx
import pytest

from taskhub.client.sync_client import SyncClient, _ws_url_for
from taskhub.core.errors import AuthError
from taskhub.domain.events import EventKind


TASKS = [
    {
        "id": "1",
        "created": "2024-03-05T09:00:00.000Z",
        "updated": "2024-03-05T09:00:00.000Z",
        "title": "Write report",
        "due_date": "2024-03-06T17:00:00Z",
        "created_by": "1",
    }
]
NOTIFICATIONS = [
    {
        "id": "10",
        "user_id": "1",
        "title": "New Task Assigned",
        "message": "You have been assigned a new task: Write report",
        "read": False,
        "timestamp": "2024-03-05T09:00:00.000Z",
    }
]


def _server(status_code: int = 200):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if status_code != 200:
            return httpx.Response(status_code, json={"code": "ERR"})
        if request.url.path == "/api/tasks":
            return httpx.Response(200, json=TASKS)
        if request.url.path == "/api/notifications":
            return httpx.Response(200, json=NOTIFICATIONS)
        return httpx.Response(404)

    return handler, seen


def _client(status_code: int = 200) -> tuple[SyncClient, list[httpx.Request]]:
    handler, seen = _server(status_code)
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://taskhub.test")
    return SyncClient("http://taskhub.test", "tok", http_client=http), seen


@pytest.mark.unit
async def test_refresh_hydrates_both_stores():
    """Test a refresh fetches both snapshots with the bearer token."""
    client, seen = _client()

    await client.refresh()

    assert client.tasks.is_hydrated
    assert set(client.tasks.tasks) == {"1"}
    assert client.notifications.unread_count == 1
    assert {r.headers["Authorization"] for r in seen} == {"Bearer tok"}
    await client.aclose()


@pytest.mark.unit
async def test_refresh_with_rejected_token():
    """Test a 401 surfaces as an authentication error."""
    client, _ = _client(status_code=401)

    with pytest.raises(AuthError):
        await client.refresh()

    assert not client.tasks.is_hydrated
    await client.aclose()


@pytest.mark.unit
async def test_refresh_server_error():
    """Test other HTTP failures propagate and leave the stores buffering."""
    client, _ = _client(status_code=500)

    with pytest.raises(httpx.HTTPStatusError):
        await client.refresh()

    client.handle_message({"event": "taskDelete", "data": "1"})
    assert client.tasks.pending_count == 1
    await client.aclose()


@pytest.mark.unit
async def test_handle_message_applies_events():
    """Test pushed frames update the stores."""
    client, _ = _client()
    await client.refresh()

    updated = {**TASKS[0], "updated": "2024-03-05T10:00:00.000Z", "title": "Edited"}
    assert client.handle_message(json.dumps({"event": "taskUpdate", "data": updated})) == EventKind.TASK_UPDATED
    assert client.tasks.get("1").title == "Edited"

    notification = {**NOTIFICATIONS[0], "id": "11"}
    assert client.handle_message({"event": "notification", "data": notification}) == EventKind.NOTIFICATION
    assert client.notifications.unread_count == 2

    assert client.handle_message({"event": "task-deleted", "data": "1"}) == EventKind.TASK_DELETED
    assert "1" not in client.tasks
    await client.aclose()


@pytest.mark.unit
@pytest.mark.parametrize(
    "frame",
    [
        "not json",
        json.dumps([1, 2]),
        json.dumps({"event": "connected", "data": {"connection_id": "abc"}}),
        json.dumps({"event": "somethingElse", "data": {}}),
        json.dumps({"event": "taskUpdate", "data": {"id": "1"}}),
        json.dumps({"event": "notification", "data": "oops"}),
    ],
)
async def test_handle_message_ignores_unusable_frames(frame):
    """Test junk, control and malformed frames leave the stores untouched."""
    client, _ = _client()
    await client.refresh()

    assert client.handle_message(frame) is None
    assert set(client.tasks.tasks) == {"1"}
    assert len(client.notifications) == 1
    await client.aclose()


@pytest.mark.unit
@pytest.mark.parametrize(
    ("base", "expected"),
    [
        ("http://localhost:8000", "ws://localhost:8000/ws"),
        ("https://tasks.example.com/", "wss://tasks.example.com/ws"),
    ],
)
def test_ws_url_for(base, expected):
    """Test the WebSocket URL is derived from the REST base URL."""
    assert _ws_url_for(base) == expected
