"""Keeps a TaskStore and NotificationStore in sync with a taskhub server."""

import asyncio
import json
import logging
from typing import Any

import httpx
from pydantic import ValidationError
from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, InvalidHandshake

from taskhub.client.reconciliation import NotificationStore, TaskStore
from taskhub.core.config import Constants
from taskhub.core.errors import AuthError
from taskhub.domain.events import EventKind, kind_from_wire


logger = logging.getLogger(__name__)

CONNECTED_EVENT = "connected"


class SyncClient:
    """Fetches snapshots over REST and applies pushed events over one WebSocket.

    Every (re)connect re-hydrates both stores: they are invalidated first, so
    events that arrive while the snapshot is being fetched are buffered and
    replayed on top of it.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        tasks: TaskStore | None = None,
        notifications: NotificationStore | None = None,
        http_client: httpx.AsyncClient | None = None,
        ws_url: str | None = None,
        reconnect_base_delay: float = 1.0,
        reconnect_max_delay: float = 30.0,
    ) -> None:
        self.tasks = tasks or TaskStore()
        self.notifications = notifications or NotificationStore()
        self._token = token
        self._http = http_client or httpx.AsyncClient(base_url=base_url, timeout=10.0)
        self._ws_url = ws_url or _ws_url_for(base_url)
        self._base_delay = reconnect_base_delay
        self._max_delay = reconnect_max_delay

    @property
    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._token}"}

    async def refresh(self) -> None:
        """Re-fetch both snapshots and hydrate the stores.

        Raises:
            AuthError: If the server rejects the token
            httpx.HTTPError: On any other transport or HTTP failure
        """
        self.tasks.invalidate()
        self.notifications.invalidate()

        tasks_response, notifications_response = await asyncio.gather(
            self._http.get("/api/tasks", headers=self._headers),
            self._http.get("/api/notifications", headers=self._headers),
        )
        for response in (tasks_response, notifications_response):
            if response.status_code == httpx.codes.UNAUTHORIZED:
                raise AuthError("Token rejected by server")
            response.raise_for_status()

        self.tasks.hydrate(tasks_response.json())
        self.notifications.hydrate(notifications_response.json())
        logger.info(
            "Stores hydrated",
            extra={"tasks": len(self.tasks), "notifications": len(self.notifications)},
        )

    def handle_message(self, message: str | bytes | dict[str, Any]) -> EventKind | None:
        """Apply one inbound frame to the stores.

        Returns:
            The event kind applied, or None for frames that are not store events
        """
        if not isinstance(message, dict):
            message = _decode(message)
            if message is None:
                return None

        name = message.get("event")
        kind = kind_from_wire(name) if isinstance(name, str) else None
        if kind is None:
            if name != CONNECTED_EVENT:
                logger.debug("Ignoring unknown event", extra={"event": name})
            return None

        data = message.get("data")
        try:
            if kind == EventKind.NOTIFICATION:
                self.notifications.apply_notification(data)
            else:
                self.tasks.apply(kind, data)
        except (ValidationError, TypeError, AttributeError) as e:
            logger.warning("Dropping malformed event", extra={"kind": kind, "error": str(e)})
            return None
        return kind

    async def _session(self, websocket: ClientConnection) -> None:
        await websocket.send(json.dumps({"token": self._token}))
        async for frame in websocket:
            message = _decode(frame)
            if message is None:
                continue
            if message.get("event") == CONNECTED_EVENT:
                await self.refresh()
            else:
                self.handle_message(message)

    async def run(self) -> None:
        """Run one connection until the server closes it.

        Raises:
            AuthError: If the server refuses the token (close code 4401)
            ConnectionClosed: If the connection drops abnormally
        """
        async with connect(self._ws_url) as websocket:
            try:
                await self._session(websocket)
            except ConnectionClosed as e:
                if e.rcvd is not None and e.rcvd.code == Constants.WS_CLOSE_AUTH_FAILED:
                    raise AuthError("Token rejected by server") from e
                raise
            if websocket.close_code == Constants.WS_CLOSE_AUTH_FAILED:
                raise AuthError("Token rejected by server")

    async def run_forever(self, stop: asyncio.Event | None = None) -> None:
        """Reconnect with exponential backoff until ``stop`` is set or the token is refused."""
        stop = stop or asyncio.Event()
        delay = self._base_delay
        while not stop.is_set():
            try:
                await self.run()
                delay = self._base_delay
            except AuthError:
                logger.error("Stopping sync: token rejected")
                raise
            except (ConnectionClosed, InvalidHandshake, OSError, httpx.HTTPError) as e:
                logger.warning("Sync connection lost, reconnecting", extra={"error": str(e), "delay": delay})

            try:
                await asyncio.wait_for(stop.wait(), timeout=delay)
            except TimeoutError:
                delay = min(delay * 2, self._max_delay)

    async def aclose(self) -> None:
        await self._http.aclose()


def _ws_url_for(base_url: str) -> str:
    base = base_url.rstrip("/")
    return base.replace("https://", "wss://", 1).replace("http://", "ws://", 1) + "/ws"


def _decode(frame: str | bytes) -> dict[str, Any] | None:
    try:
        message = json.loads(frame)
    except ValueError:
        logger.warning("Ignoring non-JSON frame")
        return None
    if not isinstance(message, dict):
        logger.warning("Ignoring malformed frame")
        return None
    return message
