"""Registry of live, authenticated real-time connections.

Each connection owns an outbox queue drained by a single writer task, so
events reach one connection in the order they were enqueued and a slow
connection never holds up writes to another.
"""

import asyncio
import logging
import threading
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Protocol

from taskhub.core.config import Constants
from taskhub.core.errors import AuthError, DeliveryError
from taskhub.core.logging import log_with_user_context
from taskhub.core.security import TokenVerifier


logger = logging.getLogger(__name__)


class Transport(Protocol):
    """The socket a connection writes to (a FastAPI ``WebSocket`` satisfies this)."""

    async def send_json(self, data: Any) -> None: ...  # noqa: ANN401

    async def close(self, code: int = 1000) -> None: ...


class ConnectionState(StrEnum):
    CONNECTING = "connecting"
    AUTHENTICATED = "authenticated"
    CLOSED = "closed"


FailureHandler = Callable[["Connection", DeliveryError], Awaitable[None]]


@dataclass
class Connection:
    """One authenticated socket. Never reused once closed."""

    connection_id: str
    transport: Transport
    user_id: str | None = None
    authenticated_at: datetime | None = None
    state: ConnectionState = ConnectionState.CONNECTING
    outbox: asyncio.Queue = field(
        default_factory=lambda: asyncio.Queue(maxsize=Constants.CONNECTION_OUTBOX_MAXSIZE)
    )
    writer: asyncio.Task | None = None

    @property
    def is_live(self) -> bool:
        return self.state == ConnectionState.AUTHENTICATED

    def enqueue(self, message: dict[str, Any]) -> None:
        """Queue a frame for the writer without waiting.

        Raises:
            DeliveryError: If the connection is closed or its outbox is full
        """
        if not self.is_live:
            raise DeliveryError(self.connection_id, "connection is closed")
        try:
            self.outbox.put_nowait(message)
        except asyncio.QueueFull as e:
            raise DeliveryError(self.connection_id, "outbox full") from e

    def start_writer(self, on_failure: FailureHandler) -> None:
        self.writer = asyncio.create_task(
            self._write_loop(on_failure), name=f"connection-writer-{self.connection_id}"
        )

    async def _write_loop(self, on_failure: FailureHandler) -> None:
        while True:
            message = await self.outbox.get()
            try:
                await self.transport.send_json(message)
            except Exception as e:
                await on_failure(self, DeliveryError(self.connection_id, str(e) or type(e).__name__))
                return


def _current_task() -> asyncio.Task | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


async def close_transport(transport: Transport, code: int) -> None:
    """Close a socket that may already be gone."""
    try:
        await transport.close(code=code)
    except Exception as e:
        logger.debug("Transport already closed", extra={"code": code, "error": str(e)})


class ConnectionRegistry:
    """Maps connection ids to connections and users to their connection ids.

    The maps are guarded by a lock held only for dictionary updates, so
    lookups never wait on I/O.
    """

    def __init__(self, verifier: TokenVerifier) -> None:
        self._verifier = verifier
        self._lock = threading.Lock()
        self._connections: dict[str, Connection] = {}
        self._by_user: dict[str, set[str]] = {}
        self._closing: set[asyncio.Task] = set()

    async def register(self, credential: str | None, transport: Transport) -> str:
        """Authenticate a socket and admit it.

        Returns:
            The new connection id

        Raises:
            AuthError: If the credential is rejected; the transport is closed
                and nothing is registered
        """
        connection = Connection(connection_id=uuid.uuid4().hex, transport=transport)
        try:
            user_id = await self._verifier.verify(credential)
        except AuthError as e:
            connection.state = ConnectionState.CLOSED
            logger.warning("Connection rejected", extra={"reason": e.reason})
            await close_transport(transport, Constants.WS_CLOSE_AUTH_FAILED)
            raise

        connection.user_id = user_id
        connection.authenticated_at = datetime.now(UTC)
        connection.state = ConnectionState.AUTHENTICATED
        with self._lock:
            self._connections[connection.connection_id] = connection
            self._by_user.setdefault(user_id, set()).add(connection.connection_id)
        connection.start_writer(self._handle_write_failure)

        log_with_user_context(
            logger,
            "info",
            "Connection registered",
            user_id=user_id,
            connection_id=connection.connection_id,
        )
        return connection.connection_id

    def unregister(self, connection_id: str) -> None:
        """Remove a connection and stop its writer. Unknown ids are ignored."""
        with self._lock:
            connection = self._connections.pop(connection_id, None)
            if connection is None:
                return
            user_connections = self._by_user.get(connection.user_id or "")
            if user_connections is not None:
                user_connections.discard(connection_id)
                if not user_connections:
                    del self._by_user[connection.user_id or ""]
            connection.state = ConnectionState.CLOSED

        if connection.writer is not None and connection.writer is not _current_task():
            connection.writer.cancel()
        logger.info(
            "Connection unregistered",
            extra={"connection_id": connection_id, "user_id": connection.user_id},
        )

    def drop(self, connection_id: str, code: int = Constants.WS_CLOSE_DELIVERY_FAILED) -> None:
        """Unregister a connection and close its socket in the background."""
        connection = self.get(connection_id)
        if connection is None:
            return
        self.unregister(connection_id)
        task = asyncio.get_running_loop().create_task(close_transport(connection.transport, code))
        self._closing.add(task)
        task.add_done_callback(self._closing.discard)

    def connections_for(self, user_id: str) -> set[str]:
        """Ids of the user's live connections (a copy; empty when offline)."""
        with self._lock:
            return set(self._by_user.get(user_id, ()))

    def get(self, connection_id: str) -> Connection | None:
        with self._lock:
            return self._connections.get(connection_id)

    def all_connections(self) -> list[Connection]:
        with self._lock:
            return list(self._connections.values())

    @property
    def connection_count(self) -> int:
        with self._lock:
            return len(self._connections)

    @property
    def online_user_count(self) -> int:
        with self._lock:
            return len(self._by_user)

    async def close_all(self, code: int = 1001) -> None:
        """Disconnect everyone, e.g. on shutdown."""
        for connection in self.all_connections():
            self.unregister(connection.connection_id)
            await close_transport(connection.transport, code)
        if self._closing:
            await asyncio.gather(*self._closing, return_exceptions=True)

    async def _handle_write_failure(self, connection: Connection, error: DeliveryError) -> None:
        logger.warning(
            "Dropping connection after failed write",
            extra={"connection_id": connection.connection_id, "user_id": connection.user_id, "reason": error.reason},
        )
        self.unregister(connection.connection_id)
        await close_transport(connection.transport, Constants.WS_CLOSE_DELIVERY_FAILED)
