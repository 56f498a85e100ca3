"""Client-side sync: reconciliation stores and the WebSocket/REST sync client."""

from taskhub.client.reconciliation import NotificationStore, ReconciliationConflict, TaskStore
from taskhub.client.sync_client import SyncClient


__all__ = ["NotificationStore", "ReconciliationConflict", "SyncClient", "TaskStore"]
