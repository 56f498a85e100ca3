"""Audit trail of task mutations."""

import logging
from typing import Any

from taskhub.core.config import Constants
from taskhub.core.db_client import DatabaseClient, sanitize_param, utc_now_iso
from taskhub.domain.audit import AuditAction, AuditEntityType, AuditLog


logger = logging.getLogger(__name__)


class AuditService:
    def __init__(self, db: DatabaseClient) -> None:
        self._db = db

    async def record(
        self,
        *,
        user_id: str | None,
        action: AuditAction,
        entity_type: AuditEntityType,
        entity_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> AuditLog | None:
        """Write an audit entry.

        A failed write is logged and returns None; auditing never fails the
        action being audited.
        """
        try:
            record = await self._db.create_record(
                collection="audit_logs",
                data={
                    "user_id": user_id,
                    "action": action,
                    "entity_type": entity_type,
                    "entity_id": entity_id,
                    "details": details or {},
                    "timestamp": utc_now_iso(),
                },
            )
        except RuntimeError:
            logger.exception(
                "Failed to write audit log",
                extra={"action": action, "entity_type": entity_type, "entity_id": entity_id},
            )
            return None
        return AuditLog(**record)

    async def list_entries(
        self,
        *,
        user_id: str | None = None,
        action: AuditAction | None = None,
        entity_type: AuditEntityType | None = None,
        entity_id: str | None = None,
        page: int = 1,
        limit: int = Constants.AUDIT_LOG_LIST_LIMIT,
    ) -> list[AuditLog]:
        """List entries, newest first."""
        filters = []
        if user_id:
            filters.append(f'user_id = "{sanitize_param(user_id)}"')
        if action:
            filters.append(f'action = "{action}"')
        if entity_type:
            filters.append(f'entity_type = "{entity_type}"')
        if entity_id:
            filters.append(f'entity_id = "{sanitize_param(entity_id)}"')

        records = await self._db.list_records(
            collection="audit_logs",
            page=page,
            per_page=limit,
            filter_query=" && ".join(filters),
            sort="-timestamp",
        )
        return [AuditLog(**record) for record in records]

    async def get_entry(self, *, entry_id: str) -> AuditLog:
        record = await self._db.get_record(collection="audit_logs", record_id=entry_id)
        return AuditLog(**record)
