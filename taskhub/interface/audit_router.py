"""Audit log REST routes (admins and managers)."""

from fastapi import APIRouter, Depends, Query

from taskhub.core.config import Constants
from taskhub.domain.audit import AuditAction, AuditEntityType, AuditLog
from taskhub.domain.user import User
from taskhub.interface.dependencies import get_audit_service, require_manager
from taskhub.services.audit_service import AuditService


router = APIRouter(prefix="/api/audit-logs", tags=["audit"])


@router.get("")
async def list_audit_logs(
    user_id: str | None = None,
    action: AuditAction | None = None,
    entity_type: AuditEntityType | None = None,
    entity_id: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=Constants.AUDIT_LOG_LIST_LIMIT, ge=1, le=Constants.AUDIT_LOG_LIST_LIMIT),
    _user: User = Depends(require_manager),
    audit: AuditService = Depends(get_audit_service),
) -> list[AuditLog]:
    return await audit.list_entries(
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        page=page,
        limit=limit,
    )


@router.get("/{entry_id}")
async def get_audit_log(
    entry_id: str,
    _user: User = Depends(require_manager),
    audit: AuditService = Depends(get_audit_service),
) -> AuditLog:
    return await audit.get_entry(entry_id=entry_id)
