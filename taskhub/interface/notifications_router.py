"""Notification REST routes (always scoped to the signed-in user)."""

from fastapi import APIRouter, Body, Depends
from pydantic import BaseModel

from taskhub.domain.notification import Notification
from taskhub.domain.user import User
from taskhub.interface.dependencies import get_current_user, get_notification_service
from taskhub.services.notification_service import NotificationService


router = APIRouter(prefix="/api/notifications", tags=["notifications"])


class NotificationTestRequest(BaseModel):
    title: str | None = None
    message: str | None = None


@router.get("")
async def list_notifications(
    user: User = Depends(get_current_user),
    notifications: NotificationService = Depends(get_notification_service),
) -> list[Notification]:
    return await notifications.list_for_user(user_id=user.id)


@router.put("/{notification_id}/read")
async def mark_notification_read(
    notification_id: str,
    user: User = Depends(get_current_user),
    notifications: NotificationService = Depends(get_notification_service),
) -> Notification:
    return await notifications.mark_read(notification_id=notification_id, user_id=user.id)


@router.delete("/clear")
async def clear_notifications(
    user: User = Depends(get_current_user),
    notifications: NotificationService = Depends(get_notification_service),
) -> dict[str, str | int]:
    count = await notifications.clear_all(user_id=user.id)
    return {"message": "All notifications cleared", "deleted": count}


@router.post("/test")
async def create_test_notification(
    data: NotificationTestRequest | None = Body(default=None),
    user: User = Depends(get_current_user),
    notifications: NotificationService = Depends(get_notification_service),
) -> Notification:
    data = data or NotificationTestRequest()
    return await notifications.create_test_notification(user_id=user.id, title=data.title, message=data.message)
