"""In-app notifications of the calling user."""

from uuid import UUID

from fastapi import APIRouter
from fastapi import Depends

from vdr_api.auth.tokens import Principal
from vdr_api.db.repository_notification import NotificationRepository
from vdr_api.dependencies import get_current_user
from vdr_api.dependencies import get_notification_repository
from vdr_api.errors import NotFoundError

ROUTER_NOTIFICATIONS = APIRouter(tags=["Notifications"], prefix="/notifications")


@ROUTER_NOTIFICATIONS.get("")
async def list_notifications(
    user: Principal = Depends(get_current_user),
    notifications: NotificationRepository = Depends(get_notification_repository),
):
    return await notifications.list(user.email)


@ROUTER_NOTIFICATIONS.put("/{notification_id}/read")
async def mark_read(
    notification_id: UUID,
    user: Principal = Depends(get_current_user),
    notifications: NotificationRepository = Depends(get_notification_repository),
):
    if not await notifications.mark_read(user.email, notification_id):
        raise NotFoundError("Notification not found")
    return {"message": "Marked read"}


@ROUTER_NOTIFICATIONS.delete("/{notification_id}")
async def delete_notification(
    notification_id: UUID,
    user: Principal = Depends(get_current_user),
    notifications: NotificationRepository = Depends(get_notification_repository),
):
    if not await notifications.delete(user.email, notification_id):
        raise NotFoundError("Notification not found")
    return {"message": "Notification deleted"}


@ROUTER_NOTIFICATIONS.delete("")
async def clear_notifications(
    user: Principal = Depends(get_current_user),
    notifications: NotificationRepository = Depends(get_notification_repository),
):
    cleared = await notifications.clear(user.email)
    return {"message": "All notifications cleared", "count": cleared}
