"""Notification center endpoints."""

from typing import Any

from fastapi import APIRouter, Query

from summaryscribe.api.dependencies import CurrentUserDep, NotificationRepoDep
from summaryscribe.api.schemas import NotificationResponse
from summaryscribe.errors import NotFoundOrForbidden

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("")
async def list_notifications(
    notification_repo: NotificationRepoDep,
    user: CurrentUserDep,
    unread_only: bool = Query(False),
    limit: int = Query(20, ge=1, le=100),
) -> dict[str, Any]:
    """List the caller's notifications, newest first."""
    rows = await notification_repo.list_for_user(user.id, unread_only=unread_only, limit=limit)
    unread = await notification_repo.count_unread(user.id)
    return {
        "success": True,
        "notifications": [
            NotificationResponse.model_validate(r).model_dump(mode="json") for r in rows
        ],
        "unread_count": unread,
    }


@router.post("/{notification_id}/read")
async def mark_notification_read(
    notification_id: str,
    notification_repo: NotificationRepoDep,
    user: CurrentUserDep,
) -> dict[str, Any]:
    """Mark one notification read."""
    row = await notification_repo.mark_read(notification_id, user.id)
    if row is None:
        raise NotFoundOrForbidden("Notification not found")
    return {
        "success": True,
        "notification": NotificationResponse.model_validate(row).model_dump(mode="json"),
    }
