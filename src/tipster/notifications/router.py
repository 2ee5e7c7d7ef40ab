"""Notification API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tipster.auth.dependencies import get_current_user
from tipster.database import get_session
from tipster.db.models import Notification, User
from tipster.dependencies import PageParams
from tipster.notifications.schemas import NotificationListResponse, NotificationResponse
from tipster.notifications.service import list_notifications, mark_all_as_read, mark_as_read

router = APIRouter(prefix="/api/v1/notifications", tags=["Notifications"])


def _notification_response(n: Notification) -> NotificationResponse:
    return NotificationResponse(
        id=n.id,
        title=n.title,
        message=n.message,
        type=n.type,
        category=n.category,
        is_read=n.is_read,
        action_url=n.action_url,
        metadata=n.notification_metadata or {},
        created_at=n.created_at,
        read_at=n.read_at,
    )


@router.get("", response_model=NotificationListResponse)
async def get_notifications(
    type: str | None = Query(None),  # noqa: A002
    category: str | None = Query(None),
    unread_only: bool = Query(False),
    paging: PageParams = Depends(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> NotificationListResponse:
    """List the user's notifications, newest first."""
    items, total, unread = await list_notifications(
        db,
        user.id,
        page=paging.page,
        limit=paging.limit,
        type_=type,
        category=category,
        unread_only=unread_only,
    )
    return NotificationListResponse(
        notifications=[_notification_response(n) for n in items],
        pagination=paging.meta(total),
        unread_count=unread,
    )


@router.post("/{notification_id}/read")
async def read_notification(
    notification_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    if not await mark_as_read(db, user.id, notification_id):
        raise HTTPException(status_code=404, detail="Notification not found")
    await db.commit()
    return {"detail": "Notification marked as read"}


@router.post("/read-all")
async def read_all_notifications(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    count = await mark_all_as_read(db, user.id)
    await db.commit()
    return {"detail": "All notifications marked as read", "updated": count}
