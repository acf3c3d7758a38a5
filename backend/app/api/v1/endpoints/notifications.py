"""
Notification API Endpoints.

In-app inbox for the match notifications written by the default notifier.
"""

from datetime import datetime, timezone
from typing import List

from fastapi import APIRouter, Depends, Path, Query

from backend.app.core.dependencies import get_current_user, get_store
from backend.app.core.exceptions import ResourceNotFoundError
from backend.app.db.store import SqlAlchemyStore
from backend.app.schemas.notification import NotificationResponse, MarkReadResponse

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=List[NotificationResponse])
async def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=100),
    current_user: dict = Depends(get_current_user),
    store: SqlAlchemyStore = Depends(get_store),
):
    """List current user's notifications."""
    return await store.list_notifications(current_user["user_id"], unread_only=unread_only, limit=limit)


@router.patch("/read-all", response_model=MarkReadResponse)
async def mark_all_notifications_read(
    current_user: dict = Depends(get_current_user),
    store: SqlAlchemyStore = Depends(get_store),
):
    """Mark all notifications as read."""
    async with store.transaction() as tx:
        count = await tx.mark_notifications_read(current_user["user_id"], read_at=datetime.now(timezone.utc))
    return MarkReadResponse(count=count)


@router.patch("/{notification_id}/read", response_model=MarkReadResponse)
async def mark_notification_read(
    notification_id: int = Path(...),
    current_user: dict = Depends(get_current_user),
    store: SqlAlchemyStore = Depends(get_store),
):
    """Mark a specific notification as read."""
    async with store.transaction() as tx:
        count = await tx.mark_notifications_read(
            current_user["user_id"],
            read_at=datetime.now(timezone.utc),
            notification_id=notification_id,
        )
    if not count:
        raise ResourceNotFoundError("Notification", notification_id)
    return MarkReadResponse(count=count)
