"""Query endpoints used by clients to fetch and acknowledge notifications."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from notification_service.infrastructure.database import get_db
from notification_service.infrastructure.repositories import NotificationRepository
from notification_service.interfaces.api.schemas import (
    MarkAllReadResponse,
    NotificationList,
    NotificationRead,
)

router = APIRouter(prefix="/notifications", tags=["notifications"])

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200


@router.get("", response_model=NotificationList)
def list_notifications(
    user_id: str = Query(..., alias="userId", min_length=1),
    since: int | None = Query(None, description="Only return notifications newer than this id"),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
) -> NotificationList:
    """Return the recipient's notifications newest first with the unread total."""

    repository = NotificationRepository(db)
    notifications = repository.list_for_recipient(user_id, since_id=since, limit=limit)
    return NotificationList(
        notifications=[NotificationRead.from_entity(item) for item in notifications],
        unread_count=repository.count_unread(user_id),
    )


@router.patch("/read-all", response_model=MarkAllReadResponse)
def mark_all_notifications_read(
    user_id: str = Query(..., alias="userId", min_length=1),
    db: Session = Depends(get_db),
) -> MarkAllReadResponse:
    updated = NotificationRepository(db).mark_all_as_read(user_id)
    return MarkAllReadResponse(updated=updated)


@router.patch("/{notification_id}/read", response_model=NotificationRead)
def mark_notification_read(
    notification_id: int,
    user_id: str | None = Query(None, alias="userId"),
    db: Session = Depends(get_db),
) -> NotificationRead:
    """Mark one notification as read. Already read notifications stay read."""

    notification = NotificationRepository(db).mark_as_read(notification_id, recipient=user_id)
    if notification is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Notification not found",
        )
    return NotificationRead.from_entity(notification)
