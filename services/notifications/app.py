from typing import List

from fastapi import Depends, Request, status
from sqlalchemy.orm import Session

from booking_common.database import get_db, write_transaction
from booking_common.dependencies import get_current_active_user
from booking_common.errors import NotFoundError
from booking_common.models import Notification, User
from booking_common.rate_limit import limiter
from booking_common.repositories import NotificationRepository
from booking_common.schemas import NotificationRead, UnreadCount
from booking_common.service import build_app


def create_app():
    return build_app("Notifications Service", "notifications")


app = create_app()


@app.get("/notifications", response_model=List[NotificationRead])
@limiter.limit("60/minute")
def list_notifications(
    request: Request,
    unread_only: bool = False,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> List[Notification]:
    return NotificationRepository(db).list(current_user.id, unread_only=unread_only)


@app.get("/notifications/unread-count", response_model=UnreadCount)
@limiter.limit("120/minute")
def unread_count(
    request: Request,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> UnreadCount:
    return UnreadCount(count=NotificationRepository(db).unread_count(current_user.id))


@app.patch("/notifications/read-all", response_model=UnreadCount)
@limiter.limit("30/minute")
def mark_all_read(
    request: Request,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> UnreadCount:
    with write_transaction(db):
        NotificationRepository(db).mark_all_read(current_user.id)
    return UnreadCount(count=0)


@app.patch("/notifications/{notification_id}/read", response_model=NotificationRead, status_code=status.HTTP_200_OK)
@limiter.limit("60/minute")
def mark_read(
    request: Request,
    notification_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> Notification:
    with write_transaction(db):
        notification = NotificationRepository(db).get(notification_id)
        # Other users' notifications are reported as missing rather than forbidden.
        if notification is None or notification.user_id != current_user.id:
            raise NotFoundError("Notification not found")
        notification.is_read = True
    db.refresh(notification)
    return notification
