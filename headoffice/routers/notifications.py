from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from headoffice.database import get_db
from headoffice.models.user import User
from headoffice.routers.auth_deps import get_current_user
from headoffice.schemas.notification import NotificationResponse
from headoffice.services.notification import NotificationService

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("/", response_model=List[NotificationResponse])
def get_notifications(
    unread_only: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return NotificationService(db, current_user.tenant_id).list_for_user(current_user.id, unread_only)


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
def mark_notification_as_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return NotificationService(db, current_user.tenant_id).mark_read(notification_id, current_user.id)


@router.post("/mark-all-read")
def mark_all_notifications_as_read(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    NotificationService(db, current_user.tenant_id).mark_all_read(current_user.id)
    return {"message": "All notifications marked as read"}
