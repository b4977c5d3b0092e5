"""
In-app notification routes for the signed-in user.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from ..database import get_db
from ..models.user import User
from ..auth import get_required_user
from ..services import in_app
from ..responses import success, paginated

router = APIRouter(prefix="/api/notifications/in-app", tags=["notifications"])


@router.get("")
def get_notifications(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    unread_only: bool = False,
    type: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    items, total = in_app.list_notifications(
        db, current_user.id, page=page, limit=limit, unread_only=unread_only, notification_type=type,
    )
    response = paginated([n.to_dict() for n in items], total, page, limit)
    response["unread_count"] = in_app.unread_count(db, current_user.id)
    return response


@router.get("/count")
def get_unread_count(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    return success({"unread_count": in_app.unread_count(db, current_user.id)})


@router.put("/read-all")
def mark_all_read(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    updated = in_app.mark_all_read(db, current_user.id)
    return success({"updated": updated}, "All notifications marked as read")


@router.get("/{notification_id}")
def get_notification(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    return success(in_app.get_notification(db, current_user.id, notification_id).to_dict())


@router.put("/{notification_id}/read")
def mark_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    notification = in_app.mark_read(db, current_user.id, notification_id)
    return success(notification.to_dict(), "Notification marked as read")


@router.delete("/{notification_id}")
def delete_notification(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    in_app.delete_notification(db, current_user.id, notification_id)
    return success(message="Notification deleted")
