"""
In-app notification store: per-user listing, read state and retention.
"""
from datetime import datetime, timedelta
from typing import Optional, Tuple, List

from sqlalchemy import or_, and_
from sqlalchemy.orm import Session

from ..config import get_settings
from ..logging_config import notify_logger
from ..models.notification import Notification
from ..responses import not_found, page_window
from ..timeutils import utcnow


def create_notification(
    db: Session,
    user_id: int,
    title: str,
    message: str,
    notification_type: str,
    post_id: int = None,
    feed_id: int = None,
    extra_data: dict = None,
) -> Notification:
    now = utcnow()
    notification = Notification(
        user_id=user_id,
        title=title,
        message=message,
        notification_type=notification_type,
        post_id=post_id,
        feed_id=feed_id,
        extra_data=extra_data,
        expires_at=now + timedelta(days=get_settings().notification_retention_days),
        created_at=now,
    )
    db.add(notification)
    return notification


def _visible(db: Session, user_id: int):
    now = utcnow()
    return db.query(Notification).filter(
        Notification.user_id == user_id,
        or_(Notification.expires_at.is_(None), Notification.expires_at > now),
    )


def list_notifications(
    db: Session,
    user_id: int,
    page: int = 1,
    limit: int = 20,
    unread_only: bool = False,
    notification_type: Optional[str] = None,
) -> Tuple[List[Notification], int]:
    query = _visible(db, user_id)
    if unread_only:
        query = query.filter(Notification.is_read.is_(False))
    if notification_type:
        query = query.filter(Notification.notification_type == notification_type)

    total = query.count()
    items = (
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset(page_window(page, limit))
        .limit(limit)
        .all()
    )
    return items, total


def unread_count(db: Session, user_id: int) -> int:
    return _visible(db, user_id).filter(Notification.is_read.is_(False)).count()


def get_notification(db: Session, user_id: int, notification_id: int) -> Notification:
    notification = db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.user_id == user_id,
    ).first()
    if not notification:
        not_found("Notification")
    return notification


def mark_read(db: Session, user_id: int, notification_id: int) -> Notification:
    notification = get_notification(db, user_id, notification_id)
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = utcnow()
        db.commit()
        db.refresh(notification)
    return notification


def mark_all_read(db: Session, user_id: int) -> int:
    updated = (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
        .update({"is_read": True, "read_at": utcnow()}, synchronize_session=False)
    )
    db.commit()
    return updated


def delete_notification(db: Session, user_id: int, notification_id: int):
    notification = get_notification(db, user_id, notification_id)
    db.delete(notification)
    db.commit()


def cleanup_notifications(db: Session, now: Optional[datetime] = None) -> int:
    """Drop read notifications after one window, unread ones after a longer one."""
    settings = get_settings()
    now = now or utcnow()
    read_cutoff = now - timedelta(days=settings.delete_read_after_days)
    unread_cutoff = now - timedelta(days=settings.delete_unread_after_days)

    deleted = (
        db.query(Notification)
        .filter(
            or_(
                and_(Notification.is_read.is_(True), Notification.created_at < read_cutoff),
                and_(Notification.is_read.is_(False), Notification.created_at < unread_cutoff),
                and_(Notification.expires_at.isnot(None), Notification.expires_at <= now),
            )
        )
        .delete(synchronize_session=False)
    )
    db.commit()
    if deleted:
        notify_logger.info("Cleaned up old notifications", count=deleted)
    return deleted
