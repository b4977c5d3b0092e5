"""
Activity routes: audit log browsing and retention.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import Optional
from datetime import timedelta

from ..database import get_db
from ..models.activity import Activity
from ..models.user import User, Role
from ..auth import get_staff_user, get_superadmin
from ..services.activity_log import purge_expired_activities
from ..responses import success, paginated, page_window
from ..timeutils import utcnow

router = APIRouter(prefix="/api/activities", tags=["activities"])


def _scoped(db: Session, user: User):
    query = db.query(Activity)
    if user.role != Role.SUPERADMIN:
        query = query.filter(Activity.user_id == user.id)
    return query


@router.get("")
def get_activities(
    type: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_staff_user),
):
    """Superadmins see every entry, admins only their own."""
    query = _scoped(db, current_user)
    if type:
        query = query.filter(Activity.activity_type == type)
    total = query.count()
    items = (
        query.order_by(Activity.created_at.desc(), Activity.id.desc())
        .offset(page_window(page, limit))
        .limit(limit)
        .all()
    )
    return paginated([a.to_dict() for a in items], total, page, limit)


@router.get("/stats")
def get_activity_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_staff_user),
):
    base_query = _scoped(db, current_user)
    total = base_query.count()

    type_counts = (
        base_query.with_entities(Activity.activity_type, func.count(Activity.id))
        .group_by(Activity.activity_type)
        .all()
    )
    week_ago = utcnow() - timedelta(days=7)
    recent = base_query.filter(Activity.created_at >= week_ago).count()

    return success({
        "total": total,
        "last_7_days": recent,
        "by_type": {t: c for t, c in type_counts},
    })


@router.get("/user/{user_id}")
def get_user_activities(
    user_id: int,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_superadmin),
):
    query = db.query(Activity).filter(Activity.user_id == user_id)
    total = query.count()
    items = (
        query.order_by(Activity.created_at.desc(), Activity.id.desc())
        .offset(page_window(page, limit))
        .limit(limit)
        .all()
    )
    return paginated([a.to_dict() for a in items], total, page, limit)


@router.delete("/cleanup")
def cleanup_activities(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_superadmin),
):
    deleted = purge_expired_activities(db)
    return success({"deleted": deleted}, f"Removed {deleted} expired activities")
