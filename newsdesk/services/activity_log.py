"""
Audit trail writer.

Every activity type has exactly one payload model; details are validated
against it before the row is written, so the stored JSON always has a known
shape for its type.
"""
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, Optional, Type

from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from ..config import get_settings
from ..logging_config import get_logger
from ..models.activity import Activity
from ..models.user import User
from ..timeutils import utcnow

logger = get_logger("activity")


class ActivityType(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    PUBLISH = "publish"
    SCHEDULE = "schedule"
    APPROVAL_REQUEST = "approval_request"
    UPDATE_REQUEST = "update_request"
    SCHEDULE_REQUEST = "schedule_request"
    POST_APPROVED = "post_approved"
    UPDATE_APPROVED = "update_approved"
    POST_REJECTED = "post_rejected"
    CHANGES_REQUESTED = "changes_requested"
    ADMIN_POST_UPDATED = "admin_post_updated"
    SCHEDULE_APPROVED = "schedule_approved"
    SCHEDULE_REJECTED = "schedule_rejected"
    SCHEDULE_CANCELLED = "schedule_cancelled"
    AUTO_PUBLISH = "auto_publish"
    RSS_IMPORT = "rss_import"
    CATEGORY_CREATED = "category_created"
    CATEGORY_UPDATED = "category_updated"
    CATEGORY_DELETED = "category_deleted"
    ADMIN_CREATED = "admin_created"
    ADMIN_UPDATED = "admin_updated"
    ADMIN_DELETED = "admin_deleted"
    CRUD_ACCESS_CHANGED = "crud_access_changed"


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


# ============================================================
# PAYLOADS
# ============================================================

class _Payload(BaseModel):
    model_config = ConfigDict(extra="forbid")


class PostEvent(_Payload):
    status: str
    category_id: Optional[int] = None
    publish_date_time: Optional[datetime] = None


class ReviewEvent(_Payload):
    approval_status: str
    version: int = 1
    is_update_request: bool = False
    publish_date_time: Optional[datetime] = None
    reason: Optional[str] = None
    notes: Optional[str] = None


class AutomatedPublish(_Payload):
    automated: bool = True
    scheduled_time: datetime
    actual_publish_time: datetime
    delay_minutes: int


class FeedImport(_Payload):
    feed_id: Optional[int] = None
    feed_url: Optional[str] = None
    saved: int
    errors: int


class CategoryEvent(_Payload):
    category_id: int
    name: str


class AccountEvent(_Payload):
    target_user_id: int
    email: str
    role: str
    crud_access: Optional[bool] = None
    is_active: Optional[bool] = None


PAYLOADS: Dict[ActivityType, Type[_Payload]] = {
    ActivityType.CREATE: PostEvent,
    ActivityType.UPDATE: PostEvent,
    ActivityType.DELETE: PostEvent,
    ActivityType.PUBLISH: PostEvent,
    ActivityType.SCHEDULE: PostEvent,
    ActivityType.SCHEDULE_CANCELLED: PostEvent,
    ActivityType.APPROVAL_REQUEST: ReviewEvent,
    ActivityType.UPDATE_REQUEST: ReviewEvent,
    ActivityType.SCHEDULE_REQUEST: ReviewEvent,
    ActivityType.POST_APPROVED: ReviewEvent,
    ActivityType.UPDATE_APPROVED: ReviewEvent,
    ActivityType.POST_REJECTED: ReviewEvent,
    ActivityType.CHANGES_REQUESTED: ReviewEvent,
    ActivityType.ADMIN_POST_UPDATED: ReviewEvent,
    ActivityType.SCHEDULE_APPROVED: ReviewEvent,
    ActivityType.SCHEDULE_REJECTED: ReviewEvent,
    ActivityType.AUTO_PUBLISH: AutomatedPublish,
    ActivityType.RSS_IMPORT: FeedImport,
    ActivityType.CATEGORY_CREATED: CategoryEvent,
    ActivityType.CATEGORY_UPDATED: CategoryEvent,
    ActivityType.CATEGORY_DELETED: CategoryEvent,
    ActivityType.ADMIN_CREATED: AccountEvent,
    ActivityType.ADMIN_UPDATED: AccountEvent,
    ActivityType.ADMIN_DELETED: AccountEvent,
    ActivityType.CRUD_ACCESS_CHANGED: AccountEvent,
}

SEVERITIES: Dict[ActivityType, Severity] = {
    ActivityType.DELETE: Severity.WARNING,
    ActivityType.POST_REJECTED: Severity.WARNING,
    ActivityType.SCHEDULE_REJECTED: Severity.WARNING,
    ActivityType.CATEGORY_DELETED: Severity.WARNING,
    ActivityType.ADMIN_DELETED: Severity.CRITICAL,
    ActivityType.CRUD_ACCESS_CHANGED: Severity.CRITICAL,
}


def expiry_for(severity: Severity, now: datetime) -> datetime:
    settings = get_settings()
    days = {
        Severity.INFO: settings.activity_retention_info_days,
        Severity.WARNING: settings.activity_retention_warning_days,
        Severity.CRITICAL: settings.activity_retention_critical_days,
    }[severity]
    return now + timedelta(days=days)


def record_activity(
    db: Session,
    activity_type: ActivityType,
    title: str,
    actor: Optional[User] = None,
    details: Optional[dict] = None,
    post_id: Optional[int] = None,
    admin_post_id: Optional[int] = None,
    description: Optional[str] = None,
) -> Activity:
    """
    Validate and stage an Activity row in the caller's session.

    The caller owns the commit, so the entry lands in the same transaction
    as the change it describes. Raises ValueError when `details` does not
    fit the payload model for `activity_type`.
    """
    activity_type = ActivityType(activity_type)
    payload = PAYLOADS[activity_type].model_validate(details or {})
    severity = SEVERITIES.get(activity_type, Severity.INFO)
    now = utcnow()

    activity = Activity(
        user_id=actor.id if actor else None,
        activity_type=activity_type.value,
        title=title,
        description=description,
        post_id=post_id,
        admin_post_id=admin_post_id,
        details=payload.model_dump(mode="json", exclude_none=True),
        severity=severity.value,
        expires_at=expiry_for(severity, now),
        created_at=now,
    )
    db.add(activity)
    return activity


def purge_expired_activities(db: Session, now: Optional[datetime] = None) -> int:
    """Delete audit entries past their retention window."""
    now = now or utcnow()
    deleted = (
        db.query(Activity)
        .filter(Activity.expires_at.isnot(None), Activity.expires_at <= now)
        .delete(synchronize_session=False)
    )
    db.commit()
    if deleted:
        logger.info("Purged expired activities", count=deleted)
    return deleted
