"""
Publishes approved scheduled posts once their time arrives.
"""
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from ..config import get_settings
from ..logging_config import worker_logger
from ..models.post import Post, PostStatus
from ..timeutils import utcnow
from .activity_log import ActivityType, record_activity
from .notifications import notify_post_published


def due_posts(db: Session, now: datetime, lookback_minutes: int) -> List[Post]:
    """Approved scheduled posts whose time falls in [now - lookback, now]."""
    window_start = now - timedelta(minutes=lookback_minutes)
    return (
        db.query(Post)
        .filter(
            Post.status == PostStatus.SCHEDULED,
            Post.is_scheduled.is_(True),
            Post.schedule_approved.is_(True),
            Post.publish_date_time >= window_start,
            Post.publish_date_time <= now,
        )
        .order_by(Post.publish_date_time.asc())
        .all()
    )


def publish_due_posts(db: Session, now: Optional[datetime] = None, lookback_minutes: Optional[int] = None) -> int:
    """
    Flip every due post to published and return how many were published.

    The publish itself is committed first; fan-out and the audit entry run
    afterwards and their failures are only logged.
    """
    now = now or utcnow()
    if lookback_minutes is None:
        lookback_minutes = get_settings().publish_lookback_minutes

    published = 0
    for post in due_posts(db, now, lookback_minutes):
        scheduled_time = post.publish_date_time
        approver = post.schedule_approved_by

        try:
            post.status = PostStatus.PUBLISHED
            post.publish_date_time = now
            post.clear_schedule()
            post.last_approved_at = now
            if approver:
                post.last_approved_by = approver
            db.commit()
        except Exception as e:
            db.rollback()
            worker_logger.error("Failed to publish scheduled post", error=e, post_id=post.id)
            continue
        published += 1
        worker_logger.info("Auto-published scheduled post", post_id=post.id, scheduled_time=scheduled_time)

        try:
            notify_post_published(db, post)
        except Exception as e:
            db.rollback()
            worker_logger.error("Fan-out failed for auto-published post", error=e, post_id=post.id)

        try:
            record_activity(
                db, ActivityType.AUTO_PUBLISH, f"Auto-published: {post.title}",
                details={
                    "automated": True,
                    "scheduled_time": scheduled_time,
                    "actual_publish_time": now,
                    "delay_minutes": int((now - scheduled_time).total_seconds() // 60),
                },
                post_id=post.id,
            )
            db.commit()
        except Exception as e:
            db.rollback()
            worker_logger.error("Failed to log auto-publish activity", error=e, post_id=post.id)

    if published:
        worker_logger.info("Scheduled publish run complete", published=published)
    return published
