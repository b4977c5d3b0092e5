"""
Scheduler routes: scheduled post overview, timezone preference and manual runs.
"""
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.user import User
from ..auth import get_staff_user, get_superadmin
from ..schemas.posts import TimezoneUpdate
from ..services import posts as post_service
from ..services.scheduled_publisher import publish_due_posts
from ..worker.scheduler import task_scheduler
from ..responses import success, bad_request, conflict

router = APIRouter(prefix="/api/scheduler", tags=["scheduler"])


@router.get("/posts")
def get_scheduled_posts(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_staff_user),
):
    items = post_service.scheduled_posts(db, current_user)
    return success([p.to_dict() for p in items], count=len(items))


@router.delete("/posts/{post_id}")
def cancel_scheduled_post(
    post_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_staff_user),
):
    post = post_service.cancel_schedule(db, current_user, post_id)
    return success(post.to_dict(), "Schedule cancelled")


@router.put("/timezone")
def update_timezone(
    data: TimezoneUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_staff_user),
):
    try:
        ZoneInfo(data.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        bad_request(f"Unknown timezone '{data.timezone}'")
    current_user.timezone = data.timezone
    db.commit()
    return success({"timezone": current_user.timezone}, "Timezone updated")


@router.post("/trigger-auto-publish")
def trigger_auto_publish(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_superadmin),
):
    """Run the scheduled publish pass now, unless one is already running."""
    published = task_scheduler.guards["publish"].run(publish_due_posts, db)
    if published is None:
        conflict("Auto-publish is already running")
    return success({"published": published}, f"Published {published} scheduled post(s)")


@router.get("/status")
def scheduler_status(current_user: User = Depends(get_staff_user)):
    return success(task_scheduler.status())
