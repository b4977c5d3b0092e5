"""
Posts routes: listing, authoring and the publish / schedule actions.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from ..database import get_db
from ..models.admin_post import ApprovalStatus
from ..models.user import User
from ..auth import get_current_user, get_staff_user, get_superadmin
from ..schemas.posts import PostCreate, PostUpdate, ScheduleRequest
from ..schemas.approval import ApproveRequest, RejectRequest
from ..services import approvals, posts as post_service
from ..responses import success, paginated

router = APIRouter(prefix="/api/posts", tags=["posts"])


def staged_response(post, admin_post, direct_message: str, staged_message: str) -> dict:
    if admin_post is None:
        return success(post.to_dict(), direct_message, requires_approval=False)
    return success(
        post.to_dict(),
        staged_message,
        requires_approval=True,
        admin_post=admin_post.to_dict(),
    )


@router.get("")
def get_posts(
    status: Optional[str] = None,
    category: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_current_user),
):
    """List posts visible to the caller: readers see published, admins their own."""
    items, total = post_service.list_posts(
        db, current_user, status=status, category=category, search=search, page=page, limit=limit,
    )
    return paginated([p.to_dict() for p in items], total, page, limit)


@router.post("", status_code=201)
def create_post(
    data: PostCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_staff_user),
):
    """Create a post; admins without CRUD access get it staged for approval."""
    post, admin_post = post_service.create_post(db, current_user, data.model_dump(exclude_unset=True))
    return staged_response(
        post, admin_post,
        "Post scheduled successfully" if post.is_scheduled else "Post created successfully",
        "Post submitted for approval",
    )


@router.post("/draft", status_code=201)
def create_draft(
    data: PostCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_staff_user),
):
    post = post_service.create_draft(db, current_user, data.model_dump(exclude_unset=True))
    return success(post.to_dict(), "Draft saved successfully")


@router.get("/scheduled")
def get_scheduled_posts(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_staff_user),
):
    items = post_service.scheduled_posts(db, current_user)
    return success([p.to_dict() for p in items], count=len(items))


@router.get("/pending-schedule-approvals")
def get_pending_schedule_approvals(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_superadmin),
):
    items, total = approvals.list_submissions(db, [ApprovalStatus.SCHEDULED_PENDING], page=page, limit=limit)
    return paginated([a.to_dict() for a in items], total, page, limit)


@router.get("/{post_id}")
def get_post(
    post_id: int,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_current_user),
):
    return success(post_service.get_post(db, current_user, post_id).to_dict())


@router.put("/{post_id}")
def update_post(
    post_id: int,
    data: PostUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_staff_user),
):
    post, admin_post = post_service.update_post(db, current_user, post_id, data.model_dump(exclude_unset=True))
    return staged_response(post, admin_post, "Post updated successfully", "Update submitted for approval")


@router.delete("/{post_id}")
def delete_post(
    post_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_staff_user),
):
    post_service.delete_post(db, current_user, post_id)
    return success(message="Post deleted successfully")


@router.put("/{post_id}/publish")
def publish_post(
    post_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_staff_user),
):
    post, admin_post = post_service.publish_post(db, current_user, post_id)
    return staged_response(post, admin_post, "Post published successfully", "Publish request submitted for approval")


@router.put("/{post_id}/schedule")
def schedule_post(
    post_id: int,
    data: ScheduleRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_staff_user),
):
    post, admin_post = post_service.schedule_post(db, current_user, post_id, data.publish_date_time)
    return staged_response(post, admin_post, "Post scheduled successfully", "Schedule submitted for approval")


@router.put("/{post_id}/submit-for-approval")
def submit_for_approval(
    post_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_staff_user),
):
    post, admin_post = post_service.submit_for_approval(db, current_user, post_id)
    return success(post.to_dict(), "Post submitted for approval", requires_approval=True, admin_post=admin_post.to_dict())


@router.put("/{post_id}/request-update")
def request_update(
    post_id: int,
    data: PostUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_staff_user),
):
    admin_post = post_service.request_update(db, current_user, post_id, data.model_dump(exclude_unset=True))
    return success(admin_post.to_dict(), "Update request submitted for approval")


@router.put("/{post_id}/cancel-schedule")
def cancel_schedule(
    post_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_staff_user),
):
    post = post_service.cancel_schedule(db, current_user, post_id)
    return success(post.to_dict(), "Schedule cancelled")


@router.put("/{post_id}/approve-schedule")
def approve_schedule(
    post_id: int,
    data: Optional[ApproveRequest] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_superadmin),
):
    """Approve the pending schedule request of a post."""
    pending = approvals.pending_schedule_for_post(db, post_id)
    admin_post, post = approvals.approve_schedule(db, current_user, pending.id, data.notes if data else None)
    return success(post.to_dict(), "Schedule approved", admin_post=admin_post.to_dict())


@router.put("/{post_id}/reject-schedule")
def reject_schedule(
    post_id: int,
    data: RejectRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_superadmin),
):
    pending = approvals.pending_schedule_for_post(db, post_id)
    admin_post = approvals.reject_schedule(db, current_user, pending.id, data.reason)
    return success(admin_post.to_dict(), "Schedule rejected")
