"""
Approval routes: staged submissions and their superadmin review.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from ..database import get_db
from ..models.admin_post import ApprovalStatus
from ..models.user import User
from ..auth import get_staff_user, get_superadmin
from ..schemas.posts import PostCreate, PostUpdate
from ..schemas.approval import ApproveRequest, RejectRequest, ChangesRequest
from ..services import approvals, posts as post_service
from ..responses import success, paginated, bad_request

router = APIRouter(prefix="/api/approval", tags=["approval"])

DEFAULT_QUEUE = [
    ApprovalStatus.PENDING_REVIEW,
    ApprovalStatus.SCHEDULED_PENDING,
    ApprovalStatus.CHANGES_REQUESTED,
]


def _statuses(status: Optional[str]):
    if not status:
        return DEFAULT_QUEUE
    if status == "all":
        return None
    statuses = [s.strip() for s in status.split(",") if s.strip()]
    unknown = [s for s in statuses if s not in ApprovalStatus.ALL]
    if unknown:
        bad_request(f"Unknown approval status: {', '.join(unknown)}")
    return statuses


@router.get("/posts")
def get_submissions(
    status: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_superadmin),
):
    """Review queue. Defaults to everything still awaiting a decision."""
    items, total = approvals.list_submissions(db, _statuses(status), page=page, limit=limit)
    return paginated([a.to_dict() for a in items], total, page, limit)


@router.post("/posts", status_code=201)
def create_submission(
    data: PostCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_staff_user),
):
    admin_post = approvals.create_submission(db, current_user, data.model_dump(exclude_unset=True))
    return success(admin_post.to_dict(), "Post submitted for approval")


@router.get("/my-posts")
def get_my_submissions(
    status: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_staff_user),
):
    statuses = _statuses(status) if status else None
    items, total = approvals.list_submissions(db, statuses, author_id=current_user.id, page=page, limit=limit)
    return paginated([a.to_dict() for a in items], total, page, limit)


@router.get("/pending-schedule")
def get_pending_schedule(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_superadmin),
):
    items, total = approvals.list_submissions(db, [ApprovalStatus.SCHEDULED_PENDING], page=page, limit=limit)
    return paginated([a.to_dict() for a in items], total, page, limit)


@router.get("/posts/{admin_post_id}")
def get_submission(
    admin_post_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_staff_user),
):
    return success(approvals.view_submission(db, current_user, admin_post_id).to_dict())


@router.put("/posts/{admin_post_id}")
def update_submission(
    admin_post_id: int,
    data: PostUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_staff_user),
):
    changes = data.model_dump(exclude_unset=True)
    changes.pop("status", None)
    admin_post = approvals.update_submission(db, current_user, admin_post_id, changes)
    return success(admin_post.to_dict(), "Submission updated")


@router.post("/posts/{post_id}/request-update", status_code=201)
def request_update(
    post_id: int,
    data: PostUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_staff_user),
):
    """Stage edits to a post the caller owns."""
    admin_post = post_service.request_update(db, current_user, post_id, data.model_dump(exclude_unset=True))
    return success(admin_post.to_dict(), "Update request submitted for approval")


@router.put("/posts/{admin_post_id}/approve")
def approve(
    admin_post_id: int,
    data: Optional[ApproveRequest] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_superadmin),
):
    admin_post, post = approvals.approve(db, current_user, admin_post_id, data.notes if data else None)
    return success(post.to_dict(), "Post approved", admin_post=admin_post.to_dict())


@router.put("/posts/{admin_post_id}/reject")
def reject(
    admin_post_id: int,
    data: RejectRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_superadmin),
):
    admin_post = approvals.reject(db, current_user, admin_post_id, data.reason)
    return success(admin_post.to_dict(), "Post rejected")


@router.put("/posts/{admin_post_id}/request-changes")
def request_changes(
    admin_post_id: int,
    data: ChangesRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_superadmin),
):
    admin_post = approvals.request_changes(db, current_user, admin_post_id, data.notes)
    return success(admin_post.to_dict(), "Changes requested")


@router.put("/posts/{admin_post_id}/approve-schedule")
def approve_schedule(
    admin_post_id: int,
    data: Optional[ApproveRequest] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_superadmin),
):
    admin_post, post = approvals.approve_schedule(db, current_user, admin_post_id, data.notes if data else None)
    return success(post.to_dict(), "Schedule approved", admin_post=admin_post.to_dict())


@router.put("/posts/{admin_post_id}/reject-schedule")
def reject_schedule(
    admin_post_id: int,
    data: RejectRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_superadmin),
):
    admin_post = approvals.reject_schedule(db, current_user, admin_post_id, data.reason)
    return success(admin_post.to_dict(), "Schedule rejected")
