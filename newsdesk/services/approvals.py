"""
Superadmin review of staged submissions (AdminPost rows).

approve / reject / request_changes cover plain submissions and update
requests; approve_schedule / reject_schedule cover future-dated ones. Each
resolution writes exactly one activity entry.
"""
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from ..logging_config import get_logger
from ..models.admin_post import AdminPost, ApprovalStatus
from ..models.post import Post, PostStatus, PostSource, CONTENT_FIELDS
from ..models.user import User, Role
from ..responses import bad_request, conflict, forbidden, not_found, require_text, page_window
from ..timeutils import utcnow
from .activity_log import ActivityType, record_activity
from .notifications import announce
from .posts import (
    apply_content,
    content_values,
    get_post_or_404,
    mark_published,
    mark_scheduled,
    outstanding_submission,
    require_staff,
    review_event,
)
from .publication_policy import is_future

logger = get_logger("approvals")

REVIEWABLE = (
    ApprovalStatus.PENDING_REVIEW,
    ApprovalStatus.SCHEDULED_PENDING,
    ApprovalStatus.CHANGES_REQUESTED,
)


def _require_superadmin(actor: User):
    if actor.role != Role.SUPERADMIN:
        forbidden("Superadmin access required")


def get_submission(db: Session, admin_post_id: int) -> AdminPost:
    admin_post = db.query(AdminPost).filter(AdminPost.id == admin_post_id).first()
    if not admin_post:
        not_found("Submission")
    return admin_post


def _copy_to_post(admin_post: AdminPost, post: Post):
    for field in CONTENT_FIELDS:
        setattr(post, field, getattr(admin_post, field))


def _post_for(db: Session, admin_post: AdminPost) -> Post:
    """The linked post, or a new one built from the staged data."""
    if admin_post.post_id:
        post = db.query(Post).filter(Post.id == admin_post.post_id).first()
        if post is not None:
            _copy_to_post(admin_post, post)
            return post

    post = Post(
        author=admin_post.author,
        author_id=admin_post.author_id,
        source=PostSource.MANUAL,
        status=PostStatus.DRAFT,
    )
    _copy_to_post(admin_post, post)
    db.add(post)
    db.flush()
    admin_post.post_id = post.id
    return post


# ============================================================
# READ MODELS
# ============================================================

def list_submissions(
    db: Session,
    statuses: Optional[List[str]] = None,
    author_id: Optional[int] = None,
    page: int = 1,
    limit: int = 10,
) -> Tuple[List[AdminPost], int]:
    query = db.query(AdminPost)
    if statuses:
        query = query.filter(AdminPost.approval_status.in_(statuses))
    if author_id is not None:
        query = query.filter(AdminPost.author_id == author_id)

    total = query.count()
    items = (
        query.order_by(AdminPost.created_at.desc(), AdminPost.id.desc())
        .offset(page_window(page, limit))
        .limit(limit)
        .all()
    )
    return items, total


def view_submission(db: Session, viewer: User, admin_post_id: int) -> AdminPost:
    admin_post = get_submission(db, admin_post_id)
    if viewer.role != Role.SUPERADMIN and admin_post.author_id != viewer.id:
        forbidden("You can only view your own submissions")
    return admin_post


# ============================================================
# SUBMISSIONS
# ============================================================

def create_submission(db: Session, actor: User, data: dict) -> AdminPost:
    """Stage a brand-new post; nothing is written to posts until approval."""
    require_staff(actor)
    values = content_values(db, data)
    future = is_future(values.get("publish_date_time"), utcnow())

    admin_post = AdminPost(
        author=data.get("author") or actor.name,
        author_id=actor.id,
        approval_status=ApprovalStatus.SCHEDULED_PENDING if future else ApprovalStatus.PENDING_REVIEW,
        version=1,
    )
    apply_content(admin_post, values)
    db.add(admin_post)
    db.flush()
    record_activity(
        db, ActivityType.APPROVAL_REQUEST, f"Submitted for approval: {admin_post.title}", actor,
        details=review_event(admin_post), admin_post_id=admin_post.id,
    )
    db.commit()
    db.refresh(admin_post)
    return admin_post


def update_submission(db: Session, actor: User, admin_post_id: int, data: dict) -> AdminPost:
    """Author edits a submission; one sent back for changes is resubmitted."""
    admin_post = get_submission(db, admin_post_id)
    if admin_post.author_id != actor.id:
        forbidden("You can only edit your own submissions")
    if admin_post.approval_status not in (ApprovalStatus.PENDING_REVIEW, ApprovalStatus.CHANGES_REQUESTED):
        bad_request("Only submissions pending review or with changes requested can be edited")
    if admin_post.approval_status == ApprovalStatus.CHANGES_REQUESTED and admin_post.post_id:
        other = outstanding_submission(db, admin_post.post_id)
        if other is not None and other.id != admin_post.id:
            conflict("This post already has a request awaiting review")

    apply_content(admin_post, content_values(db, data))
    admin_post.version = (admin_post.version or 1) + 1

    if admin_post.approval_status == ApprovalStatus.CHANGES_REQUESTED:
        future = is_future(admin_post.publish_date_time, utcnow())
        admin_post.approval_status = ApprovalStatus.SCHEDULED_PENDING if future else ApprovalStatus.PENDING_REVIEW
        admin_post.reviewer_notes = None
        if admin_post.post_id:
            post = db.query(Post).filter(Post.id == admin_post.post_id).first()
            if post is not None and post.status == PostStatus.DRAFT and not admin_post.is_update_request:
                post.status = PostStatus.PENDING_APPROVAL
                post.is_scheduled = future

    record_activity(
        db, ActivityType.ADMIN_POST_UPDATED, f"Updated submission: {admin_post.title}", actor,
        details=review_event(admin_post), post_id=admin_post.post_id, admin_post_id=admin_post.id,
    )
    db.commit()
    db.refresh(admin_post)
    return admin_post


# ============================================================
# RESOLUTIONS
# ============================================================

def approve(db: Session, actor: User, admin_post_id: int, notes: str = None) -> Tuple[AdminPost, Post]:
    _require_superadmin(actor)
    admin_post = get_submission(db, admin_post_id)
    if admin_post.approval_status not in REVIEWABLE:
        bad_request(f"Cannot approve a submission that is {admin_post.approval_status}")

    now = utcnow()
    if admin_post.approval_status == ApprovalStatus.SCHEDULED_PENDING or (
        admin_post.approval_status == ApprovalStatus.CHANGES_REQUESTED
        and is_future(admin_post.publish_date_time, now)
    ):
        return _approve_schedule(db, actor, admin_post, notes)

    post = _post_for(db, admin_post)
    newly_published = post.status != PostStatus.PUBLISHED
    if newly_published:
        mark_published(post, actor, now)
    else:
        post.clear_schedule()
        post.last_approved_by = actor.id
        post.last_approved_at = now
    post.rejection_reason = None

    admin_post.approval_status = ApprovalStatus.APPROVED
    admin_post.approved_by = actor.id
    admin_post.approved_at = now
    admin_post.reviewer_notes = notes

    activity_type = ActivityType.UPDATE_APPROVED if admin_post.is_update_request else ActivityType.POST_APPROVED
    record_activity(
        db, activity_type, f"Approved: {post.title}", actor,
        details=review_event(admin_post, notes=notes), post_id=post.id, admin_post_id=admin_post.id,
    )
    db.commit()
    db.refresh(post)
    db.refresh(admin_post)

    logger.info("Submission approved", admin_post_id=admin_post.id, post_id=post.id)
    if newly_published:
        announce(db, post)
    return admin_post, post


def approve_schedule(db: Session, actor: User, admin_post_id: int, notes: str = None) -> Tuple[AdminPost, Post]:
    _require_superadmin(actor)
    admin_post = get_submission(db, admin_post_id)
    if admin_post.approval_status != ApprovalStatus.SCHEDULED_PENDING:
        bad_request("This submission is not awaiting schedule approval")
    return _approve_schedule(db, actor, admin_post, notes)


def _approve_schedule(db: Session, actor: User, admin_post: AdminPost, notes: str = None) -> Tuple[AdminPost, Post]:
    if admin_post.publish_date_time is None:
        bad_request("Submission has no publish time to schedule")

    now = utcnow()
    post = _post_for(db, admin_post)
    post.rejection_reason = None
    # Approved too late: the slot already passed, so go live now
    overdue = not is_future(admin_post.publish_date_time, now)
    if overdue:
        mark_published(post, actor, now)
    else:
        mark_scheduled(post, actor, now)

    admin_post.approval_status = ApprovalStatus.SCHEDULED_APPROVED
    admin_post.approved_by = actor.id
    admin_post.approved_at = now
    admin_post.reviewer_notes = notes

    record_activity(
        db, ActivityType.SCHEDULE_APPROVED, f"Approved schedule: {post.title}", actor,
        details=review_event(admin_post, notes=notes), post_id=post.id, admin_post_id=admin_post.id,
    )
    db.commit()
    db.refresh(post)
    db.refresh(admin_post)
    if overdue:
        announce(db, post)
    return admin_post, post


def reject(db: Session, actor: User, admin_post_id: int, reason: Optional[str]) -> AdminPost:
    _require_superadmin(actor)
    reason = require_text(reason, "Rejection reason")
    admin_post = get_submission(db, admin_post_id)
    if admin_post.approval_status not in REVIEWABLE:
        bad_request(f"Cannot reject a submission that is {admin_post.approval_status}")

    now = utcnow()
    admin_post.approval_status = ApprovalStatus.REJECTED
    admin_post.rejection_reason = reason
    admin_post.approved_by = actor.id
    admin_post.approved_at = now

    if admin_post.post_id:
        post = db.query(Post).filter(Post.id == admin_post.post_id).first()
        if post is not None:
            post.status = PostStatus.DRAFT
            post.clear_schedule()
            post.rejection_reason = reason

    record_activity(
        db, ActivityType.POST_REJECTED, f"Rejected: {admin_post.title}", actor,
        details=review_event(admin_post, reason=reason), post_id=admin_post.post_id, admin_post_id=admin_post.id,
    )
    db.commit()
    db.refresh(admin_post)
    return admin_post


def request_changes(db: Session, actor: User, admin_post_id: int, notes: Optional[str]) -> AdminPost:
    _require_superadmin(actor)
    notes = require_text(notes, "Reviewer notes")
    admin_post = get_submission(db, admin_post_id)
    if admin_post.approval_status not in ApprovalStatus.OUTSTANDING:
        bad_request(f"Cannot request changes on a submission that is {admin_post.approval_status}")

    admin_post.approval_status = ApprovalStatus.CHANGES_REQUESTED
    admin_post.reviewer_notes = notes

    if admin_post.post_id:
        post = db.query(Post).filter(Post.id == admin_post.post_id).first()
        if post is not None and post.status == PostStatus.PENDING_APPROVAL:
            post.status = PostStatus.DRAFT
            post.clear_schedule()

    record_activity(
        db, ActivityType.CHANGES_REQUESTED, f"Changes requested: {admin_post.title}", actor,
        details=review_event(admin_post, notes=notes), post_id=admin_post.post_id, admin_post_id=admin_post.id,
    )
    db.commit()
    db.refresh(admin_post)
    return admin_post


def reject_schedule(db: Session, actor: User, admin_post_id: int, reason: Optional[str] = None) -> AdminPost:
    _require_superadmin(actor)
    admin_post = get_submission(db, admin_post_id)
    if admin_post.approval_status != ApprovalStatus.SCHEDULED_PENDING:
        bad_request("This submission is not awaiting schedule approval")

    reason = require_text(reason, "Rejection reason")
    now = utcnow()
    admin_post.approval_status = ApprovalStatus.REJECTED
    admin_post.rejection_reason = reason
    admin_post.approved_by = actor.id
    admin_post.approved_at = now

    if admin_post.post_id:
        post = db.query(Post).filter(Post.id == admin_post.post_id).first()
        if post is not None:
            post.status = PostStatus.DRAFT
            post.clear_schedule()
            post.rejection_reason = reason

    record_activity(
        db, ActivityType.SCHEDULE_REJECTED, f"Rejected schedule: {admin_post.title}", actor,
        details=review_event(admin_post, reason=reason), post_id=admin_post.post_id, admin_post_id=admin_post.id,
    )
    db.commit()
    db.refresh(admin_post)
    return admin_post


def pending_schedule_for_post(db: Session, post_id: int) -> AdminPost:
    get_post_or_404(db, post_id)
    admin_post = outstanding_submission(db, post_id, (ApprovalStatus.SCHEDULED_PENDING,))
    if admin_post is None:
        not_found("Pending schedule request")
    return admin_post
