"""
Post workflow: create, draft, update, publish, schedule and delete.

Each operation authorizes the actor first, then either applies the change to
the Post directly or stages it as an AdminPost for superadmin review, using
`decide_publication` to choose. The Post, its staging row and the audit
entry are committed together; fan-out runs after the commit.
"""
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..logging_config import get_logger
from ..models.admin_post import AdminPost, ApprovalStatus
from ..models.post import Post, PostStatus, PostSource, CONTENT_FIELDS
from ..models.user import User, Role
from ..responses import bad_request, conflict, forbidden, not_found, page_window
from ..timeutils import utcnow, to_utc_naive
from .activity_log import ActivityType, record_activity
from .categories import resolve_category
from .notifications import announce
from .publication_policy import decide_publication, is_future

logger = get_logger("posts")

_PLAIN_FIELDS = (
    "title",
    "short_title",
    "body",
    "region",
    "is_sponsored",
    "meta_title",
    "meta_description",
    "image_url",
)


# ============================================================
# HELPERS
# ============================================================

def normalize_tags(value) -> List[str]:
    """Tags arrive as a list or a comma separated string."""
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    tags = []
    for tag in value:
        tag = str(tag).strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def default_meta_description(body: str) -> str:
    return body[:150] + "..." if len(body) > 150 else body


def content_values(db: Session, data: dict) -> dict:
    """Translate request fields into column values, resolving the category."""
    values = {key: data[key] for key in _PLAIN_FIELDS if key in data}
    if "category" in data:
        values["category_id"] = resolve_category(db, data["category"]).id
    if "tags" in data:
        values["tags"] = normalize_tags(data["tags"])
    if "publish_date_time" in data:
        values["publish_date_time"] = to_utc_naive(data["publish_date_time"])
    return values


def apply_content(target, values: dict):
    for key, value in values.items():
        setattr(target, key, value)
    if not target.meta_title:
        target.meta_title = target.title
    if not target.meta_description and target.body:
        target.meta_description = default_meta_description(target.body)


def snapshot(post: Post) -> dict:
    data = {}
    for field in CONTENT_FIELDS + ("status",):
        value = getattr(post, field)
        data[field] = value.isoformat() if isinstance(value, datetime) else value
    return data


def post_event(post: Post) -> dict:
    return {
        "status": post.status,
        "category_id": post.category_id,
        "publish_date_time": post.publish_date_time,
    }


def review_event(admin_post: AdminPost, reason: str = None, notes: str = None) -> dict:
    return {
        "approval_status": admin_post.approval_status,
        "version": admin_post.version or 1,
        "is_update_request": bool(admin_post.is_update_request),
        "publish_date_time": admin_post.publish_date_time,
        "reason": reason,
        "notes": notes,
    }


def get_post_or_404(db: Session, post_id: int) -> Post:
    post = db.query(Post).filter(Post.id == post_id).first()
    if not post:
        not_found("Post")
    return post


def outstanding_submission(db: Session, post_id: int, statuses=ApprovalStatus.OUTSTANDING) -> Optional[AdminPost]:
    return (
        db.query(AdminPost)
        .filter(AdminPost.post_id == post_id, AdminPost.approval_status.in_(statuses))
        .order_by(AdminPost.id.desc())
        .first()
    )


def ensure_nothing_outstanding(db: Session, post: Post):
    if outstanding_submission(db, post.id):
        conflict("This post already has a request awaiting review")


def require_staff(actor: User):
    if actor.role not in Role.STAFF:
        forbidden("Admin access required")


def require_owner_or_superadmin(actor: User, post: Post):
    require_staff(actor)
    if actor.role != Role.SUPERADMIN and post.author_id != actor.id:
        forbidden("You can only modify your own posts")


def stage(
    db: Session,
    actor: User,
    approval_status: str,
    values: dict,
    post: Optional[Post] = None,
    is_update_request: bool = False,
) -> AdminPost:
    """Create the AdminPost shadow for a post (or for a brand-new submission)."""
    staged = {field: getattr(post, field) for field in CONTENT_FIELDS} if post is not None else {}
    staged.update(values)

    admin_post = AdminPost(
        author=actor.name,
        author_id=actor.id,
        approval_status=approval_status,
        post_id=post.id if post is not None else None,
        is_update_request=is_update_request,
        original_post_data=snapshot(post) if is_update_request else None,
        version=1,
    )
    apply_content(admin_post, staged)
    db.add(admin_post)
    db.flush()
    return admin_post


def mark_published(post: Post, approver: User, now: datetime):
    post.status = PostStatus.PUBLISHED
    post.publish_date_time = now
    post.clear_schedule()
    post.last_approved_by = approver.id
    post.last_approved_at = now


def mark_scheduled(post: Post, approver: User, now: datetime):
    post.status = PostStatus.SCHEDULED
    post.is_scheduled = True
    post.schedule_approved = True
    post.schedule_approved_by = approver.id
    post.schedule_approved_at = now


# ============================================================
# QUERIES
# ============================================================

def visible_posts(db: Session, viewer: Optional[User]):
    query = db.query(Post)
    if viewer is None or viewer.role == Role.USER:
        return query.filter(Post.status == PostStatus.PUBLISHED)
    if viewer.role == Role.ADMIN:
        return query.filter(Post.author_id == viewer.id)
    return query


def list_posts(
    db: Session,
    viewer: Optional[User],
    status: Optional[str] = None,
    category: Optional[str] = None,
    search: Optional[str] = None,
    source: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
) -> Tuple[List[Post], int]:
    query = visible_posts(db, viewer)
    if status:
        query = query.filter(Post.status == status)
    if category:
        query = query.filter(Post.category_id == resolve_category(db, category).id)
    if source:
        query = query.filter(Post.source == source)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            Post.title.ilike(pattern),
            Post.short_title.ilike(pattern),
            Post.body.ilike(pattern),
        ))

    total = query.count()
    posts = (
        query.order_by(Post.created_at.desc(), Post.id.desc())
        .offset(page_window(page, limit))
        .limit(limit)
        .all()
    )
    return posts, total


def get_post(db: Session, viewer: Optional[User], post_id: int) -> Post:
    post = get_post_or_404(db, post_id)
    if viewer is None or viewer.role == Role.USER:
        if post.status != PostStatus.PUBLISHED:
            not_found("Post")
        post.views = (post.views or 0) + 1
        db.commit()
        db.refresh(post)
    elif viewer.role == Role.ADMIN and post.author_id != viewer.id and post.status != PostStatus.PUBLISHED:
        forbidden("You can only view your own unpublished posts")
    return post


def scheduled_posts(db: Session, viewer: User) -> List[Post]:
    query = visible_posts(db, viewer).filter(Post.is_scheduled.is_(True))
    return query.order_by(Post.publish_date_time.asc()).all()


# ============================================================
# MUTATIONS
# ============================================================

def create_post(db: Session, actor: User, data: dict) -> Tuple[Post, Optional[AdminPost]]:
    """Create a post, publishing, scheduling or staging it per the actor's rights."""
    now = utcnow()
    values = content_values(db, data)
    decision = decide_publication(actor.role, actor.crud_access, values.get("publish_date_time"), now)

    post = Post(
        author=data.get("author") or actor.name,
        author_id=actor.id,
        source=PostSource.MANUAL,
        status=decision.status,
        is_scheduled=decision.is_scheduled,
        schedule_approved=decision.schedule_approved,
    )
    apply_content(post, values)
    if decision.status == PostStatus.PUBLISHED:
        mark_published(post, actor, now)
    elif decision.status == PostStatus.SCHEDULED:
        mark_scheduled(post, actor, now)
    db.add(post)
    db.flush()

    admin_post = None
    if decision.requires_staging:
        admin_post = stage(db, actor, decision.approval_status, {}, post=post)
        record_activity(
            db, ActivityType.APPROVAL_REQUEST, f"Submitted for approval: {post.title}", actor,
            details=review_event(admin_post), post_id=post.id, admin_post_id=admin_post.id,
        )
    else:
        activity_type = ActivityType.PUBLISH if decision.status == PostStatus.PUBLISHED else ActivityType.SCHEDULE
        record_activity(
            db, activity_type, f"Created post: {post.title}", actor,
            details=post_event(post), post_id=post.id,
        )
    db.commit()
    db.refresh(post)

    logger.info("Post created", post_id=post.id, status=post.status, staged=admin_post is not None)
    if post.status == PostStatus.PUBLISHED:
        announce(db, post)
    return post, admin_post


def create_draft(db: Session, actor: User, data: dict) -> Post:
    require_staff(actor)
    values = content_values(db, data)
    post = Post(
        author=data.get("author") or actor.name,
        author_id=actor.id,
        source=PostSource.MANUAL,
        status=PostStatus.DRAFT,
        is_scheduled=False,
        schedule_approved=False,
    )
    apply_content(post, values)
    db.add(post)
    db.flush()
    record_activity(
        db, ActivityType.CREATE, f"Saved draft: {post.title}", actor,
        details=post_event(post), post_id=post.id,
    )
    db.commit()
    db.refresh(post)
    return post


def update_post(db: Session, actor: User, post_id: int, data: dict) -> Tuple[Post, Optional[AdminPost]]:
    """
    Edit a post.

    CRUD-access actors edit in place. Admins without it edit drafts in place,
    but edits to live or scheduled posts become an update request.
    """
    post = get_post_or_404(db, post_id)
    require_owner_or_superadmin(actor, post)

    requested_status = data.get("status")
    if requested_status == PostStatus.PUBLISHED and actor.role != Role.SUPERADMIN:
        forbidden("Admins cannot publish through an update; use the publish action")
    if requested_status == PostStatus.ARCHIVED and actor.role != Role.SUPERADMIN and not actor.has_crud_access:
        forbidden("Archiving a post requires CRUD access")
    if requested_status in (PostStatus.PENDING_APPROVAL, PostStatus.SCHEDULED):
        bad_request("Use the submit or schedule actions to change this status")

    now = utcnow()
    values = content_values(db, data)

    if not actor.has_crud_access:
        if post.status == PostStatus.PENDING_APPROVAL:
            conflict("This post is awaiting approval and cannot be edited")
        if post.status in (PostStatus.PUBLISHED, PostStatus.SCHEDULED):
            ensure_nothing_outstanding(db, post)
            merged_time = values.get("publish_date_time", post.publish_date_time)
            approval_status = (
                ApprovalStatus.SCHEDULED_PENDING
                if post.status == PostStatus.SCHEDULED and is_future(merged_time, now)
                else ApprovalStatus.PENDING_REVIEW
            )
            admin_post = stage(db, actor, approval_status, values, post=post, is_update_request=True)
            record_activity(
                db, ActivityType.UPDATE_REQUEST, f"Requested update: {post.title}", actor,
                details=review_event(admin_post), post_id=post.id, admin_post_id=admin_post.id,
            )
            db.commit()
            db.refresh(post)
            return post, admin_post

    if post.status == PostStatus.SCHEDULED and "publish_date_time" in values:
        if not is_future(values["publish_date_time"], now):
            bad_request("Scheduled posts need a publish time in the future")

    was_published = post.status == PostStatus.PUBLISHED
    apply_content(post, values)
    if requested_status == PostStatus.PUBLISHED:
        if not was_published:
            mark_published(post, actor, now)
    elif requested_status:
        post.status = requested_status
        post.clear_schedule()

    record_activity(
        db, ActivityType.UPDATE, f"Updated post: {post.title}", actor,
        details=post_event(post), post_id=post.id,
    )
    db.commit()
    db.refresh(post)
    if post.status == PostStatus.PUBLISHED and not was_published:
        announce(db, post)
    return post, None


def publish_post(db: Session, actor: User, post_id: int) -> Tuple[Post, Optional[AdminPost]]:
    post = get_post_or_404(db, post_id)
    require_owner_or_superadmin(actor, post)
    if post.status == PostStatus.PUBLISHED:
        bad_request("Post is already published")
    if post.status == PostStatus.PENDING_APPROVAL:
        conflict("This post is already awaiting approval")

    now = utcnow()
    decision = decide_publication(actor.role, actor.crud_access, None, now)
    if decision.requires_staging:
        ensure_nothing_outstanding(db, post)
        post.status = PostStatus.PENDING_APPROVAL
        post.clear_schedule()
        admin_post = stage(db, actor, decision.approval_status, {"publish_date_time": None}, post=post)
        record_activity(
            db, ActivityType.APPROVAL_REQUEST, f"Requested publication: {post.title}", actor,
            details=review_event(admin_post), post_id=post.id, admin_post_id=admin_post.id,
        )
        db.commit()
        db.refresh(post)
        return post, admin_post

    mark_published(post, actor, now)
    record_activity(
        db, ActivityType.PUBLISH, f"Published post: {post.title}", actor,
        details=post_event(post), post_id=post.id,
    )
    db.commit()
    db.refresh(post)
    announce(db, post)
    return post, None


def schedule_post(db: Session, actor: User, post_id: int, publish_at: datetime) -> Tuple[Post, Optional[AdminPost]]:
    post = get_post_or_404(db, post_id)
    require_owner_or_superadmin(actor, post)

    now = utcnow()
    publish_at = to_utc_naive(publish_at)
    if not is_future(publish_at, now):
        bad_request("Scheduled time must be in the future")
    if post.status == PostStatus.PUBLISHED:
        bad_request("Post is already published")
    if post.status == PostStatus.PENDING_APPROVAL:
        conflict("This post is already awaiting approval")

    decision = decide_publication(actor.role, actor.crud_access, publish_at, now)
    post.publish_date_time = publish_at

    if decision.requires_staging:
        ensure_nothing_outstanding(db, post)
        post.status = decision.status
        post.is_scheduled = True
        post.schedule_approved = False
        admin_post = stage(db, actor, decision.approval_status, {}, post=post)
        record_activity(
            db, ActivityType.SCHEDULE_REQUEST, f"Requested schedule: {post.title}", actor,
            details=review_event(admin_post), post_id=post.id, admin_post_id=admin_post.id,
        )
        db.commit()
        db.refresh(post)
        return post, admin_post

    mark_scheduled(post, actor, now)
    record_activity(
        db, ActivityType.SCHEDULE, f"Scheduled post: {post.title}", actor,
        details=post_event(post), post_id=post.id,
    )
    db.commit()
    db.refresh(post)
    return post, None


def submit_for_approval(db: Session, actor: User, post_id: int) -> Tuple[Post, AdminPost]:
    post = get_post_or_404(db, post_id)
    require_staff(actor)
    if post.author_id != actor.id:
        forbidden("You can only submit your own posts")
    if post.status != PostStatus.DRAFT:
        bad_request("Only drafts can be submitted for approval")
    ensure_nothing_outstanding(db, post)

    future = is_future(post.publish_date_time, utcnow())
    post.status = PostStatus.PENDING_APPROVAL
    post.is_scheduled = future
    post.schedule_approved = False
    approval_status = ApprovalStatus.SCHEDULED_PENDING if future else ApprovalStatus.PENDING_REVIEW
    admin_post = stage(db, actor, approval_status, {}, post=post)
    record_activity(
        db, ActivityType.APPROVAL_REQUEST, f"Submitted for approval: {post.title}", actor,
        details=review_event(admin_post), post_id=post.id, admin_post_id=admin_post.id,
    )
    db.commit()
    db.refresh(post)
    return post, admin_post


def request_update(db: Session, actor: User, post_id: int, data: dict) -> AdminPost:
    """Stage proposed edits to one of the actor's posts for review."""
    post = get_post_or_404(db, post_id)
    require_staff(actor)
    if post.author_id != actor.id:
        forbidden("You can only request updates to your own posts")
    if post.status == PostStatus.PENDING_APPROVAL:
        conflict("This post is already awaiting approval")
    ensure_nothing_outstanding(db, post)

    values = content_values(db, data)
    merged_time = values.get("publish_date_time", post.publish_date_time)
    approval_status = (
        ApprovalStatus.SCHEDULED_PENDING
        if post.status == PostStatus.SCHEDULED and is_future(merged_time, utcnow())
        else ApprovalStatus.PENDING_REVIEW
    )
    admin_post = stage(db, actor, approval_status, values, post=post, is_update_request=True)
    record_activity(
        db, ActivityType.UPDATE_REQUEST, f"Requested update: {post.title}", actor,
        details=review_event(admin_post), post_id=post.id, admin_post_id=admin_post.id,
    )
    db.commit()
    db.refresh(admin_post)
    return admin_post


def cancel_schedule(db: Session, actor: User, post_id: int) -> Post:
    post = get_post_or_404(db, post_id)
    require_owner_or_superadmin(actor, post)

    pending = outstanding_submission(db, post.id, (ApprovalStatus.SCHEDULED_PENDING,))
    if not post.is_scheduled and post.status != PostStatus.SCHEDULED and pending is None:
        bad_request("Post is not scheduled")

    post.status = PostStatus.DRAFT
    post.clear_schedule()
    if pending is not None:
        pending.approval_status = ApprovalStatus.REJECTED
        pending.rejection_reason = "Schedule cancelled"

    record_activity(
        db, ActivityType.SCHEDULE_CANCELLED, f"Cancelled schedule: {post.title}", actor,
        details=post_event(post), post_id=post.id,
        admin_post_id=pending.id if pending is not None else None,
    )
    db.commit()
    db.refresh(post)
    return post


def delete_post(db: Session, actor: User, post_id: int):
    post = get_post_or_404(db, post_id)
    require_staff(actor)
    if actor.role != Role.SUPERADMIN:
        if not actor.has_crud_access:
            forbidden("CRUD access is required to delete posts")
        if post.author_id != actor.id:
            forbidden("You can only delete your own posts")

    record_activity(
        db, ActivityType.DELETE, f"Deleted post: {post.title}", actor,
        details=post_event(post), post_id=post.id,
    )
    db.delete(post)
    db.commit()
    logger.info("Post deleted", post_id=post_id, actor_id=actor.id)
