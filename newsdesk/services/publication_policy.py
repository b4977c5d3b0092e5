"""
Who may publish what, and when staging is required.

`decide_publication` is the single place that maps an actor's role, CRUD
access flag and requested publish time to the post's next status. It does
no I/O so it can be exercised directly in tests.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..models.admin_post import ApprovalStatus
from ..models.post import PostStatus
from ..models.user import Role
from ..responses import forbidden


@dataclass(frozen=True)
class Decision:
    status: str
    requires_staging: bool
    approval_status: Optional[str] = None
    is_scheduled: bool = False
    schedule_approved: bool = False


def is_future(publish_at: Optional[datetime], now: datetime) -> bool:
    return publish_at is not None and publish_at > now


def decide_publication(
    role: str,
    crud_access: bool,
    publish_at: Optional[datetime],
    now: datetime,
) -> Decision:
    """
    Decide the outcome of a publish or schedule request.

    | actor              | target time | status           | staging           |
    |--------------------|-------------|------------------|-------------------|
    | superadmin         | now         | published        | -                 |
    | superadmin         | future      | scheduled        | -                 |
    | admin + crud       | now         | published        | -                 |
    | admin + crud       | future      | scheduled        | -                 |
    | admin, no crud     | now         | pending_approval | pending_review    |
    | admin, no crud     | future      | pending_approval | scheduled_pending |
    """
    if role not in Role.STAFF:
        forbidden("Only admins can publish content")

    future = is_future(publish_at, now)
    direct = role == Role.SUPERADMIN or bool(crud_access)

    if direct:
        if future:
            return Decision(
                status=PostStatus.SCHEDULED,
                requires_staging=False,
                is_scheduled=True,
                schedule_approved=True,
            )
        return Decision(status=PostStatus.PUBLISHED, requires_staging=False)

    return Decision(
        status=PostStatus.PENDING_APPROVAL,
        requires_staging=True,
        approval_status=ApprovalStatus.SCHEDULED_PENDING if future else ApprovalStatus.PENDING_REVIEW,
        is_scheduled=future,
        schedule_approved=False,
    )
