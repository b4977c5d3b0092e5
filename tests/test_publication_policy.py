"""
Tests for the publish/schedule decision table.
"""
from datetime import datetime, timedelta

import pytest

from newsdesk.models.admin_post import ApprovalStatus
from newsdesk.models.post import PostStatus
from newsdesk.responses import ApiException
from newsdesk.services.publication_policy import decide_publication

NOW = datetime(2026, 3, 2, 9, 30)
FUTURE = NOW + timedelta(hours=2)


class TestDecidePublication:
    """Each row of the role x CRUD access x target time table."""

    @pytest.mark.parametrize("role,crud", [("superadmin", False), ("superadmin", True), ("admin", True)])
    def test_direct_publish_now(self, role, crud):
        decision = decide_publication(role, crud, None, NOW)
        assert decision.status == PostStatus.PUBLISHED
        assert decision.requires_staging is False
        assert decision.approval_status is None

    @pytest.mark.parametrize("role,crud", [("superadmin", False), ("admin", True)])
    def test_direct_schedule(self, role, crud):
        decision = decide_publication(role, crud, FUTURE, NOW)
        assert decision.status == PostStatus.SCHEDULED
        assert decision.is_scheduled is True
        assert decision.schedule_approved is True
        assert decision.requires_staging is False

    def test_restricted_admin_now_is_staged_for_review(self):
        decision = decide_publication("admin", False, None, NOW)
        assert decision.status == PostStatus.PENDING_APPROVAL
        assert decision.requires_staging is True
        assert decision.approval_status == ApprovalStatus.PENDING_REVIEW

    def test_restricted_admin_future_is_staged_as_schedule(self):
        decision = decide_publication("admin", False, FUTURE, NOW)
        assert decision.status == PostStatus.PENDING_APPROVAL
        assert decision.requires_staging is True
        assert decision.approval_status == ApprovalStatus.SCHEDULED_PENDING
        assert decision.schedule_approved is False

    def test_past_time_counts_as_now(self):
        decision = decide_publication("admin", True, NOW - timedelta(minutes=5), NOW)
        assert decision.status == PostStatus.PUBLISHED

    def test_reader_is_refused(self):
        with pytest.raises(ApiException) as exc:
            decide_publication("user", True, None, NOW)
        assert exc.value.status_code == 403
