"""
Tests for scheduled publishing and the scheduler endpoints.
"""
from datetime import timedelta

import pytest

from newsdesk.models.activity import Activity
from newsdesk.models.notification import Notification
from newsdesk.models.post import Post
from newsdesk.models.subscription import NotificationSubscription
from newsdesk.services.scheduled_publisher import due_posts, publish_due_posts
from newsdesk.timeutils import utcnow
from newsdesk.worker.scheduler import SingleFlight, TaskScheduler, task_scheduler


def scheduled_post(db, author, category, publish_at, approved=True, title="Quarterly results preview"):
    post = Post(
        title=title,
        short_title="Results preview",
        body="What to expect from this week's earnings.",
        category_id=category.id,
        author=author.name,
        author_id=author.id,
        status="scheduled",
        publish_date_time=publish_at,
        is_scheduled=True,
        schedule_approved=approved,
        schedule_approved_by=author.id if approved else None,
    )
    db.add(post)
    db.commit()
    db.refresh(post)
    return post


@pytest.fixture
def now():
    return utcnow().replace(microsecond=0)


class TestScheduledPublisher:
    """The publish pass over due scheduled posts."""

    def test_due_window_boundaries(self, db, superadmin, category, now):
        on_time = scheduled_post(db, superadmin, category, now)
        edge = scheduled_post(db, superadmin, category, now - timedelta(minutes=30))
        scheduled_post(db, superadmin, category, now - timedelta(minutes=31))
        scheduled_post(db, superadmin, category, now + timedelta(seconds=1))

        due = due_posts(db, now, 30)
        assert [p.id for p in due] == [edge.id, on_time.id]

    def test_unapproved_schedule_is_ignored(self, db, superadmin, category, now):
        scheduled_post(db, superadmin, category, now - timedelta(minutes=1), approved=False)
        assert publish_due_posts(db, now=now) == 0

    def test_future_post_stays_scheduled(self, db, superadmin, category, now):
        post = scheduled_post(db, superadmin, category, now + timedelta(minutes=5))
        assert publish_due_posts(db, now=now) == 0
        db.refresh(post)
        assert post.status == "scheduled"

    def test_stale_post_is_skipped(self, db, superadmin, category, now):
        post = scheduled_post(db, superadmin, category, now - timedelta(minutes=45))
        assert publish_due_posts(db, now=now) == 0
        db.refresh(post)
        assert post.status == "scheduled"

    def test_publishes_due_post(self, db, superadmin, category, now):
        scheduled_time = now - timedelta(minutes=3)
        post = scheduled_post(db, superadmin, category, scheduled_time)

        assert publish_due_posts(db, now=now) == 1
        db.refresh(post)
        assert post.status == "published"
        assert post.publish_date_time == now
        assert post.is_scheduled is False
        assert post.schedule_approved is False
        assert post.last_approved_by == superadmin.id

        activity = db.query(Activity).filter(Activity.activity_type == "auto_publish").one()
        assert activity.user_id is None
        assert activity.post_id == post.id
        assert activity.details["automated"] is True
        assert activity.details["delay_minutes"] == 3

    def test_second_pass_publishes_nothing(self, db, superadmin, category, now):
        scheduled_post(db, superadmin, category, now - timedelta(minutes=1))
        assert publish_due_posts(db, now=now) == 1
        assert publish_due_posts(db, now=now) == 0

    def test_subscribers_are_notified(self, db, superadmin, reader, category, now):
        db.add(NotificationSubscription(user_id=reader.id, subscription_type="all", in_app=True))
        db.commit()
        post = scheduled_post(db, superadmin, category, now - timedelta(minutes=1))

        publish_due_posts(db, now=now)

        notification = db.query(Notification).filter(Notification.user_id == reader.id).one()
        assert notification.post_id == post.id
        assert notification.notification_type == "admin-post"
        assert notification.title == f"New Post: {post.title}"

    def test_fanout_failure_does_not_undo_publish(self, db, superadmin, category, now, monkeypatch):
        def explode(*args, **kwargs):
            raise RuntimeError("push service down")

        monkeypatch.setattr("newsdesk.services.scheduled_publisher.notify_post_published", explode)
        post = scheduled_post(db, superadmin, category, now - timedelta(minutes=1))

        assert publish_due_posts(db, now=now) == 1
        db.refresh(post)
        assert post.status == "published"
        assert db.query(Activity).filter(Activity.activity_type == "auto_publish").count() == 1


class TestSingleFlight:
    """Overlap guard for background jobs."""

    def test_skips_overlapping_run(self):
        guard = SingleFlight("publish")
        inner_results = []

        def outer():
            inner_results.append(guard.run(lambda: "inner"))
            return "outer"

        assert guard.run(outer) == "outer"
        assert inner_results == [None]
        assert guard.last_result == "outer"
        assert guard.running is False

    def test_releases_after_error(self):
        guard = SingleFlight("rss")

        def fail():
            raise ValueError("boom")

        with pytest.raises(ValueError):
            guard.run(fail)
        assert guard.running is False
        assert guard.run(lambda: 1) == 1

    def test_status_when_stopped(self):
        status = TaskScheduler().status()
        assert status["running"] is False
        assert set(status["jobs"]) == {"publish", "rss", "cleanup"}
        assert status["jobs"]["publish"]["next_run"] is None


class TestSchedulerEndpoints:
    """Scheduler API."""

    def test_trigger_requires_superadmin(self, client, crud_headers):
        response = client.post("/api/scheduler/trigger-auto-publish", headers=crud_headers)
        assert response.status_code == 403

    def test_trigger_auto_publish(self, client, db, superadmin, super_headers, category):
        post = scheduled_post(db, superadmin, category, utcnow() - timedelta(minutes=2))
        response = client.post("/api/scheduler/trigger-auto-publish", headers=super_headers)
        assert response.status_code == 200
        assert response.json()["data"]["published"] == 1
        db.refresh(post)
        assert post.status == "published"

    def test_trigger_conflicts_while_running(self, client, super_headers):
        guard = task_scheduler.guards["publish"]
        guard._lock.acquire()
        try:
            response = client.post("/api/scheduler/trigger-auto-publish", headers=super_headers)
        finally:
            guard._lock.release()
        assert response.status_code == 409

    def test_scheduled_posts_listing(self, client, db, crud_admin, crud_headers, category):
        scheduled_post(db, crud_admin, category, utcnow() + timedelta(hours=1))
        response = client.get("/api/scheduler/posts", headers=crud_headers)
        assert response.status_code == 200
        assert response.json()["count"] == 1

    def test_cancel_scheduled_post(self, client, db, crud_admin, crud_headers, category):
        post = scheduled_post(db, crud_admin, category, utcnow() + timedelta(hours=1))
        response = client.delete(f"/api/scheduler/posts/{post.id}", headers=crud_headers)
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "draft"

    def test_update_timezone(self, client, admin, admin_headers, db):
        response = client.put("/api/scheduler/timezone", headers=admin_headers, json={"timezone": "Asia/Kolkata"})
        assert response.status_code == 200
        db.refresh(admin)
        assert admin.timezone == "Asia/Kolkata"

        response = client.put("/api/scheduler/timezone", headers=admin_headers, json={"timezone": "Mars/Olympus"})
        assert response.status_code == 400

    def test_status(self, client, admin_headers):
        response = client.get("/api/scheduler/status", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["data"]["running"] is False
