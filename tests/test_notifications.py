"""
Tests for notification fan-out, in-app notifications, subscriptions and push.
"""
from datetime import timedelta
from types import SimpleNamespace

import pytest
from pywebpush import WebPushException

from newsdesk.config import get_settings
from newsdesk.models.notification import Notification
from newsdesk.models.post import Post
from newsdesk.models.push_subscription import PushSubscription
from newsdesk.models.rss_feed import RSSFeed
from newsdesk.models.subscription import NotificationSubscription
from newsdesk.services import in_app, web_push
from newsdesk.services.notifications import is_throttled, notify_post_published, resolve_subscribers
from newsdesk.timeutils import utcnow

from conftest import make_user, headers_for


def published_post(db, author, category, title="RBI holds repo rate"):
    post = Post(
        title=title,
        short_title="RBI holds",
        body="The central bank kept its policy rate unchanged.",
        category_id=category.id,
        author=author.name,
        author_id=author.id,
        status="published",
        publish_date_time=utcnow(),
    )
    db.add(post)
    db.commit()
    db.refresh(post)
    return post


def subscribe(db, user, kind="all", **fields):
    subscription = NotificationSubscription(user_id=user.id, subscription_type=kind, **fields)
    db.add(subscription)
    db.commit()
    return subscription


@pytest.fixture
def feed(db):
    feed = RSSFeed(name="Markets Wire", url="https://wire.example.com/rss", brand_name="Wire")
    db.add(feed)
    db.commit()
    db.refresh(feed)
    return feed


@pytest.fixture
def vapid(monkeypatch):
    settings = get_settings()
    monkeypatch.setattr(settings, "vapid_public_key", "test-public-key")
    monkeypatch.setattr(settings, "vapid_private_key", "test-private-key")
    return settings


class TestFanOut:
    """Subscriber resolution, throttling and delivery."""

    def test_subscriber_with_overlapping_interests_gets_one(self, db, superadmin, reader, category, feed):
        subscribe(db, reader, "all")
        subscribe(db, reader, "category", category_id=category.id)
        subscribe(db, reader, "feed", feed_id=feed.id, in_app=False, web_push=True)
        post = published_post(db, superadmin, category)

        subscribers = resolve_subscribers(db, post, feed.id)
        assert list(subscribers) == [reader.id]
        assert subscribers[reader.id].in_app is True
        assert subscribers[reader.id].web_push is True

        stats = notify_post_published(db, post)
        assert stats == {"notified": 1, "skipped": 0, "failed": 0, "total": 1}
        assert db.query(Notification).filter(Notification.user_id == reader.id).count() == 1

    def test_unrelated_subscriptions_are_ignored(self, db, superadmin, reader, category, feed):
        other = make_user(db, "other@example.com")
        subscribe(db, reader, "feed", feed_id=feed.id)
        subscribe(db, other, "all", is_active=False)
        post = published_post(db, superadmin, category)

        assert resolve_subscribers(db, post) == {}

    def test_inactive_user_is_ignored(self, db, superadmin, reader, category):
        subscribe(db, reader, "all")
        reader.is_active = False
        db.commit()
        post = published_post(db, superadmin, category)
        assert resolve_subscribers(db, post) == {}

    def test_feed_message(self, db, superadmin, reader, category, feed):
        subscribe(db, reader, "feed", feed_id=feed.id)
        post = published_post(db, superadmin, category)

        notify_post_published(db, post, feed)
        notification = db.query(Notification).one()
        assert notification.notification_type == "rss-new-post"
        assert notification.title == "New post from Wire"
        assert notification.feed_id == feed.id
        assert notification.extra_data["feed_name"] == "Markets Wire"

    def test_hourly_throttle(self, db, superadmin, reader, category, monkeypatch):
        monkeypatch.setattr(get_settings(), "max_notifications_per_hour", 2)
        subscribe(db, reader, "all")

        for i in range(3):
            stats = notify_post_published(db, published_post(db, superadmin, category, title=f"Story {i}"))

        assert stats["skipped"] == 1
        assert db.query(Notification).filter(Notification.user_id == reader.id).count() == 2
        assert is_throttled(db, reader.id) is True

    def test_daily_throttle(self, db, superadmin, reader, category, monkeypatch):
        monkeypatch.setattr(get_settings(), "max_notifications_per_hour", 3)
        monkeypatch.setattr(get_settings(), "max_notifications_per_day", 4)
        subscribe(db, reader, "all")
        for age in (timedelta(minutes=30), timedelta(hours=3), timedelta(hours=8), timedelta(hours=20)):
            in_app.create_notification(db, reader.id, "Earlier", "earlier story", "system")
            db.commit()
            latest = db.query(Notification).order_by(Notification.id.desc()).first()
            latest.created_at = utcnow() - age
            db.commit()

        stats = notify_post_published(db, published_post(db, superadmin, category))

        assert stats["skipped"] == 1
        assert stats["notified"] == 0
        assert db.query(Notification).filter(Notification.user_id == reader.id).count() == 4

    def test_old_notifications_do_not_count_towards_hourly_cap(self, db, reader, monkeypatch):
        monkeypatch.setattr(get_settings(), "max_notifications_per_hour", 1)
        in_app.create_notification(db, reader.id, "Old", "old", "system")
        db.commit()
        stale = db.query(Notification).one()
        stale.created_at = utcnow() - timedelta(hours=2)
        db.commit()

        assert is_throttled(db, reader.id) is False

    def test_throttling_can_be_disabled(self, db, reader, monkeypatch):
        monkeypatch.setattr(get_settings(), "notification_throttling_enabled", False)
        monkeypatch.setattr(get_settings(), "max_notifications_per_hour", 0)
        assert is_throttled(db, reader.id) is False

    def test_publish_through_api_notifies(self, client, db, reader, super_headers, post_payload):
        subscribe(db, reader, "all")
        response = client.post("/api/posts", headers=super_headers, json=post_payload)
        assert response.status_code == 201
        notification = db.query(Notification).one()
        assert notification.notification_type == "admin-post"
        assert notification.post_id == response.json()["data"]["id"]

    def test_staged_post_does_not_notify(self, client, db, reader, admin_headers, post_payload):
        subscribe(db, reader, "all")
        client.post("/api/posts", headers=admin_headers, json=post_payload)
        assert db.query(Notification).count() == 0


class TestWebPush:
    """Push delivery through pywebpush."""

    def _endpoint(self, db, user, name):
        subscription = PushSubscription(
            user_id=user.id, endpoint=f"https://push.example.com/{name}", p256dh="key", auth="secret",
        )
        db.add(subscription)
        db.commit()
        return subscription

    def test_disabled_without_vapid_keys(self, db, reader, monkeypatch):
        monkeypatch.setattr(get_settings(), "vapid_private_key", "")
        self._endpoint(db, reader, "a")
        assert web_push.send_to_user(db, reader.id, {"title": "x"}) == {"sent": 0, "failed": 0, "pruned": 0}

    def test_gone_endpoints_are_pruned(self, db, reader, vapid, monkeypatch):
        self._endpoint(db, reader, "live")
        self._endpoint(db, reader, "gone")
        self._endpoint(db, reader, "flaky")
        calls = []

        def fake_webpush(subscription_info, **kwargs):
            endpoint = subscription_info["endpoint"]
            calls.append(endpoint)
            if endpoint.endswith("gone"):
                raise WebPushException("Gone", response=SimpleNamespace(status_code=410))
            if endpoint.endswith("flaky"):
                raise WebPushException("Server error", response=SimpleNamespace(status_code=500))

        monkeypatch.setattr(web_push, "webpush", fake_webpush)

        result = web_push.send_to_user(db, reader.id, web_push.build_payload("t", "b", "/post/1", 1))
        assert result == {"sent": 1, "failed": 1, "pruned": 1}
        assert len(calls) == 3
        endpoints = {s.endpoint for s in db.query(PushSubscription).all()}
        assert endpoints == {"https://push.example.com/live", "https://push.example.com/flaky"}

    def test_push_only_subscriber(self, db, superadmin, reader, category, vapid, monkeypatch):
        subscribe(db, reader, "all", in_app=False, web_push=True)
        self._endpoint(db, reader, "live")
        monkeypatch.setattr(web_push, "webpush", lambda **kwargs: None)

        stats = notify_post_published(db, published_post(db, superadmin, category))
        assert stats["notified"] == 1
        assert db.query(Notification).count() == 0

    def test_push_routes(self, client, db, reader, reader_headers):
        response = client.get("/api/push/vapid-public-key")
        assert response.status_code == 404

        subscription = {"endpoint": "https://push.example.com/abc", "keys": {"p256dh": "k", "auth": "a"}}
        response = client.post("/api/push/subscribe", headers=reader_headers, json=subscription)
        assert response.status_code == 201

        # Same endpoint again updates instead of duplicating
        client.post("/api/push/subscribe", headers=reader_headers, json=subscription)
        listing = client.get("/api/push/subscriptions", headers=reader_headers).json()
        assert listing["count"] == 1

        response = client.post("/api/push/unsubscribe", json={"endpoint": subscription["endpoint"]})
        assert response.status_code == 200
        assert db.query(PushSubscription).count() == 0

    def test_test_push_requires_configuration(self, client, reader_headers, monkeypatch):
        monkeypatch.setattr(get_settings(), "vapid_private_key", "")
        response = client.post("/api/push/test", headers=reader_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "PUSH_DISABLED"


class TestInAppEndpoints:
    """In-app notification routes."""

    def _notify(self, db, user, count=2):
        for i in range(count):
            in_app.create_notification(db, user.id, f"Title {i}", "Body", "system")
        db.commit()

    def test_requires_auth(self, client):
        assert client.get("/api/notifications/in-app").status_code == 401

    def test_list_and_count(self, client, db, reader, reader_headers):
        self._notify(db, reader, 3)
        body = client.get("/api/notifications/in-app", headers=reader_headers).json()
        assert body["total"] == 3
        assert body["unread_count"] == 3

        count = client.get("/api/notifications/in-app/count", headers=reader_headers).json()
        assert count["data"]["unread_count"] == 3

    def test_mark_read_and_read_all(self, client, db, reader, reader_headers):
        self._notify(db, reader, 3)
        first = db.query(Notification).first()

        response = client.put(f"/api/notifications/in-app/{first.id}/read", headers=reader_headers)
        assert response.json()["data"]["is_read"] is True

        response = client.put("/api/notifications/in-app/read-all", headers=reader_headers)
        assert response.json()["data"]["updated"] == 2
        assert in_app.unread_count(db, reader.id) == 0

    def test_cannot_touch_someone_elses(self, client, db, reader):
        self._notify(db, reader, 1)
        other = make_user(db, "other@example.com")
        notification = db.query(Notification).first()
        response = client.delete(f"/api/notifications/in-app/{notification.id}", headers=headers_for(other))
        assert response.status_code == 404

    def test_delete(self, client, db, reader, reader_headers):
        self._notify(db, reader, 1)
        notification = db.query(Notification).first()
        response = client.delete(f"/api/notifications/in-app/{notification.id}", headers=reader_headers)
        assert response.status_code == 200
        assert db.query(Notification).count() == 0

    def test_cleanup(self, db, reader):
        self._notify(db, reader, 3)
        old_read, old_unread, fresh = db.query(Notification).order_by(Notification.id).all()
        old_read.is_read = True
        old_read.created_at = utcnow() - timedelta(days=get_settings().delete_read_after_days + 1)
        old_unread.created_at = utcnow() - timedelta(days=get_settings().delete_unread_after_days + 1)
        db.commit()

        assert in_app.cleanup_notifications(db) == 2
        assert db.query(Notification).one().id == fresh.id


class TestSubscriptionEndpoints:
    """Notification subscriptions."""

    def test_subscribe_unsubscribe_reactivate(self, client, db, reader_headers, category):
        payload = {"subscription_type": "category", "category_id": category.id}
        created = client.post("/api/rss-subscriptions", headers=reader_headers, json=payload)
        assert created.status_code == 201
        subscription_id = created.json()["data"]["id"]

        client.delete(f"/api/rss-subscriptions/{subscription_id}", headers=reader_headers)
        assert client.get("/api/rss-subscriptions", headers=reader_headers).json()["count"] == 0

        again = client.post(
            "/api/rss-subscriptions",
            headers=reader_headers,
            json={**payload, "channels": {"in_app": True, "web_push": True}},
        )
        assert again.json()["data"]["id"] == subscription_id
        assert again.json()["data"]["channels"]["web_push"] is True
        assert db.query(NotificationSubscription).count() == 1

    def test_feed_subscription_needs_valid_feed(self, client, reader_headers):
        response = client.post(
            "/api/rss-subscriptions", headers=reader_headers, json={"subscription_type": "feed", "feed_id": 99},
        )
        assert response.status_code == 400

    def test_update_channels(self, client, reader_headers):
        created = client.post("/api/rss-subscriptions", headers=reader_headers, json={}).json()["data"]
        response = client.put(
            f"/api/rss-subscriptions/{created['id']}",
            headers=reader_headers,
            json={"channels": {"in_app": False, "web_push": True, "email": False}},
        )
        assert response.json()["data"]["channels"] == {"in_app": False, "web_push": True, "email": False}

    def test_available_feeds(self, client, reader_headers, feed):
        body = client.get("/api/rss-subscriptions/available-feeds", headers=reader_headers).json()
        assert body["data"][0]["brand_name"] == "Wire"
