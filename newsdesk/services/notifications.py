"""
Notification fan-out for newly published posts.

Resolves who cares about a post (everyone subscribed to "all", to the
post's source feed, or to its category), applies per-subscriber hourly and
daily throttles, then delivers on each channel the subscriber enabled.
Failures are isolated per subscriber and per channel.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Iterable, Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from ..config import get_settings
from ..logging_config import notify_logger
from ..models.notification import Notification
from ..models.post import Post
from ..models.rss_feed import RSSFeed
from ..models.subscription import NotificationSubscription, SubscriptionType
from ..models.user import User
from ..timeutils import utcnow
from . import in_app, web_push

RSS_NEW_POST = "rss-new-post"
ADMIN_POST = "admin-post"


@dataclass
class Channels:
    in_app: bool = False
    web_push: bool = False
    email: bool = False

    def merge(self, subscription: NotificationSubscription):
        self.in_app = self.in_app or bool(subscription.in_app)
        self.web_push = self.web_push or bool(subscription.web_push)
        self.email = self.email or bool(subscription.email)


def resolve_subscribers(db: Session, post: Post, feed_id: Optional[int] = None) -> Dict[int, Channels]:
    """Map each interested active user to the union of their enabled channels."""
    conditions = [NotificationSubscription.subscription_type == SubscriptionType.ALL]
    if feed_id:
        conditions.append(and_(
            NotificationSubscription.subscription_type == SubscriptionType.FEED,
            NotificationSubscription.feed_id == feed_id,
        ))
    if post.category_id:
        conditions.append(and_(
            NotificationSubscription.subscription_type == SubscriptionType.CATEGORY,
            NotificationSubscription.category_id == post.category_id,
        ))

    subscriptions = (
        db.query(NotificationSubscription)
        .join(User, User.id == NotificationSubscription.user_id)
        .filter(
            NotificationSubscription.is_active.is_(True),
            User.is_active.is_(True),
            or_(*conditions),
        )
        .order_by(NotificationSubscription.id)
        .all()
    )

    subscribers: Dict[int, Channels] = {}
    for subscription in subscriptions:
        subscribers.setdefault(subscription.user_id, Channels()).merge(subscription)
    return subscribers


def is_throttled(db: Session, user_id: int, now: Optional[datetime] = None) -> bool:
    """True once the user hit the hourly or daily cap of in-app notifications."""
    settings = get_settings()
    if not settings.notification_throttling_enabled:
        return False
    now = now or utcnow()

    def sent_since(since: datetime) -> int:
        return db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.created_at >= since,
        ).count()

    if sent_since(now - timedelta(hours=1)) >= settings.max_notifications_per_hour:
        return True
    return sent_since(now - timedelta(days=1)) >= settings.max_notifications_per_day


def _message_for(post: Post, feed: Optional[RSSFeed]) -> dict:
    if feed is not None:
        return {
            "title": f"New post from {feed.brand_name}",
            "message": post.short_title or post.title,
            "type": RSS_NEW_POST,
            "metadata": {
                "post_title": post.title,
                "post_category": post.category.name if post.category else None,
                "feed_name": feed.name,
                "post_image": post.image_url,
                "post_link": f"/post/{post.id}",
            },
        }
    body = post.body or ""
    return {
        "title": f"New Post: {post.title}",
        "message": body[:150] + ("..." if len(body) > 150 else ""),
        "type": ADMIN_POST,
        "metadata": {
            "post_title": post.title,
            "post_category": post.category.name if post.category else None,
            "post_image": post.image_url,
            "post_link": f"/post/{post.id}",
        },
    }


def _deliver(db: Session, user_id: int, channels: Channels, post: Post, feed: Optional[RSSFeed], content: dict) -> bool:
    delivered = False

    if channels.in_app:
        in_app.create_notification(
            db,
            user_id=user_id,
            title=content["title"],
            message=content["message"],
            notification_type=content["type"],
            post_id=post.id,
            feed_id=feed.id if feed is not None else None,
            extra_data=content["metadata"],
        )
        db.commit()
        delivered = True

    if channels.web_push:
        try:
            payload = web_push.build_payload(
                content["title"], content["message"], f"/post/{post.id}", post.id, content["type"]
            )
            result = web_push.send_to_user(db, user_id, payload)
            delivered = delivered or result["sent"] > 0
        except Exception as e:
            db.rollback()
            notify_logger.error("Web push channel failed", error=e, user_id=user_id, post_id=post.id)

    if channels.email:
        # Email transport is not wired up
        notify_logger.info("Email channel not delivered", user_id=user_id, post_id=post.id)

    return delivered


def notify_post_published(db: Session, post: Post, feed: Optional[RSSFeed] = None) -> Dict[str, int]:
    """Fan a single published post out to its subscribers."""
    content = _message_for(post, feed)
    subscribers = resolve_subscribers(db, post, feed.id if feed is not None else None)
    stats = {"notified": 0, "skipped": 0, "failed": 0, "total": len(subscribers)}
    now = utcnow()

    for user_id, channels in subscribers.items():
        if is_throttled(db, user_id, now):
            stats["skipped"] += 1
            notify_logger.debug("Notification throttled", user_id=user_id, post_id=post.id)
            continue
        try:
            if _deliver(db, user_id, channels, post, feed, content):
                stats["notified"] += 1
            else:
                stats["skipped"] += 1
        except Exception as e:
            db.rollback()
            stats["failed"] += 1
            notify_logger.error("Notification delivery failed", error=e, user_id=user_id, post_id=post.id)

    notify_logger.info(
        "Fan-out complete",
        post_id=post.id,
        feed_id=feed.id if feed is not None else None,
        **stats,
    )
    return stats


def notify_new_posts(db: Session, posts: Iterable[Post], feed: Optional[RSSFeed] = None) -> Dict[str, int]:
    """Fan out a batch, e.g. everything one RSS run saved."""
    totals = {"notified": 0, "skipped": 0, "failed": 0, "total": 0}
    for post in posts:
        stats = notify_post_published(db, post, feed)
        for key in totals:
            totals[key] += stats[key]
    return totals


def announce(db: Session, post: Post, feed: Optional[RSSFeed] = None) -> Optional[Dict[str, int]]:
    """Fan out after a publish has been committed; never raises."""
    try:
        return notify_post_published(db, post, feed)
    except Exception as e:
        db.rollback()
        notify_logger.error("Fan-out failed", error=e, post_id=post.id)
        return None
