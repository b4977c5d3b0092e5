"""
RSS ingestion: turn feed items into posts, run configured feeds, and pick
which feeds are due on each heartbeat.
"""
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..config import get_settings
from ..logging_config import rss_logger
from ..models.post import Post, PostStatus, PostSource
from ..models.rss_feed import RSSFeed
from ..models.user import User
from ..schemas.rss import FeedItem
from ..timeutils import utcnow
from . import categories
from .activity_log import ActivityType, record_activity
from .notifications import notify_new_posts
from .rss_parser import FeedFetchError, fetch_and_parse

META_DESCRIPTION_LIMIT = 160


def find_existing(db: Session, item: FeedItem) -> Optional[Post]:
    """Match on guid or link, and on title unless title matching is switched off."""
    conditions = [Post.guid == item.guid]
    if item.link:
        conditions.append(Post.link == item.link)
    if get_settings().rss_dedupe_by_title:
        conditions.append(Post.title == item.title[:200])
    return db.query(Post).filter(or_(*conditions)).first()


def _matches_filter(item: FeedItem, category_filter: Optional[str]) -> bool:
    if not category_filter:
        return True
    wanted = category_filter.strip().lower()
    return any(category.lower() == wanted for category in item.categories)


def _fill_post(db: Session, post: Post, item: FeedItem, author: str, status: str, actor: Optional[User], feed: Optional[RSSFeed], now: datetime):
    settings = get_settings()
    category_name = item.categories[0] if item.categories else settings.rss_default_category
    category = categories.get_or_create(db, category_name, "Auto-created from RSS feed")

    post.title = item.title[:200]
    post.short_title = item.short_title[:100]
    post.body = item.content or item.description or item.title
    post.category_id = category.id
    post.tags = item.categories
    post.author = author[:100]
    if actor is not None:
        post.author_id = actor.id
    post.meta_title = item.title[:200]
    post.meta_description = item.description[:META_DESCRIPTION_LIMIT]
    post.image_url = item.image_url
    post.link = item.link
    post.guid = item.guid
    post.source = PostSource.RSS_FEED
    post.feed_id = feed.id if feed is not None else None
    post.status = status
    post.clear_schedule()
    if status == PostStatus.PUBLISHED:
        post.publish_date_time = item.published_at or now
        post.last_approved_at = now
        post.last_approved_by = actor.id if actor else None
    else:
        post.publish_date_time = item.published_at


def save_rss_items(
    db: Session,
    items: Iterable[FeedItem],
    actor: Optional[User] = None,
    save_as_draft: bool = False,
    force: bool = False,
    author_name: Optional[str] = None,
    feed: Optional[RSSFeed] = None,
    category_filter: Optional[str] = None,
) -> Dict:
    """
    Persist feed items as posts.

    Duplicates count as errors ("Post already exists") unless `force`, in
    which case the existing post is overwritten. Newly published posts are
    fanned out once the whole batch is saved.
    """
    settings = get_settings()
    author = author_name or (feed.brand_name if feed is not None else None) or settings.rss_default_brand
    status = PostStatus.DRAFT if save_as_draft else PostStatus.PUBLISHED
    now = utcnow()

    result = {"success": True, "saved": 0, "errors": 0, "saved_posts": [], "error_details": []}
    to_announce: List[Post] = []

    for item in items:
        if not _matches_filter(item, category_filter):
            continue
        try:
            existing = find_existing(db, item)
            if existing is not None and not force:
                result["errors"] += 1
                result["error_details"].append({"title": item.title, "error": "Post already exists"})
                continue

            post = existing if existing is not None else Post()
            was_published = existing is not None and existing.status == PostStatus.PUBLISHED
            _fill_post(db, post, item, author, status, actor, feed, now)
            if existing is None:
                db.add(post)
            db.commit()
        except Exception as e:
            db.rollback()
            result["errors"] += 1
            result["error_details"].append({"title": item.title, "error": str(e)})
            rss_logger.error("Failed to save feed item", error=e, title=item.title)
            continue

        result["saved"] += 1
        result["saved_posts"].append({"id": post.id, "title": post.title, "status": post.status})
        if post.status == PostStatus.PUBLISHED and not was_published:
            to_announce.append(post)

    if result["saved"] or result["errors"]:
        record_activity(
            db, ActivityType.RSS_IMPORT,
            f"Imported {result['saved']} post(s) from {feed.name if feed is not None else 'RSS'}",
            actor,
            details={
                "feed_id": feed.id if feed is not None else None,
                "feed_url": feed.url if feed is not None else None,
                "saved": result["saved"],
                "errors": result["errors"],
            },
        )
        db.commit()

    if to_announce:
        try:
            notify_new_posts(db, to_announce, feed)
        except Exception as e:
            db.rollback()
            rss_logger.error("Fan-out failed for imported posts", error=e, count=len(to_announce))

    rss_logger.info(
        "Feed items saved",
        feed_id=feed.id if feed is not None else None,
        saved=result["saved"],
        errors=result["errors"],
    )
    return result


def process_single_feed(db: Session, feed: RSSFeed, actor: Optional[User] = None, force: bool = False) -> Dict:
    """Fetch one configured feed, save its items and record the outcome on the feed."""
    now = utcnow()
    try:
        parsed = fetch_and_parse(feed.url)
    except FeedFetchError as e:
        feed.last_fetched_at = now
        feed.last_fetch_status = "error"
        feed.last_error_message = str(e)
        db.commit()
        rss_logger.warning("Feed run failed", feed_id=feed.id, url=feed.url, error_message=str(e))
        return {"success": False, "saved": 0, "errors": 0, "saved_posts": [], "error_details": [], "error": str(e)}

    result = save_rss_items(db, parsed["items"], actor=actor, force=force, author_name=feed.brand_name, feed=feed)

    feed.last_fetched_at = now
    feed.last_fetch_status = "success"
    feed.last_error_message = None
    feed.total_posts_saved = (feed.total_posts_saved or 0) + result["saved"]
    db.commit()
    return result


def due_feeds(db: Session, now: Optional[datetime] = None, limit: Optional[int] = None) -> List[RSSFeed]:
    """Active feeds whose interval has elapsed; never-fetched feeds first."""
    now = now or utcnow()
    feeds = db.query(RSSFeed).filter(RSSFeed.is_active.is_(True)).all()
    due = [
        feed for feed in feeds
        if feed.last_fetched_at is None
        or feed.last_fetched_at + timedelta(minutes=feed.fetch_interval_minutes or 60) <= now
    ]
    due.sort(key=lambda feed: (feed.last_fetched_at is not None, feed.last_fetched_at or datetime.min, feed.id))
    return due[:limit] if limit else due


def _run_feed(session_factory: Callable[[], Session], feed_id: int) -> Dict:
    db = session_factory()
    try:
        feed = db.query(RSSFeed).filter(RSSFeed.id == feed_id).first()
        if feed is None:
            return {"success": False, "saved": 0, "errors": 0, "error": "Feed not found"}
        return process_single_feed(db, feed)
    except Exception as e:
        db.rollback()
        rss_logger.error("Feed run crashed", error=e, feed_id=feed_id)
        feed = db.query(RSSFeed).filter(RSSFeed.id == feed_id).first()
        if feed is not None:
            feed.last_fetched_at = utcnow()
            feed.last_fetch_status = "error"
            feed.last_error_message = str(e)
            db.commit()
        return {"success": False, "saved": 0, "errors": 0, "error": str(e)}
    finally:
        db.close()


def process_due_feeds(
    session_factory: Callable[[], Session],
    now: Optional[datetime] = None,
    batch_size: Optional[int] = None,
) -> Dict:
    """Run the next batch of due feeds concurrently, one session per feed."""
    batch_size = batch_size or get_settings().rss_batch_size
    db = session_factory()
    try:
        feed_ids = [feed.id for feed in due_feeds(db, now, batch_size)]
    finally:
        db.close()

    summary = {"feeds": len(feed_ids), "succeeded": 0, "failed": 0, "saved": 0}
    if not feed_ids:
        return summary

    with ThreadPoolExecutor(max_workers=len(feed_ids)) as pool:
        futures = {pool.submit(_run_feed, session_factory, feed_id): feed_id for feed_id in feed_ids}
        for future in as_completed(futures):
            result = future.result()
            if result.get("success"):
                summary["succeeded"] += 1
            else:
                summary["failed"] += 1
            summary["saved"] += result.get("saved", 0)

    rss_logger.info("RSS heartbeat complete", **summary)
    return summary


def clear_history(db: Session, days: Optional[int] = None) -> int:
    """Delete imported posts, optionally only those older than `days`."""
    query = db.query(Post).filter(Post.source == PostSource.RSS_FEED)
    if days:
        query = query.filter(Post.created_at < utcnow() - timedelta(days=days))
    posts = query.all()
    for post in posts:
        db.delete(post)
    db.commit()
    rss_logger.info("Cleared RSS history", deleted=len(posts), days=days)
    return len(posts)
