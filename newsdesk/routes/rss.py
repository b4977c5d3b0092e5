"""
RSS routes: preview, manual import, history and feed configuration.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from ..config import get_settings
from ..database import get_db
from ..models.post import PostSource
from ..models.rss_feed import RSSFeed
from ..models.user import User
from ..auth import get_staff_user, get_superadmin
from ..schemas.rss import ParseRequest, SaveRequest, FeedConfigCreate, FeedConfigUpdate
from ..services import posts as post_service
from ..services.rss_ingest import save_rss_items, process_single_feed, clear_history
from ..services.rss_parser import FeedFetchError, fetch_and_parse
from ..responses import success, paginated, bad_request, not_found

settings = get_settings()

router = APIRouter(prefix="/api/rss", tags=["rss"])

PREVIEW_LIMIT = 20


def _get_feed(db: Session, feed_id: int) -> RSSFeed:
    feed = db.query(RSSFeed).filter(RSSFeed.id == feed_id).first()
    if not feed:
        not_found("RSS feed")
    return feed


@router.post("/parse")
def parse_feed(
    data: ParseRequest,
    current_user: User = Depends(get_staff_user),
):
    """Fetch a feed and preview its first items without saving anything."""
    try:
        parsed = fetch_and_parse(str(data.url))
    except FeedFetchError as e:
        bad_request(str(e), "FEED_ERROR")

    items = parsed["items"]
    return success(
        {
            "feed": {
                "title": parsed["title"],
                "description": parsed["description"],
                "link": parsed["link"],
            },
            "items": [item.model_dump(mode="json") for item in items[:PREVIEW_LIMIT]],
            "total_items": len(items),
        },
        f"Parsed {len(items)} item(s)",
    )


@router.post("/save")
def save_items(
    data: SaveRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_staff_user),
):
    """Import items, either posted directly or fetched from `url`."""
    items = data.items
    if items is None:
        if data.url is None:
            bad_request("Provide either a feed url or items to save")
        try:
            items = fetch_and_parse(str(data.url))["items"]
        except FeedFetchError as e:
            bad_request(str(e), "FEED_ERROR")

    result = save_rss_items(
        db,
        items,
        actor=current_user,
        save_as_draft=data.save_as_draft,
        force=data.force,
        author_name=data.author,
        category_filter=data.category_filter,
    )
    return success(result, f"Saved {result['saved']} post(s), {result['errors']} error(s)")


@router.get("/history")
def get_history(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_staff_user),
):
    items, total = post_service.list_posts(db, current_user, source=PostSource.RSS_FEED, page=page, limit=limit)
    return paginated([p.to_dict() for p in items], total, page, limit)


@router.delete("/clear-history")
def delete_history(
    days: Optional[int] = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_superadmin),
):
    deleted = clear_history(db, days)
    return success({"deleted": deleted}, f"Deleted {deleted} imported post(s)")


# ============================================================
# FEED CONFIGURATION
# ============================================================

@router.get("/configs")
def list_configs(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_staff_user),
):
    feeds = db.query(RSSFeed).order_by(RSSFeed.created_at.desc()).all()
    return success([f.to_dict() for f in feeds], count=len(feeds))


@router.post("/configs", status_code=201)
def create_config(
    data: FeedConfigCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_staff_user),
):
    url = str(data.url)
    if db.query(RSSFeed).filter(RSSFeed.url == url).first():
        bad_request("A feed with this URL already exists")

    feed = RSSFeed(
        name=data.name,
        url=url,
        brand_name=data.brand_name or data.name[:100],
        description=data.description,
        is_active=data.is_active,
        fetch_interval_minutes=data.fetch_interval_minutes or settings.rss_default_interval_minutes,
        created_by=current_user.id,
    )
    db.add(feed)
    db.commit()
    db.refresh(feed)
    return success(feed.to_dict(), "Feed configuration created")


@router.get("/configs/{feed_id}")
def get_config(
    feed_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_staff_user),
):
    return success(_get_feed(db, feed_id).to_dict())


@router.put("/configs/{feed_id}")
def update_config(
    feed_id: int,
    data: FeedConfigUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_staff_user),
):
    feed = _get_feed(db, feed_id)
    changes = data.model_dump(exclude_unset=True)

    if changes.get("url") is not None:
        url = str(changes.pop("url"))
        existing = db.query(RSSFeed).filter(RSSFeed.url == url).first()
        if existing and existing.id != feed.id:
            bad_request("A feed with this URL already exists")
        feed.url = url
    for field, value in changes.items():
        if value is not None or field == "description":
            setattr(feed, field, value)

    db.commit()
    db.refresh(feed)
    return success(feed.to_dict(), "Feed configuration updated")


@router.delete("/configs/{feed_id}")
def delete_config(
    feed_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_staff_user),
):
    db.delete(_get_feed(db, feed_id))
    db.commit()
    return success(message="Feed configuration deleted")


@router.post("/configs/{feed_id}/run")
def run_config(
    feed_id: int,
    force: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_staff_user),
):
    """Run one feed now and report what was imported."""
    result = process_single_feed(db, _get_feed(db, feed_id), actor=current_user, force=force)
    if not result["success"]:
        bad_request(result["error"], "FEED_ERROR", {"feed_id": feed_id})
    return success(result, f"Saved {result['saved']} post(s), {result['errors']} error(s)")
