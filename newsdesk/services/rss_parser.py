"""
RSS / Atom fetching and item normalisation.

Fetching goes through requests so the timeout and user agent are ours;
feedparser only ever sees the downloaded bytes.
"""
import html
import re
import uuid
from datetime import datetime
from typing import List, Optional

import feedparser
import requests

from ..config import get_settings
from ..logging_config import rss_logger
from ..schemas.rss import FeedItem

TAG_RE = re.compile(r"<[^>]*>")
SPACE_RE = re.compile(r"\s+")
IMG_RE = re.compile(r"<img[^>]+src=[\"']([^\"']+)[\"']", re.IGNORECASE)

SHORT_TITLE_LIMIT = 100
DESCRIPTION_LIMIT = 300


class FeedFetchError(Exception):
    """The feed could not be downloaded or is not a feed."""


def strip_html(text: str) -> str:
    return SPACE_RE.sub(" ", html.unescape(TAG_RE.sub(" ", text or ""))).strip()


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3].rstrip() + "..."


def fetch_feed(url: str, timeout: Optional[int] = None) -> bytes:
    settings = get_settings()
    try:
        response = requests.get(
            url,
            timeout=timeout or settings.rss_fetch_timeout,
            headers={
                "User-Agent": settings.rss_user_agent,
                "Accept": "application/rss+xml, application/atom+xml, application/xml, text/xml",
            },
        )
        response.raise_for_status()
    except requests.RequestException as e:
        rss_logger.warning("Feed fetch failed", url=url, error_message=str(e))
        raise FeedFetchError(f"Failed to fetch feed: {e}") from e
    return response.content


def _entry_content(entry) -> str:
    # content:encoded / atom content first, then description or summary
    for block in entry.get("content") or []:
        if block.get("value"):
            return block["value"]
    return entry.get("description") or entry.get("summary") or ""


def _entry_image(entry, content: str) -> Optional[str]:
    for media in entry.get("media_content") or []:
        url = media.get("url")
        if url and (media.get("medium") == "image" or (media.get("type") or "image/").startswith("image/")):
            return url
    for thumb in entry.get("media_thumbnail") or []:
        if thumb.get("url"):
            return thumb["url"]
    for enclosure in entry.get("enclosures") or []:
        if (enclosure.get("type") or "").startswith("image/"):
            return enclosure.get("href") or enclosure.get("url")
    match = IMG_RE.search(content or "")
    return match.group(1) if match else None


def _entry_date(entry) -> Optional[datetime]:
    parsed = entry.get("published_parsed") or entry.get("updated_parsed")
    if not parsed:
        return None
    # feedparser normalises to UTC
    return datetime(*parsed[:6])


def normalize_entry(entry) -> FeedItem:
    title = strip_html(entry.get("title") or "") or "Untitled"
    content = _entry_content(entry)
    description = truncate(strip_html(entry.get("description") or entry.get("summary") or content), DESCRIPTION_LIMIT)
    link = entry.get("link") or None
    categories = []
    for tag in entry.get("tags") or []:
        term = html.unescape(tag.get("term") or "").strip()
        if term and term not in categories:
            categories.append(term)

    return FeedItem(
        title=title,
        short_title=truncate(title, SHORT_TITLE_LIMIT),
        description=description,
        content=content,
        link=link,
        guid=entry.get("id") or link or str(uuid.uuid4()),
        categories=categories,
        author=entry.get("author") or None,
        published_at=_entry_date(entry),
        image_url=_entry_image(entry, content),
    )


def parse_feed(content) -> dict:
    """Parse raw feed bytes into feed metadata plus normalised items."""
    parsed = feedparser.parse(content)
    if parsed.bozo and not parsed.entries:
        raise FeedFetchError(f"Invalid feed: {parsed.get('bozo_exception')}")

    feed = parsed.get("feed", {})
    items: List[FeedItem] = [normalize_entry(entry) for entry in parsed.entries]
    return {
        "title": feed.get("title"),
        "description": feed.get("subtitle") or feed.get("description"),
        "link": feed.get("link"),
        "items": items,
    }


def fetch_and_parse(url: str) -> dict:
    return parse_feed(fetch_feed(url))
