"""
Post model: the canonical published or draft article.
"""
from sqlalchemy import Column, Integer, String, DateTime, Text, JSON, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from ..database import Base
from ..timeutils import utcnow


class PostStatus:
    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    SCHEDULED = "scheduled"
    PUBLISHED = "published"
    ARCHIVED = "archived"

    ALL = (DRAFT, PENDING_APPROVAL, SCHEDULED, PUBLISHED, ARCHIVED)


class PostSource:
    MANUAL = "manual"
    RSS_FEED = "rss_feed"


# Editorial fields shared by Post and AdminPost
CONTENT_FIELDS = (
    "title",
    "short_title",
    "body",
    "category_id",
    "tags",
    "region",
    "publish_date_time",
    "is_sponsored",
    "meta_title",
    "meta_description",
    "image_url",
)


class Post(Base):
    __tablename__ = "posts"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    short_title = Column(String(100), nullable=False)
    body = Column(Text, nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False, index=True)
    tags = Column(JSON, default=list)
    region = Column(String(100), default="India")
    author = Column(String(100), nullable=False)
    author_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    publish_date_time = Column(DateTime, nullable=True, index=True)
    status = Column(String(20), default=PostStatus.DRAFT, nullable=False, index=True)
    is_sponsored = Column(Boolean, default=False)
    meta_title = Column(String(200), nullable=True)
    meta_description = Column(String(300), nullable=True)
    image_url = Column(String(1000), nullable=True)
    views = Column(Integer, default=0)

    is_scheduled = Column(Boolean, default=False, nullable=False, index=True)
    schedule_approved = Column(Boolean, default=False, nullable=False)
    schedule_approved_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    schedule_approved_at = Column(DateTime, nullable=True)
    last_approved_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    last_approved_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)

    # RSS provenance
    source = Column(String(20), default=PostSource.MANUAL, nullable=False, index=True)
    link = Column(String(1000), nullable=True, index=True)
    guid = Column(String(1000), nullable=True, index=True)
    feed_id = Column(Integer, ForeignKey("rss_feeds.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    category = relationship("Category")
    admin_posts = relationship(
        "AdminPost",
        back_populates="post",
        cascade="all, delete-orphan",
    )

    def clear_schedule(self):
        self.is_scheduled = False
        self.schedule_approved = False
        self.schedule_approved_by = None
        self.schedule_approved_at = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "short_title": self.short_title,
            "body": self.body,
            "category": self.category.to_dict() if self.category else None,
            "category_id": self.category_id,
            "tags": self.tags or [],
            "region": self.region,
            "author": self.author,
            "author_id": self.author_id,
            "publish_date_time": self.publish_date_time.isoformat() if self.publish_date_time else None,
            "status": self.status,
            "is_sponsored": bool(self.is_sponsored),
            "meta_title": self.meta_title,
            "meta_description": self.meta_description,
            "image_url": self.image_url,
            "views": self.views or 0,
            "is_scheduled": bool(self.is_scheduled),
            "schedule_approved": bool(self.schedule_approved),
            "schedule_approved_by": self.schedule_approved_by,
            "schedule_approved_at": self.schedule_approved_at.isoformat() if self.schedule_approved_at else None,
            "last_approved_by": self.last_approved_by,
            "last_approved_at": self.last_approved_at.isoformat() if self.last_approved_at else None,
            "rejection_reason": self.rejection_reason,
            "source": self.source,
            "link": self.link,
            "guid": self.guid,
            "feed_id": self.feed_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
