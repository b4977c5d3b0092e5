"""
RSS feed configuration model.
"""
from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean, ForeignKey
from ..database import Base
from ..timeutils import utcnow


class RSSFeed(Base):
    __tablename__ = "rss_feeds"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    url = Column(String(1000), unique=True, nullable=False, index=True)
    brand_name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    fetch_interval_minutes = Column(Integer, default=60, nullable=False)
    last_fetched_at = Column(DateTime, nullable=True)
    last_fetch_status = Column(String(20), nullable=True)  # success, error
    last_error_message = Column(Text, nullable=True)
    total_posts_saved = Column(Integer, default=0, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "brand_name": self.brand_name,
            "description": self.description,
            "is_active": self.is_active,
            "fetch_interval_minutes": self.fetch_interval_minutes,
            "last_fetched_at": self.last_fetched_at.isoformat() if self.last_fetched_at else None,
            "last_fetch_status": self.last_fetch_status,
            "last_error_message": self.last_error_message,
            "total_posts_saved": self.total_posts_saved,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
