"""
Per-user notification interest registrations.
"""
from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from ..database import Base
from ..timeutils import utcnow


class SubscriptionType:
    ALL = "all"
    FEED = "feed"
    CATEGORY = "category"

    CHOICES = (ALL, FEED, CATEGORY)


class NotificationSubscription(Base):
    __tablename__ = "notification_subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    subscription_type = Column(String(20), default=SubscriptionType.ALL, nullable=False, index=True)
    feed_id = Column(Integer, ForeignKey("rss_feeds.id", ondelete="CASCADE"), nullable=True, index=True)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="CASCADE"), nullable=True, index=True)
    in_app = Column(Boolean, default=True, nullable=False)
    web_push = Column(Boolean, default=False, nullable=False)
    email = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="subscriptions")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "subscription_type": self.subscription_type,
            "feed_id": self.feed_id,
            "category_id": self.category_id,
            "channels": {
                "in_app": self.in_app,
                "web_push": self.web_push,
                "email": self.email,
            },
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
