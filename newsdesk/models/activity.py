"""
Activity model for audit logging.
"""
from sqlalchemy import Column, Integer, String, DateTime, Text, JSON, ForeignKey
from sqlalchemy.orm import relationship
from ..database import Base
from ..timeutils import utcnow


class Activity(Base):
    __tablename__ = "activities"

    id = Column(Integer, primary_key=True, index=True)
    # Null for system (scheduler, RSS cron) entries
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    activity_type = Column(String(50), nullable=False, index=True)
    title = Column(String(300), nullable=False)
    description = Column(Text, nullable=True)
    # Plain ids; the audit trail outlives deleted posts
    post_id = Column(Integer, nullable=True, index=True)
    admin_post_id = Column(Integer, nullable=True, index=True)
    details = Column(JSON, nullable=True)
    severity = Column(String(20), default="info", nullable=False)
    expires_at = Column(DateTime, nullable=True, index=True)
    created_at = Column(DateTime, default=utcnow, index=True)

    user = relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.activity_type,
            "title": self.title,
            "description": self.description,
            "user_id": self.user_id,
            "user_name": self.user.name if self.user else "System",
            "post_id": self.post_id,
            "admin_post_id": self.admin_post_id,
            "details": self.details or {},
            "severity": self.severity,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "timestamp": self.created_at.isoformat() if self.created_at else None,
        }
