"""
AdminPost model: a staged create or update awaiting a superadmin decision.
"""
from sqlalchemy import Column, Integer, String, DateTime, Text, JSON, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from ..database import Base
from ..timeutils import utcnow


class ApprovalStatus:
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    CHANGES_REQUESTED = "changes_requested"
    SCHEDULED_PENDING = "scheduled_pending"
    SCHEDULED_APPROVED = "scheduled_approved"

    ALL = (
        PENDING_REVIEW,
        APPROVED,
        REJECTED,
        CHANGES_REQUESTED,
        SCHEDULED_PENDING,
        SCHEDULED_APPROVED,
    )
    # At most one of these per post
    OUTSTANDING = (PENDING_REVIEW, SCHEDULED_PENDING)


class AdminPost(Base):
    __tablename__ = "admin_posts"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    short_title = Column(String(100), nullable=False)
    body = Column(Text, nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False, index=True)
    tags = Column(JSON, default=list)
    region = Column(String(100), default="India")
    author = Column(String(100), nullable=False)
    author_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    publish_date_time = Column(DateTime, nullable=True)
    is_sponsored = Column(Boolean, default=False)
    meta_title = Column(String(200), nullable=True)
    meta_description = Column(String(300), nullable=True)
    image_url = Column(String(1000), nullable=True)

    approval_status = Column(String(30), default=ApprovalStatus.PENDING_REVIEW, nullable=False, index=True)
    post_id = Column(Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=True, index=True)
    is_update_request = Column(Boolean, default=False, nullable=False)
    original_post_data = Column(JSON, nullable=True)
    approved_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    reviewer_notes = Column(Text, nullable=True)
    version = Column(Integer, default=1, nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    post = relationship("Post", back_populates="admin_posts")
    category = relationship("Category")

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
            "is_sponsored": bool(self.is_sponsored),
            "meta_title": self.meta_title,
            "meta_description": self.meta_description,
            "image_url": self.image_url,
            "approval_status": self.approval_status,
            "post_id": self.post_id,
            "is_update_request": bool(self.is_update_request),
            "original_post_data": self.original_post_data,
            "approved_by": self.approved_by,
            "approved_at": self.approved_at.isoformat() if self.approved_at else None,
            "rejection_reason": self.rejection_reason,
            "reviewer_notes": self.reviewer_notes,
            "version": self.version,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
