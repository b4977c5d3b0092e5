"""
User model for authentication, roles and ownership.
"""
from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from ..database import Base
from ..timeutils import utcnow


class Role:
    USER = "user"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"

    STAFF = (ADMIN, SUPERADMIN)
    ALL = (USER, ADMIN, SUPERADMIN)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    name = Column(String(100), nullable=False)
    role = Column(String(20), default=Role.USER, nullable=False, index=True)  # user, admin, superadmin
    crud_access = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    timezone = Column(String(64), default="UTC", nullable=False)
    last_login = Column(DateTime, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    subscriptions = relationship("NotificationSubscription", back_populates="user", cascade="all, delete-orphan")
    notifications = relationship("Notification", back_populates="user", cascade="all, delete-orphan")
    push_subscriptions = relationship("PushSubscription", back_populates="user", cascade="all, delete-orphan")

    @property
    def is_staff(self) -> bool:
        return self.role in Role.STAFF

    @property
    def is_superadmin(self) -> bool:
        return self.role == Role.SUPERADMIN

    @property
    def has_crud_access(self) -> bool:
        """Superadmins always have it; admins only when granted."""
        if self.role == Role.SUPERADMIN:
            return True
        return self.role == Role.ADMIN and bool(self.crud_access)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "crud_access": bool(self.crud_access),
            "has_crud_access": self.has_crud_access,
            "is_active": self.is_active,
            "timezone": self.timezone,
            "last_login": self.last_login.isoformat() if self.last_login else None,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
