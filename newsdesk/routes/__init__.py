from .auth import router as auth_router
from .admins import router as admins_router
from .posts import router as posts_router
from .approvals import router as approvals_router
from .categories import router as categories_router
from .scheduler import router as scheduler_router
from .rss import router as rss_router
from .subscriptions import router as subscriptions_router
from .notifications import router as notifications_router
from .push import router as push_router
from .activity import router as activity_router
from .health import router as health_router

__all__ = [
    "auth_router",
    "admins_router",
    "posts_router",
    "approvals_router",
    "categories_router",
    "scheduler_router",
    "rss_router",
    "subscriptions_router",
    "notifications_router",
    "push_router",
    "activity_router",
    "health_router",
]
