from .user import User, Role
from .category import Category
from .post import Post, PostStatus, PostSource
from .admin_post import AdminPost, ApprovalStatus
from .activity import Activity
from .rss_feed import RSSFeed
from .subscription import NotificationSubscription, SubscriptionType
from .notification import Notification
from .push_subscription import PushSubscription

__all__ = [
    "User",
    "Role",
    "Category",
    "Post",
    "PostStatus",
    "PostSource",
    "AdminPost",
    "ApprovalStatus",
    "Activity",
    "RSSFeed",
    "NotificationSubscription",
    "SubscriptionType",
    "Notification",
    "PushSubscription",
]
