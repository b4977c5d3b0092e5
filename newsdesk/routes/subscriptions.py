"""
Notification subscription routes for the signed-in user.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.category import Category
from ..models.rss_feed import RSSFeed
from ..models.subscription import NotificationSubscription, SubscriptionType
from ..models.user import User
from ..auth import get_required_user
from ..schemas.subscriptions import SubscriptionCreate, SubscriptionUpdate
from ..responses import success, bad_request, not_found

router = APIRouter(prefix="/api/rss-subscriptions", tags=["subscriptions"])


def _get_own(db: Session, user: User, subscription_id: int) -> NotificationSubscription:
    subscription = db.query(NotificationSubscription).filter(
        NotificationSubscription.id == subscription_id,
        NotificationSubscription.user_id == user.id,
    ).first()
    if not subscription:
        not_found("Subscription")
    return subscription


@router.get("")
def get_subscriptions(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    subscriptions = db.query(NotificationSubscription).filter(
        NotificationSubscription.user_id == current_user.id,
        NotificationSubscription.is_active.is_(True),
    ).order_by(NotificationSubscription.created_at.desc()).all()
    return success([s.to_dict() for s in subscriptions], count=len(subscriptions))


@router.get("/available-feeds")
def get_available_feeds(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    feeds = db.query(RSSFeed).filter(RSSFeed.is_active.is_(True)).order_by(RSSFeed.name.asc()).all()
    return success(
        [{"id": f.id, "name": f.name, "brand_name": f.brand_name, "description": f.description} for f in feeds],
        count=len(feeds),
    )


@router.post("", status_code=201)
def create_subscription(
    data: SubscriptionCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    """Subscribe, or reactivate and update a matching earlier subscription."""
    feed_id = category_id = None
    if data.subscription_type == SubscriptionType.FEED:
        if not data.feed_id or not db.query(RSSFeed).filter(RSSFeed.id == data.feed_id).first():
            bad_request("A valid feed_id is required for feed subscriptions")
        feed_id = data.feed_id
    elif data.subscription_type == SubscriptionType.CATEGORY:
        if not data.category_id or not db.query(Category).filter(Category.id == data.category_id).first():
            bad_request("A valid category_id is required for category subscriptions")
        category_id = data.category_id

    subscription = db.query(NotificationSubscription).filter(
        NotificationSubscription.user_id == current_user.id,
        NotificationSubscription.subscription_type == data.subscription_type,
        NotificationSubscription.feed_id == feed_id,
        NotificationSubscription.category_id == category_id,
    ).first()
    if subscription is None:
        subscription = NotificationSubscription(
            user_id=current_user.id,
            subscription_type=data.subscription_type,
            feed_id=feed_id,
            category_id=category_id,
        )
        db.add(subscription)

    subscription.in_app = data.channels.in_app
    subscription.web_push = data.channels.web_push
    subscription.email = data.channels.email
    subscription.is_active = True
    db.commit()
    db.refresh(subscription)
    return success(subscription.to_dict(), "Subscribed successfully")


@router.put("/{subscription_id}")
def update_subscription(
    subscription_id: int,
    data: SubscriptionUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    subscription = _get_own(db, current_user, subscription_id)
    if data.channels is not None:
        subscription.in_app = data.channels.in_app
        subscription.web_push = data.channels.web_push
        subscription.email = data.channels.email
    if data.is_active is not None:
        subscription.is_active = data.is_active
    db.commit()
    db.refresh(subscription)
    return success(subscription.to_dict(), "Subscription updated")


@router.delete("/{subscription_id}")
def delete_subscription(
    subscription_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    """Unsubscribe; the row is kept inactive so it can be reactivated."""
    subscription = _get_own(db, current_user, subscription_id)
    subscription.is_active = False
    db.commit()
    return success(message="Unsubscribed successfully")
