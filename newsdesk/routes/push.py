"""
Web push subscription routes.
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from typing import Optional

from ..config import get_settings
from ..database import get_db
from ..models.push_subscription import PushSubscription
from ..models.user import User
from ..auth import get_current_user, get_required_user
from ..schemas.subscriptions import PushSubscribeRequest, PushUnsubscribeRequest
from ..services import web_push
from ..responses import success, bad_request, not_found

router = APIRouter(prefix="/api/push", tags=["push"])


@router.get("/vapid-public-key")
def get_vapid_public_key():
    settings = get_settings()
    if not settings.vapid_public_key:
        not_found("VAPID public key")
    return success({"public_key": settings.vapid_public_key})


@router.post("/subscribe", status_code=201)
def subscribe(
    request: Request,
    data: PushSubscribeRequest,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_current_user),
):
    """Register a browser endpoint. Re-subscribing the same endpoint updates it."""
    subscription = db.query(PushSubscription).filter(PushSubscription.endpoint == data.endpoint).first()
    if subscription is None:
        subscription = PushSubscription(endpoint=data.endpoint)
        db.add(subscription)

    subscription.p256dh = data.keys.p256dh
    subscription.auth = data.keys.auth
    subscription.user_agent = request.headers.get("user-agent")
    subscription.is_active = True
    if current_user is not None:
        subscription.user_id = current_user.id
    db.commit()
    db.refresh(subscription)
    return success(subscription.to_dict(), "Push subscription saved")


@router.post("/unsubscribe")
def unsubscribe(
    data: PushUnsubscribeRequest,
    db: Session = Depends(get_db),
):
    subscription = db.query(PushSubscription).filter(PushSubscription.endpoint == data.endpoint).first()
    if subscription is None:
        not_found("Push subscription")
    db.delete(subscription)
    db.commit()
    return success(message="Push subscription removed")


@router.get("/subscriptions")
def get_push_subscriptions(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    items = db.query(PushSubscription).filter(PushSubscription.user_id == current_user.id).all()
    return success([s.to_dict() for s in items], count=len(items))


@router.post("/test")
def send_test_push(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    """Send a test notification to every browser of the caller."""
    if not web_push.push_enabled():
        bad_request("Web push is not configured", "PUSH_DISABLED")
    payload = web_push.build_payload("Test notification", "Push notifications are working.", "/", kind="test")
    result = web_push.send_to_user(db, current_user.id, payload)
    return success(result, f"Sent to {result['sent']} device(s)")
