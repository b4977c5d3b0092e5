"""
Web push delivery through pywebpush with VAPID credentials.
"""
import json
from typing import Dict

from pywebpush import webpush, WebPushException
from sqlalchemy.orm import Session

from ..config import get_settings
from ..logging_config import notify_logger
from ..models.push_subscription import PushSubscription
from ..timeutils import utcnow

# Push services answer 404/410 once a browser endpoint is gone
GONE_STATUSES = (404, 410)


def push_enabled() -> bool:
    settings = get_settings()
    return bool(settings.vapid_public_key and settings.vapid_private_key)


def build_payload(title: str, body: str, url: str, post_id: int = None, kind: str = None) -> Dict:
    return {
        "title": title,
        "body": body,
        "icon": "/logo192.png",
        "url": url,
        "data": {"post_id": post_id, "type": kind},
    }


def send_push(subscription: PushSubscription, payload: Dict) -> str:
    """
    Deliver one payload to one endpoint.

    Returns "sent", "gone" (endpoint should be pruned) or "failed".
    """
    settings = get_settings()
    try:
        webpush(
            subscription_info=subscription.subscription_info(),
            data=json.dumps(payload),
            vapid_private_key=settings.vapid_private_key,
            vapid_claims={"sub": settings.vapid_subject},
            ttl=settings.push_ttl_seconds,
        )
    except WebPushException as e:
        status_code = e.response.status_code if e.response is not None else None
        if status_code in GONE_STATUSES:
            return "gone"
        notify_logger.warning(
            "Push delivery failed",
            endpoint=subscription.endpoint[:60],
            status_code=status_code,
            error_message=str(e),
        )
        return "failed"
    return "sent"


def send_to_user(db: Session, user_id: int, payload: Dict) -> Dict[str, int]:
    """Push to every active endpoint of a user, pruning dead ones."""
    result = {"sent": 0, "failed": 0, "pruned": 0}
    if not push_enabled():
        notify_logger.warning("VAPID keys not configured, skipping web push", user_id=user_id)
        return result

    subscriptions = (
        db.query(PushSubscription)
        .filter(PushSubscription.user_id == user_id, PushSubscription.is_active.is_(True))
        .all()
    )
    for subscription in subscriptions:
        outcome = send_push(subscription, payload)
        if outcome == "sent":
            subscription.last_used_at = utcnow()
            result["sent"] += 1
        elif outcome == "gone":
            db.delete(subscription)
            result["pruned"] += 1
        else:
            result["failed"] += 1

    db.commit()
    if result["pruned"]:
        notify_logger.info("Pruned expired push endpoints", user_id=user_id, count=result["pruned"])
    return result
