"""
Helpers to create in-app notifications and queue best-effort emails.
Neither commits: both join the caller's transaction.
"""
from typing import Optional
from sqlalchemy.orm import Session
from dropship.models.notification import Notification, NotificationOutbox

EMAIL_FUNCTION = "send-notification-email"


def create_notification(
    db: Session,
    user_id: str,
    type: str,
    title: str,
    message: str,
    category: Optional[str] = None,
    reference_id: Optional[str] = None,
) -> Notification:
    """
    Create a notification for a user.
    type: e.g. "payout_approved", "order_completed".
    category: "payout", "order" or "chat"; reference_id points at the entity.
    """
    notif = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        category=category,
        reference_id=reference_id,
    )
    db.add(notif)
    return notif


def enqueue_email(db: Session, type: str, **fields) -> NotificationOutbox:
    """Queue a send-notification-email call; `type` selects the template."""
    payload = {"type": type}
    payload.update({k: v for k, v in fields.items() if v is not None})
    entry = NotificationOutbox(function_name=EMAIL_FUNCTION, payload=payload)
    db.add(entry)
    return entry
