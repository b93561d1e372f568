"""
Admin Activity Logging Utility
"""
from typing import Optional, Dict, Any
from sqlalchemy.orm import Session
from fastapi import Request
from dropship.models.admin_activity_log import AdminActivityLog


def log_admin_activity(
    db: Session,
    admin_id: Optional[str],
    action: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    request: Optional[Request] = None
):
    """
    Record an admin action in the activity log. Joins the caller's transaction.

    Args:
        db: Database session
        admin_id: ID of the admin performing the action
        action: Action name (e.g., 'postpaid_adjusted', 'payout_processed')
        entity_type: Type of entity (e.g., 'payout', 'order', 'user')
        entity_id: ID of the entity being acted upon
        details: Additional details as JSON
        request: FastAPI request object to extract IP and user agent
    """
    ip_address = None
    user_agent = None

    if request:
        if request.client:
            ip_address = request.client.host
        user_agent = request.headers.get("user-agent")

    activity_log = AdminActivityLog(
        admin_id=admin_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details,
        ip_address=ip_address,
        user_agent=user_agent
    )

    db.add(activity_log)
    return activity_log
