from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from dropship.database import get_db
from dropship.api.deps import get_current_user
from dropship.exceptions import NotFoundError
from dropship.schemas.common import ResponseModel
from dropship.models.notification import Notification
from dropship.utils.pagination import paginate, page_offset

router = APIRouter()


def _notification_to_item(n: Notification) -> dict:
    return {
        "id": n.id,
        "type": n.type,
        "title": n.title,
        "message": n.message or "",
        "category": n.category,
        "reference_id": n.reference_id,
        "read": n.is_read,
        "created_at": n.created_at.isoformat() if n.created_at else None,
    }


@router.get("", response_model=ResponseModel)
def get_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    unread: Optional[bool] = None,
    current_user=Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get user notifications. Supports ?unread=true for unread-only."""
    query = db.query(Notification).filter(Notification.user_id == current_user.id)
    if unread is not None:
        query = query.filter(Notification.is_read == (not unread))
    total = query.count()
    notifications = (
        query.order_by(Notification.created_at.desc())
        .offset(page_offset(page, limit))
        .limit(limit)
        .all()
    )
    unread_count = db.query(Notification).filter(
        Notification.user_id == current_user.id,
        Notification.is_read.is_(False)
    ).count()
    return ResponseModel(
        success=True,
        data={
            "notifications": [_notification_to_item(n) for n in notifications],
            "unreadCount": unread_count,
            "pagination": paginate(page, limit, total),
        }
    )


@router.put("/read-all", response_model=ResponseModel)
def mark_all_read(
    current_user=Depends(get_current_user),
    db: Session = Depends(get_db)
):
    db.query(Notification).filter(
        Notification.user_id == current_user.id,
        Notification.is_read.is_(False)
    ).update({"is_read": True})
    db.commit()
    return ResponseModel(success=True, message="All notifications marked as read")


@router.put("/{notification_id}/read", response_model=ResponseModel)
def mark_notification_read(
    notification_id: str,
    current_user=Depends(get_current_user),
    db: Session = Depends(get_db)
):
    notification = db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.user_id == current_user.id
    ).first()
    if not notification:
        raise NotFoundError("Notification not found")
    notification.is_read = True
    db.commit()
    return ResponseModel(success=True, message="Notification marked as read")
