"""
Support chat: sessions, messages, agent assignment and ratings.

Sending a message never assigns an agent. Assignment only happens through
assign_to_agent/unassign, which go through the chat-reassignment edge
function and mirror its answer onto the session.
"""
import logging
import uuid
from datetime import datetime, timedelta
from typing import Optional, List, Dict, Any

from sqlalchemy.orm import Session

from dropship.config import settings
from dropship.exceptions import NotFoundError, ValidationError
from dropship.models.admin import Admin
from dropship.models.user import User
from dropship.models.chat import (
    ChatSession, ChatStatus, ChatMessage, SenderRole, ChatCustomerName,
    ChatRating, ChatReassignmentLog, SupportAgentPresence,
)
from dropship.services.state_machine import ensure_transition
from dropship.utils.edge_functions import EdgeFunctionClient
from dropship.utils.notification_helper import create_notification, enqueue_email
from dropship.utils.platform_settings import get_setting

logger = logging.getLogger(__name__)

REASSIGNMENT_FUNCTION = "chat-reassignment"
RATING_WINDOW = timedelta(hours=24)

CLOSE_REASONS = {
    "resolved": "Issue Resolved",
    "no_response": "No Response from User",
    "spam": "Spam / Inappropriate",
    "transferred": "Transferred to Another Channel",
    "duplicate": "Duplicate Conversation",
    "other": "Other",
}

# Wording shown to the customer
USER_CLOSE_REASONS = {
    "resolved": "Issue Resolved",
    "no_response": "No Response",
    "spam": "Marked as Spam",
    "transferred": "Transferred",
    "duplicate": "Duplicate Conversation",
    "other": "Closed by Support",
}


def close_reason_label(reason: Optional[str]) -> str:
    return CLOSE_REASONS.get(reason or "", "Closed by Support")


def user_close_reason_label(reason: Optional[str]) -> str:
    return USER_CLOSE_REASONS.get(reason or "", "Closed by Support")


def _get_user(db: Session, user_id: str) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User not found")
    return user


def get_session(db: Session, user_id: str) -> Optional[ChatSession]:
    return db.query(ChatSession).filter(ChatSession.user_id == user_id).first()


def _set_status(session: ChatSession, status: ChatStatus) -> None:
    ensure_transition("chat", session.status, status)
    session.status = status


def _new_session(db: Session, user_id: str, status: ChatStatus) -> ChatSession:
    ensure_transition("chat", None, status)
    session = ChatSession(id=str(uuid.uuid4()), user_id=user_id, status=status, reassignment_count=0)
    db.add(session)
    return session


def _adjust_agent_count(db: Session, admin_id: Optional[str], delta: int) -> None:
    if not admin_id:
        return
    presence = db.query(SupportAgentPresence).filter(SupportAgentPresence.admin_id == admin_id).first()
    if presence is None:
        presence = SupportAgentPresence(admin_id=admin_id, active_chat_count=0)
        db.add(presence)
    presence.active_chat_count = max(0, (presence.active_chat_count or 0) + delta)


def welcome_message(db: Session) -> str:
    return get_setting(db, "chat_welcome_message") or settings.CHAT_WELCOME_MESSAGE


def send_user_message(db: Session, user_id: str, message: str, now: Optional[datetime] = None) -> ChatMessage:
    """
    Store a message from the user. The first message the user ever sends
    gets an automated welcome reply and opens a session waiting for support.
    """
    if not message or not message.strip():
        raise ValidationError("Message cannot be empty")
    now = now or datetime.utcnow()

    try:
        user = _get_user(db, user_id)
        is_first_message = (
            db.query(ChatMessage)
            .filter(ChatMessage.user_id == user_id, ChatMessage.sender_role == SenderRole.USER)
            .count() == 0
        )

        session = get_session(db, user_id)
        if session is None:
            session = _new_session(db, user_id, ChatStatus.WAITING_FOR_SUPPORT)
        elif session.status == ChatStatus.USER_LEFT:
            _set_status(session, ChatStatus.ACTIVE if session.assigned_agent_id else ChatStatus.WAITING_FOR_SUPPORT)
            session.user_left_at = None
        session.last_user_activity_at = now

        msg = ChatMessage(user_id=user_id, sender_role=SenderRole.USER, message=message.strip(), created_at=now)
        db.add(msg)

        if is_first_message:
            db.add(ChatMessage(
                user_id=user_id,
                sender_role=SenderRole.ADMIN,
                message=welcome_message(db),
                created_at=now + timedelta(milliseconds=1),
            ))

        enqueue_email(
            db,
            "new_chat_message",
            userName=user.name or "User",
            userEmail=user.email or "",
            message=message.strip(),
            isFirstMessage=is_first_message,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(msg)
    return msg


def send_admin_message(db: Session, user_id: str, message: str, admin: Admin,
                       now: Optional[datetime] = None) -> ChatMessage:
    if not message or not message.strip():
        raise ValidationError("Message cannot be empty")
    now = now or datetime.utcnow()

    try:
        user = _get_user(db, user_id)
        msg = ChatMessage(user_id=user_id, sender_role=SenderRole.ADMIN, message=message.strip(), created_at=now)
        db.add(msg)
        if user.email:
            enqueue_email(
                db,
                "admin_chat_message",
                userName=user.name or "User",
                userEmail=user.email,
                recipientEmail=user.email,
                message=message.strip(),
            )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(msg)
    logger.debug(f"Admin {admin.id} replied to {user_id}")
    return msg


def _visible_query(db: Session, user_id: str):
    query = db.query(ChatMessage).filter(ChatMessage.user_id == user_id)
    session = get_session(db, user_id)
    if session is not None and session.user_messages_cleared_at is not None:
        query = query.filter(ChatMessage.created_at >= session.user_messages_cleared_at)
    return query


def visible_messages(db: Session, user_id: str) -> List[ChatMessage]:
    """Messages the user can see: everything since the last clear"""
    return _visible_query(db, user_id).order_by(ChatMessage.created_at.asc()).all()


def thread(db: Session, user_id: str) -> List[ChatMessage]:
    """Full history for agents, including messages hidden from the user"""
    return (
        db.query(ChatMessage)
        .filter(ChatMessage.user_id == user_id)
        .order_by(ChatMessage.created_at.asc())
        .all()
    )


def _counterpart_roles(reader: str):
    if reader == SenderRole.USER.value:
        return [SenderRole.ADMIN, SenderRole.SYSTEM]
    if reader == SenderRole.ADMIN.value:
        return [SenderRole.USER]
    raise ValidationError(f"Unknown reader: {reader}")


def _unread_query(db: Session, user_id: str, reader: str):
    roles = _counterpart_roles(reader)
    if reader == SenderRole.USER.value:
        query = _visible_query(db, user_id)
    else:
        query = db.query(ChatMessage).filter(ChatMessage.user_id == user_id)
    return query.filter(ChatMessage.sender_role.in_(roles), ChatMessage.is_read.is_(False))


def unread_count(db: Session, user_id: str, reader: str) -> int:
    return _unread_query(db, user_id, reader).count()


def mark_as_read(db: Session, user_id: str, reader: str, now: Optional[datetime] = None) -> int:
    """Mark the counterpart's messages read; the reader's own are never touched."""
    now = now or datetime.utcnow()
    try:
        messages = _unread_query(db, user_id, reader).all()
        for msg in messages:
            msg.is_read = True
            msg.read_at = now
        db.commit()
    except Exception:
        db.rollback()
        raise
    return len(messages)


def end_chat(
    db: Session,
    user_id: str,
    end_message: str,
    close_reason: str,
    admin: Admin,
    now: Optional[datetime] = None,
) -> ChatSession:
    if not end_message or not end_message.strip():
        raise ValidationError("An end message is required")
    now = now or datetime.utcnow()

    try:
        user = _get_user(db, user_id)
        session = get_session(db, user_id)
        if session is None:
            session = _new_session(db, user_id, ChatStatus.CLOSED)
            previous_agent_id = None
        else:
            _set_status(session, ChatStatus.CLOSED)
            previous_agent_id = session.assigned_agent_id

        session.user_messages_cleared_at = now
        session.close_reason = close_reason
        session.previous_agent_id = previous_agent_id
        _adjust_agent_count(db, previous_agent_id, -1)
        session.assigned_agent_id = None

        db.query(ChatCustomerName).filter(ChatCustomerName.user_id == user_id).delete()

        db.add(ChatMessage(
            user_id=user_id,
            sender_role=SenderRole.ADMIN,
            message=end_message.strip(),
            created_at=now,
        ))
        db.add(ChatReassignmentLog(
            user_id=user_id,
            from_agent_id=previous_agent_id,
            to_agent_id=None,
            action="chat_ended",
            trigger_reason=close_reason,
            performed_by=admin.id,
        ))
        create_notification(
            db,
            user_id=user_id,
            type="chat_ended",
            title="Chat Ended",
            message=f"Your support chat was closed ({user_close_reason_label(close_reason)}).",
            category="chat",
            reference_id=session.id,
        )
        if user.email:
            enqueue_email(
                db,
                "chat_ended",
                userName=user.name or "User",
                userEmail=user.email,
                recipientEmail=user.email,
                message=end_message.strip(),
            )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(session)
    logger.info(f"Chat for {user_id} ended by admin {admin.id} ({close_reason})")
    return session


def start_new_conversation(db: Session, user_id: str, now: Optional[datetime] = None) -> ChatSession:
    """Reset the user's view window; history stays visible to agents."""
    now = now or datetime.utcnow()
    try:
        _get_user(db, user_id)
        session = get_session(db, user_id)
        if session is None:
            session = _new_session(db, user_id, ChatStatus.ACTIVE)
        else:
            _set_status(session, ChatStatus.ACTIVE)
        session.user_messages_cleared_at = now
        session.close_reason = None
        session.user_left_at = None
        session.last_user_activity_at = now
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(session)
    return session


def _apply_assignment(db: Session, session: ChatSession, new_agent_id: Optional[str], admin: Admin,
                      action: str, trigger_reason: str) -> None:
    old_agent_id = session.assigned_agent_id
    if old_agent_id != new_agent_id:
        _adjust_agent_count(db, old_agent_id, -1)
        _adjust_agent_count(db, new_agent_id, 1)
        if old_agent_id:
            session.previous_agent_id = old_agent_id
        session.assigned_agent_id = new_agent_id
        session.reassignment_count = (session.reassignment_count or 0) + 1

    if new_agent_id and session.status != ChatStatus.ACTIVE:
        _set_status(session, ChatStatus.ACTIVE)
    elif not new_agent_id and session.status == ChatStatus.ACTIVE:
        _set_status(session, ChatStatus.WAITING_FOR_SUPPORT)

    db.add(ChatReassignmentLog(
        user_id=session.user_id,
        from_agent_id=old_agent_id,
        to_agent_id=new_agent_id,
        action=action,
        trigger_reason=trigger_reason,
        performed_by=admin.id,
    ))


def assign_to_agent(
    db: Session,
    client: EdgeFunctionClient,
    user_id: str,
    admin: Admin,
    access_token: str,
    target_agent_id: Optional[str] = None,
) -> ChatSession:
    target_agent_id = target_agent_id or admin.id
    _get_user(db, user_id)

    # Remote first: nothing is written if the reassignment function refuses
    result = client.invoke(
        REASSIGNMENT_FUNCTION,
        {
            "action": "manual_assign",
            "user_id": user_id,
            "target_agent_id": target_agent_id,
            "admin_id": admin.id,
            "trigger_reason": "admin_manual_assignment",
        },
        access_token=access_token,
    )
    new_agent_id = result.get("assigned_agent_id", target_agent_id)

    try:
        session = get_session(db, user_id)
        if session is None:
            session = _new_session(db, user_id, ChatStatus.WAITING_FOR_SUPPORT)
        _apply_assignment(db, session, new_agent_id, admin, "manual_assign", "admin_manual_assignment")
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(session)
    logger.info(f"Chat for {user_id} assigned to {new_agent_id} by {admin.id}")
    return session


def unassign(db: Session, client: EdgeFunctionClient, user_id: str, admin: Admin, access_token: str) -> ChatSession:
    session = get_session(db, user_id)
    if session is None:
        raise NotFoundError("Chat session not found")

    result = client.invoke(
        REASSIGNMENT_FUNCTION,
        {
            "action": "manual_unassign",
            "user_id": user_id,
            "admin_id": admin.id,
            "trigger_reason": "admin_manual_unassignment",
        },
        access_token=access_token,
    )
    new_agent_id = result.get("assigned_agent_id")

    try:
        _apply_assignment(db, session, new_agent_id, admin, "manual_unassign", "admin_manual_unassignment")
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(session)
    logger.info(f"Chat for {user_id} unassigned by {admin.id}")
    return session


def set_customer_name(db: Session, user_id: str, display_name: str) -> ChatCustomerName:
    if not display_name or not display_name.strip():
        raise ValidationError("Display name cannot be empty")
    _get_user(db, user_id)
    entry = db.query(ChatCustomerName).filter(ChatCustomerName.user_id == user_id).first()
    if entry:
        entry.display_name = display_name.strip()
    else:
        entry = ChatCustomerName(user_id=user_id, display_name=display_name.strip())
        db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


def get_customer_name(db: Session, user_id: str) -> Optional[str]:
    entry = db.query(ChatCustomerName).filter(ChatCustomerName.user_id == user_id).first()
    return entry.display_name if entry else None


def conversations(db: Session) -> List[Dict[str, Any]]:
    """One row per user who has chatted, newest activity first"""
    messages = db.query(ChatMessage).order_by(ChatMessage.created_at.desc()).all()
    sessions = {s.user_id: s for s in db.query(ChatSession).all()}
    names = {n.user_id: n.display_name for n in db.query(ChatCustomerName).all()}

    rows: Dict[str, Dict[str, Any]] = {}
    for msg in messages:
        row = rows.get(msg.user_id)
        if row is None:
            session = sessions.get(msg.user_id)
            row = rows[msg.user_id] = {
                "user_id": msg.user_id,
                "last_message": msg.message,
                "last_message_at": msg.created_at,
                "unread_count": 0,
                "status": session.status.value if session else None,
                "assigned_agent_id": session.assigned_agent_id if session else None,
                "previous_agent_id": session.previous_agent_id if session else None,
                "close_reason": session.close_reason if session else None,
                "customer_name": names.get(msg.user_id),
            }
        if msg.sender_role == SenderRole.USER and not msg.is_read:
            row["unread_count"] += 1

    users = {u.id: u for u in db.query(User).filter(User.id.in_(list(rows))).all()} if rows else {}
    for user_id, row in rows.items():
        user = users.get(user_id)
        row["user_name"] = user.name if user else "Unknown"
        row["user_email"] = user.email if user else ""
    return list(rows.values())


def submit_rating(db: Session, user_id: str, rating: int, feedback: Optional[str] = None) -> ChatRating:
    if rating < 1 or rating > 5:
        raise ValidationError("Rating must be between 1 and 5")
    _get_user(db, user_id)
    entry = ChatRating(user_id=user_id, rating=rating, feedback=feedback or None)
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


def recent_rating(db: Session, user_id: str, now: Optional[datetime] = None) -> Optional[ChatRating]:
    now = now or datetime.utcnow()
    return (
        db.query(ChatRating)
        .filter(ChatRating.user_id == user_id, ChatRating.created_at >= now - RATING_WINDOW)
        .order_by(ChatRating.created_at.desc())
        .first()
    )


def has_rated_recently(db: Session, user_id: str, now: Optional[datetime] = None) -> bool:
    return recent_rating(db, user_id, now) is not None
