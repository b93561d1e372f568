from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from dropship.database import get_db
from dropship.api.deps import get_current_user
from dropship.models.user import User
from dropship.models.chat import ChatStatus, SenderRole
from dropship.schemas.common import ResponseModel, dump
from dropship.schemas.chat import ChatMessageCreate, ChatMessageResponse, ChatSessionResponse, RatingRequest
from dropship.services import chat_service
from dropship.services.chat_presence import PresenceRegistry, get_presence_registry

router = APIRouter()


def _session_data(session):
    return dump(ChatSessionResponse, session) if session else None


@router.get("/messages", response_model=ResponseModel)
def get_messages(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Messages since the last cleared point, plus the session state"""
    messages = chat_service.visible_messages(db, current_user.id)
    session = chat_service.get_session(db, current_user.id)
    ended = session is not None and session.status == ChatStatus.CLOSED
    return ResponseModel(
        success=True,
        data={
            "messages": [dump(ChatMessageResponse, m) for m in messages],
            "session": _session_data(session),
            "closeReasonLabel": chat_service.user_close_reason_label(session.close_reason) if ended else None,
            "unreadCount": chat_service.unread_count(db, current_user.id, SenderRole.USER.value),
        }
    )


@router.post("/messages", response_model=ResponseModel, status_code=201)
def send_message(
    body: ChatMessageCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    presence: PresenceRegistry = Depends(get_presence_registry)
):
    message = chat_service.send_user_message(db, current_user.id, body.message)
    presence.activity(current_user.id)
    return ResponseModel(success=True, data=dump(ChatMessageResponse, message))


@router.post("/read", response_model=ResponseModel)
def mark_read(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    updated = chat_service.mark_as_read(db, current_user.id, SenderRole.USER.value)
    return ResponseModel(success=True, data={"updated": updated})


@router.get("/unread", response_model=ResponseModel)
def get_unread_count(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    count = chat_service.unread_count(db, current_user.id, SenderRole.USER.value)
    return ResponseModel(success=True, data={"unreadCount": count})


@router.post("/new-conversation", response_model=ResponseModel)
def start_new_conversation(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    session = chat_service.start_new_conversation(db, current_user.id)
    return ResponseModel(success=True, data=_session_data(session), message="New conversation started")


@router.get("/rating", response_model=ResponseModel)
def get_recent_rating(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    rating = chat_service.recent_rating(db, current_user.id)
    return ResponseModel(
        success=True,
        data={
            "hasRatedRecently": rating is not None,
            "rating": rating.rating if rating else None,
        }
    )


@router.post("/rating", response_model=ResponseModel, status_code=201)
def submit_rating(
    body: RatingRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    chat_service.submit_rating(db, current_user.id, body.rating, body.feedback)
    return ResponseModel(success=True, message="Your feedback helps us improve our support.")


def _presence_data(db, user_id, snapshot):
    return {**snapshot, "session": _session_data(chat_service.get_session(db, user_id))}


@router.get("/presence", response_model=ResponseModel)
def get_presence(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    presence: PresenceRegistry = Depends(get_presence_registry)
):
    """connected / reconnecting / left, with seconds left in the grace period"""
    snapshot = presence.sync(db, current_user.id)
    return ResponseModel(success=True, data=_presence_data(db, current_user.id, snapshot))


@router.post("/presence/heartbeat", response_model=ResponseModel)
def presence_heartbeat(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    presence: PresenceRegistry = Depends(get_presence_registry)
):
    presence.activity(current_user.id)
    snapshot = presence.sync(db, current_user.id)
    return ResponseModel(success=True, data=_presence_data(db, current_user.id, snapshot))


@router.post("/presence/left", response_model=ResponseModel)
def presence_left(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    presence: PresenceRegistry = Depends(get_presence_registry)
):
    snapshot = presence.disconnect(db, current_user.id)
    return ResponseModel(success=True, data=_presence_data(db, current_user.id, snapshot))


@router.post("/presence/restore", response_model=ResponseModel)
def presence_restore(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    presence: PresenceRegistry = Depends(get_presence_registry)
):
    snapshot = presence.reconnect(db, current_user.id)
    return ResponseModel(success=True, data=_presence_data(db, current_user.id, snapshot))
