"""
Support agent side of the chat: conversations, replies, ending chats and
manual (un)assignment.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from dropship.database import get_db
from dropship.api.admin_deps import require_support_or_above, get_admin_token
from dropship.models.admin import Admin
from dropship.models.chat import SenderRole
from dropship.schemas.common import ResponseModel, dump
from dropship.schemas.chat import (
    ChatMessageCreate, ChatMessageResponse, ChatSessionResponse,
    EndChatRequest, AssignRequest, CustomerNameRequest,
)
from dropship.services import chat_service
from dropship.utils.edge_functions import EdgeFunctionClient, get_edge_client

router = APIRouter()


@router.get("/conversations", response_model=ResponseModel)
def list_conversations(
    admin: Admin = Depends(require_support_or_above),
    db: Session = Depends(get_db)
):
    rows = chat_service.conversations(db)
    for row in rows:
        row["last_message_at"] = row["last_message_at"].isoformat() if row["last_message_at"] else None
        row["close_reason_label"] = chat_service.close_reason_label(row["close_reason"]) if row["close_reason"] else None
    return ResponseModel(success=True, data={"conversations": rows})


@router.get("/{user_id}/messages", response_model=ResponseModel)
def get_thread(
    user_id: str,
    admin: Admin = Depends(require_support_or_above),
    db: Session = Depends(get_db)
):
    """Full history, including messages the user no longer sees"""
    messages = chat_service.thread(db, user_id)
    session = chat_service.get_session(db, user_id)
    return ResponseModel(
        success=True,
        data={
            "messages": [dump(ChatMessageResponse, m) for m in messages],
            "session": dump(ChatSessionResponse, session) if session else None,
            "customerName": chat_service.get_customer_name(db, user_id),
        }
    )


@router.post("/{user_id}/messages", response_model=ResponseModel, status_code=201)
def send_reply(
    user_id: str,
    body: ChatMessageCreate,
    admin: Admin = Depends(require_support_or_above),
    db: Session = Depends(get_db)
):
    message = chat_service.send_admin_message(db, user_id, body.message, admin)
    return ResponseModel(success=True, data=dump(ChatMessageResponse, message))


@router.post("/{user_id}/read", response_model=ResponseModel)
def mark_read(
    user_id: str,
    admin: Admin = Depends(require_support_or_above),
    db: Session = Depends(get_db)
):
    updated = chat_service.mark_as_read(db, user_id, SenderRole.ADMIN.value)
    return ResponseModel(success=True, data={"updated": updated})


@router.post("/{user_id}/end", response_model=ResponseModel)
def end_chat(
    user_id: str,
    body: EndChatRequest,
    admin: Admin = Depends(require_support_or_above),
    db: Session = Depends(get_db)
):
    session = chat_service.end_chat(db, user_id, body.end_message, body.close_reason, admin)
    return ResponseModel(
        success=True,
        data=dump(ChatSessionResponse, session),
        message="The chat has been ended for the user."
    )


@router.post("/{user_id}/assign", response_model=ResponseModel)
def assign_chat(
    user_id: str,
    body: AssignRequest,
    admin: Admin = Depends(require_support_or_above),
    token: str = Depends(get_admin_token),
    client: EdgeFunctionClient = Depends(get_edge_client),
    db: Session = Depends(get_db)
):
    session = chat_service.assign_to_agent(
        db, client, user_id, admin, token, target_agent_id=body.target_agent_id
    )
    return ResponseModel(success=True, data=dump(ChatSessionResponse, session), message="Chat assigned")


@router.post("/{user_id}/unassign", response_model=ResponseModel)
def unassign_chat(
    user_id: str,
    admin: Admin = Depends(require_support_or_above),
    token: str = Depends(get_admin_token),
    client: EdgeFunctionClient = Depends(get_edge_client),
    db: Session = Depends(get_db)
):
    session = chat_service.unassign(db, client, user_id, admin, token)
    return ResponseModel(success=True, data=dump(ChatSessionResponse, session), message="Chat unassigned")


@router.put("/{user_id}/customer-name", response_model=ResponseModel)
def set_customer_name(
    user_id: str,
    body: CustomerNameRequest,
    admin: Admin = Depends(require_support_or_above),
    db: Session = Depends(get_db)
):
    entry = chat_service.set_customer_name(db, user_id, body.display_name)
    return ResponseModel(success=True, data={"user_id": user_id, "display_name": entry.display_name})
