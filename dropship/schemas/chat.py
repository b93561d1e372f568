from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from dropship.models.chat import ChatStatus, SenderRole


class ChatMessageCreate(BaseModel):
    message: str = Field(..., min_length=1, max_length=5000)


class ChatMessageResponse(BaseModel):
    id: str
    user_id: str
    sender_role: SenderRole
    message: str
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ChatSessionResponse(BaseModel):
    user_id: str
    status: ChatStatus
    assigned_agent_id: Optional[str] = None
    previous_agent_id: Optional[str] = None
    close_reason: Optional[str] = None
    user_messages_cleared_at: Optional[datetime] = None
    user_left_at: Optional[datetime] = None
    reassignment_count: int = 0

    class Config:
        from_attributes = True


class EndChatRequest(BaseModel):
    end_message: str = Field(..., min_length=1)
    close_reason: str = "resolved"


class AssignRequest(BaseModel):
    target_agent_id: Optional[str] = None  # defaults to the calling admin


class CustomerNameRequest(BaseModel):
    display_name: str = Field(..., min_length=1, max_length=255)


class RatingRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    feedback: Optional[str] = None
