from sqlalchemy import Column, String, Integer, Boolean, Text, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
import uuid
from datetime import datetime
import enum
from dropship.database import Base


class ChatStatus(str, enum.Enum):
    WAITING_FOR_SUPPORT = "waiting_for_support"
    ACTIVE = "active"
    USER_LEFT = "user_left"
    CLOSED = "closed"


class SenderRole(str, enum.Enum):
    USER = "user"
    ADMIN = "admin"
    SYSTEM = "system"


class ChatSession(Base):
    """One support session per user; absent row means no session yet."""
    __tablename__ = "chat_sessions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)
    status = Column(SQLEnum(ChatStatus), default=ChatStatus.WAITING_FOR_SUPPORT, nullable=False)
    assigned_agent_id = Column(String(36), ForeignKey("admins.id", ondelete="SET NULL"), nullable=True, index=True)
    previous_agent_id = Column(String(36), ForeignKey("admins.id", ondelete="SET NULL"), nullable=True)
    close_reason = Column(String(50), nullable=True)
    user_messages_cleared_at = Column(DateTime, nullable=True)
    last_user_activity_at = Column(DateTime, nullable=True)
    user_left_at = Column(DateTime, nullable=True)
    reassignment_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="chat_session")
    assigned_agent = relationship("Admin", foreign_keys=[assigned_agent_id])
    previous_agent = relationship("Admin", foreign_keys=[previous_agent_id])


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_role = Column(SQLEnum(SenderRole), nullable=False)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)


class ChatCustomerName(Base):
    """Display name shown to agents for a customer while a chat is open."""
    __tablename__ = "chat_customer_names"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    display_name = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class ChatRating(Base):
    __tablename__ = "chat_ratings"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    feedback = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class ChatReassignmentLog(Base):
    __tablename__ = "chat_reassignment_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    from_agent_id = Column(String(36), nullable=True)
    to_agent_id = Column(String(36), nullable=True)
    action = Column(String(50), nullable=False)  # manual_assign, manual_unassign, chat_ended
    trigger_reason = Column(String(100), nullable=True)
    performed_by = Column(String(36), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class SupportAgentPresence(Base):
    __tablename__ = "support_agent_presence"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    admin_id = Column(String(36), ForeignKey("admins.id", ondelete="CASCADE"), nullable=False, unique=True)
    is_online = Column(Boolean, default=False, nullable=False)
    active_chat_count = Column(Integer, default=0, nullable=False)
    last_seen_at = Column(DateTime, nullable=True)

    admin = relationship("Admin", back_populates="presence")
