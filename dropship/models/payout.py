from sqlalchemy import Column, String, Numeric, DateTime, ForeignKey, Text, Enum as SQLEnum, JSON
from sqlalchemy.orm import relationship
import uuid
from datetime import datetime
import enum
from dropship.database import Base


class PayoutStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Statuses in which the payout amount has left the wallet
DEBITED_STATUSES = frozenset({PayoutStatus.APPROVED, PayoutStatus.COMPLETED})


class PayoutRequest(Base):
    __tablename__ = "payout_requests"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(String(50), nullable=False)
    payment_details = Column(JSON, nullable=False, default=dict)
    status = Column(SQLEnum(PayoutStatus), default=PayoutStatus.PENDING, nullable=False, index=True)
    admin_notes = Column(Text, nullable=True)
    processed_at = Column(DateTime, nullable=True)
    processed_by = Column(String(36), ForeignKey("admins.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="payout_requests")
    history = relationship("PayoutStatusHistory", back_populates="payout", cascade="all, delete-orphan",
                           order_by="PayoutStatusHistory.created_at.desc()")


class PayoutStatusHistory(Base):
    __tablename__ = "payout_status_history"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    payout_id = Column(String(36), ForeignKey("payout_requests.id", ondelete="CASCADE"), nullable=False, index=True)
    old_status = Column(SQLEnum(PayoutStatus), nullable=True)
    new_status = Column(SQLEnum(PayoutStatus), nullable=False)
    changed_by = Column(String(36), nullable=True)  # admin id, or the user id for cancellations
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    payout = relationship("PayoutRequest", back_populates="history")
