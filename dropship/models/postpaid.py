from sqlalchemy import Column, String, Numeric, DateTime, ForeignKey, Text, Enum as SQLEnum
from sqlalchemy.orm import relationship
import uuid
from datetime import datetime
import enum
from dropship.database import Base


class PostpaidTransactionType(str, enum.Enum):
    CREDIT_USED = "credit_used"
    CREDIT_REPAID = "credit_repaid"
    ADJUSTMENT = "adjustment"


class PostpaidTransactionStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PostpaidTransaction(Base):
    """Dues ledger entry. balance_before/balance_after track postpaid_used, not the wallet."""
    __tablename__ = "postpaid_transactions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="SET NULL"), nullable=True, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    transaction_type = Column(SQLEnum(PostpaidTransactionType), nullable=False)
    description = Column(String(500), nullable=True)
    balance_before = Column(Numeric(12, 2), nullable=False)
    balance_after = Column(Numeric(12, 2), nullable=False)
    status = Column(SQLEnum(PostpaidTransactionStatus), default=PostpaidTransactionStatus.COMPLETED, nullable=False)
    admin_id = Column(String(36), ForeignKey("admins.id", ondelete="SET NULL"), nullable=True)
    admin_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="postpaid_transactions")
    order = relationship("Order")
