from sqlalchemy import Column, String, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
import uuid
from datetime import datetime
from dropship.database import Base


class WalletTransaction(Base):
    """Append-only ledger entry; one per balance-affecting event. Amount is signed."""
    __tablename__ = "wallet_transactions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    # 'postpaid_repayment', 'payout_approved', 'payout_refund', 'order_completed', ...
    type = Column(String(50), nullable=False)
    description = Column(String(500), nullable=True)
    order_id = Column(String(36), nullable=True, index=True)
    payout_id = Column(String(36), nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="wallet_transactions")
