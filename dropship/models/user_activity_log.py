from sqlalchemy import Column, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
import uuid
from datetime import datetime
from dropship.database import Base


class UserActivityLog(Base):
    """IP audit trail for sensitive dropshipper actions (payout requests, repayments)"""
    __tablename__ = "user_activity_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    activity_type = Column(String(50), nullable=False)  # 'payout_request', 'postpaid_repayment', ...
    ip_address = Column(String(45), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    # Relationships
    user = relationship("User", back_populates="activity_logs")

    __table_args__ = (
        Index('idx_user_activity_user_date', 'user_id', 'created_at'),
    )
