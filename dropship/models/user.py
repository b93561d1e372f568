from sqlalchemy import Column, String, Boolean, Integer, Numeric, DateTime
from sqlalchemy.orm import relationship
import uuid
from datetime import datetime
from decimal import Decimal
from dropship.database import Base


class User(Base):
    """Dropshipper profile; carries the wallet and the postpaid credit account."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    phone = Column(String(20), nullable=True)
    storefront_name = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    # Wallet (never negative)
    wallet_balance = Column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)

    # Postpaid credit account
    postpaid_enabled = Column(Boolean, default=False, nullable=False)
    postpaid_credit_limit = Column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    postpaid_used = Column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    postpaid_due_cycle_days = Column(Integer, nullable=True)
    allow_payout_with_dues = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    orders = relationship("Order", back_populates="dropshipper")
    wallet_transactions = relationship("WalletTransaction", back_populates="user", cascade="all, delete-orphan")
    postpaid_transactions = relationship("PostpaidTransaction", back_populates="user", cascade="all, delete-orphan")
    payout_requests = relationship("PayoutRequest", back_populates="user", cascade="all, delete-orphan")
    notifications = relationship("Notification", back_populates="user", cascade="all, delete-orphan")
    chat_session = relationship("ChatSession", back_populates="user", uselist=False, cascade="all, delete-orphan")
    activity_logs = relationship("UserActivityLog", back_populates="user", cascade="all, delete-orphan")
