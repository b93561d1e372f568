from sqlalchemy import Column, String, Integer, Numeric, DateTime, ForeignKey, Text, Enum as SQLEnum
from sqlalchemy.orm import relationship
import uuid
from datetime import datetime
from decimal import Decimal
import enum
from dropship.database import Base


class OrderStatus(str, enum.Enum):
    PENDING_PAYMENT = "pending_payment"
    PAID_BY_USER = "paid_by_user"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    POSTPAID_PENDING = "postpaid_pending"


# Statuses that mean the order has been paid for
PAID_STATUSES = frozenset({OrderStatus.PAID_BY_USER, OrderStatus.PROCESSING, OrderStatus.COMPLETED})


class Order(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_number = Column(String(50), unique=True, nullable=False, index=True)
    dropshipper_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    product_name = Column(String(255), nullable=False)
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=True)
    customer_address = Column(Text, nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    base_price = Column(Numeric(12, 2), nullable=False)  # what the dropshipper owes the platform per unit
    selling_price = Column(Numeric(12, 2), nullable=False)  # what the end customer pays per unit
    status = Column(SQLEnum(OrderStatus), default=OrderStatus.PENDING_PAYMENT, nullable=False, index=True)
    payment_proof_url = Column(String(500), nullable=True)
    paid_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    postpaid_paid_at = Column(DateTime, nullable=True)
    # Profit credited to the wallet on completion; set and cleared only by the wallet sync hook
    wallet_credited_amount = Column(Numeric(12, 2), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    dropshipper = relationship("User", back_populates="orders")
    status_history = relationship("OrderStatusHistory", back_populates="order", cascade="all, delete-orphan",
                                  order_by="OrderStatusHistory.created_at")

    @property
    def base_total(self) -> Decimal:
        """Amount owed to the platform for this order"""
        return Decimal(self.base_price) * int(self.quantity)

    @property
    def profit(self) -> Decimal:
        return (Decimal(self.selling_price) - Decimal(self.base_price)) * int(self.quantity)
