from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
import uuid
from datetime import datetime
from dropship.models.order import OrderStatus
from dropship.database import Base


class OrderStatusHistory(Base):
    __tablename__ = "order_status_history"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    old_status = Column(SQLEnum(OrderStatus), nullable=True)
    status = Column(SQLEnum(OrderStatus), nullable=False)
    changed_by = Column(String(36), ForeignKey("admins.id"), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    order = relationship("Order", back_populates="status_history")
    changed_by_admin = relationship("Admin", back_populates="order_status_changes")
