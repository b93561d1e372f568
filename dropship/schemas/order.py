from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal
from dropship.schemas.common import Money
from dropship.models.order import OrderStatus


class OrderCreate(BaseModel):
    dropshipper_id: str
    product_name: str = Field(..., min_length=1, max_length=255)
    customer_name: str = Field(..., min_length=1, max_length=255)
    customer_email: Optional[str] = None
    customer_address: Optional[str] = None
    quantity: int = Field(1, ge=1)
    base_price: Decimal = Field(..., ge=0)
    selling_price: Decimal = Field(..., ge=0)
    status: OrderStatus = OrderStatus.PENDING_PAYMENT
    use_postpaid: bool = False


class OrderStatusUpdate(BaseModel):
    status: str
    notes: Optional[str] = None


class OrderResponse(BaseModel):
    id: str
    order_number: str
    dropshipper_id: Optional[str] = None
    product_name: str
    customer_name: str
    quantity: int
    base_price: Money
    selling_price: Money
    status: OrderStatus
    payment_proof_url: Optional[str] = None
    paid_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    postpaid_paid_at: Optional[datetime] = None
    wallet_credited_amount: Optional[Money] = None
    created_at: datetime

    class Config:
        from_attributes = True
