from pydantic import BaseModel, Field
from typing import Optional, Dict
from datetime import datetime
from decimal import Decimal
from dropship.schemas.common import Money
from dropship.models.payout import PayoutStatus


class PayoutCreate(BaseModel):
    amount: Decimal = Field(..., gt=0)
    payment_method: str = Field(..., min_length=1, max_length=50)
    payment_details: Dict[str, str] = Field(default_factory=dict)


class PayoutCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class PayoutProcess(BaseModel):
    status: PayoutStatus
    previous_status: Optional[PayoutStatus] = None  # status the admin acted on
    admin_notes: Optional[str] = None


class PayoutResponse(BaseModel):
    id: str
    user_id: str
    amount: Money
    payment_method: str
    payment_details: Dict[str, str]
    status: PayoutStatus
    admin_notes: Optional[str] = None
    processed_at: Optional[datetime] = None
    processed_by: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class PayoutHistoryResponse(BaseModel):
    id: str
    old_status: Optional[PayoutStatus] = None
    new_status: PayoutStatus
    changed_by: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
