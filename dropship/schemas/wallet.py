from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from dropship.schemas.common import Money


class WalletTransactionResponse(BaseModel):
    id: str
    amount: Money
    type: str
    description: Optional[str] = None
    order_id: Optional[str] = None
    payout_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class WalletAdjustRequest(BaseModel):
    """Signed amount: positive credits the wallet, negative debits it."""
    amount: Decimal
    reason: str = Field(..., min_length=1, max_length=500)


class WalletResponse(BaseModel):
    balance: Money
    transactions: List[WalletTransactionResponse] = []
