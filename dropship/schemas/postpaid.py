from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from dropship.schemas.common import Money
from dropship.models.postpaid import PostpaidTransactionType, PostpaidTransactionStatus


class PostpaidTransactionResponse(BaseModel):
    id: str
    user_id: str
    order_id: Optional[str] = None
    amount: Money
    transaction_type: PostpaidTransactionType
    description: Optional[str] = None
    balance_before: Money
    balance_after: Money
    status: PostpaidTransactionStatus
    admin_id: Optional[str] = None
    admin_reason: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class RepayRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)


class AdjustBalanceRequest(BaseModel):
    """Positive amount adds dues, negative reduces them (floored at zero)."""
    amount: Decimal
    reason: str = Field(..., min_length=1, max_length=500)


class ToggleRequest(BaseModel):
    enabled: bool


class CreditLimitRequest(BaseModel):
    credit_limit: Decimal = Field(..., ge=0)


class DueCycleRequest(BaseModel):
    due_cycle_days: Optional[int] = Field(None, gt=0)


class AllowPayoutWithDuesRequest(BaseModel):
    allow: bool


class PostpaidStatusResponse(BaseModel):
    enabled: bool
    credit_limit: Money
    used_credit: Money
    available_credit: Money
    outstanding_dues: Money
    due_cycle: Optional[int] = None
    can_request_payout: bool
    has_outstanding_dues: bool
    allow_payout_with_dues: bool


class RepayResponse(BaseModel):
    new_postpaid_used: Money
    new_wallet_balance: Money
    cleared_orders: List[str]


class PostpaidUserResponse(BaseModel):
    user_id: str
    name: str
    email: str
    postpaid_enabled: bool
    postpaid_credit_limit: Money
    postpaid_used: Money
    postpaid_due_cycle: Optional[int] = None
    wallet_balance: Money
    available_credit: Money
    allow_payout_with_dues: bool


class UtilisationBuckets(BaseModel):
    no_usage: int
    low: int
    medium: int
    high: int


class PostpaidSummaryResponse(BaseModel):
    enabled_users: int
    users_with_dues: int
    total_outstanding: Money
    total_credit_limit: Money
    utilisation: UtilisationBuckets
