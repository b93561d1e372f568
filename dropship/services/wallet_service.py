"""
Wallet primitives. Every balance change goes through credit_wallet/debit_wallet
so that the balance and its ledger entry are written in the same session.
"""
import logging
from decimal import Decimal
from typing import Optional, List

from sqlalchemy.orm import Session

from dropship.exceptions import NotFoundError, ValidationError, InsufficientBalanceError
from dropship.models.user import User
from dropship.models.wallet import WalletTransaction
from dropship.models.admin import Admin
from dropship.utils.money import to_decimal, ZERO
from dropship.utils.admin_activity import log_admin_activity

logger = logging.getLogger(__name__)


def lock_user(db: Session, user_id: str) -> User:
    """Load a profile row for update; raises NotFoundError if missing."""
    user = db.query(User).filter(User.id == user_id).with_for_update().first()
    if not user:
        raise NotFoundError("Profile not found")
    return user


def credit_wallet(
    db: Session,
    user: User,
    amount: Decimal,
    type: str,
    description: str,
    order_id: Optional[str] = None,
    payout_id: Optional[str] = None,
) -> WalletTransaction:
    amount = to_decimal(amount)
    user.wallet_balance = to_decimal(user.wallet_balance) + amount
    tx = WalletTransaction(
        user_id=user.id,
        amount=amount,
        type=type,
        description=description,
        order_id=order_id,
        payout_id=payout_id,
    )
    db.add(tx)
    logger.info(f"Wallet credit {amount} ({type}) for user {user.id}, balance now {user.wallet_balance}")
    return tx


def debit_wallet(
    db: Session,
    user: User,
    amount: Decimal,
    type: str,
    description: str,
    order_id: Optional[str] = None,
    payout_id: Optional[str] = None,
) -> WalletTransaction:
    amount = to_decimal(amount)
    balance = to_decimal(user.wallet_balance)
    if amount > balance:
        raise InsufficientBalanceError("Insufficient wallet balance")
    user.wallet_balance = balance - amount
    tx = WalletTransaction(
        user_id=user.id,
        amount=-amount,
        type=type,
        description=description,
        order_id=order_id,
        payout_id=payout_id,
    )
    db.add(tx)
    logger.info(f"Wallet debit {amount} ({type}) for user {user.id}, balance now {user.wallet_balance}")
    return tx


def adjust_wallet(db: Session, user_id: str, amount, reason: str, admin: Admin, request=None) -> User:
    """Admin adjustment of a wallet balance. Positive credits, negative debits."""
    amount = to_decimal(amount)
    if amount == ZERO:
        raise ValidationError("Adjustment amount cannot be zero")
    if not reason or not reason.strip():
        raise ValidationError("A reason is required for wallet adjustments")

    try:
        user = lock_user(db, user_id)
        before = to_decimal(user.wallet_balance)
        description = f"Admin adjustment: {reason.strip()}"
        if amount > ZERO:
            credit_wallet(db, user, amount, "admin_adjustment", description)
        else:
            debit_wallet(db, user, -amount, "admin_adjustment", description)
        log_admin_activity(
            db=db,
            admin_id=admin.id,
            action="wallet_adjusted",
            entity_type="user",
            entity_id=user.id,
            details={"amount": str(amount), "balance_before": str(before), "reason": reason},
            request=request,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(user)
    return user


def list_wallet_transactions(db: Session, user_id: str, limit: int = 50) -> List[WalletTransaction]:
    return (
        db.query(WalletTransaction)
        .filter(WalletTransaction.user_id == user_id)
        .order_by(WalletTransaction.created_at.desc())
        .limit(limit)
        .all()
    )
