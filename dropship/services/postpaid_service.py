"""
Postpaid credit accounting: status derivation, repayment from the wallet,
admin adjustments and the credit-use flow for orders.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Dict, Any, List, Optional

from sqlalchemy.orm import Session

from dropship.exceptions import (
    NotFoundError, ValidationError, InsufficientBalanceError,
    AmountExceedsDuesError, InsufficientCreditError,
)
from dropship.models.user import User
from dropship.models.admin import Admin
from dropship.models.order import Order, OrderStatus
from dropship.models.postpaid import PostpaidTransaction, PostpaidTransactionType
from dropship.services.state_machine import ensure_transition
from dropship.services.wallet_service import lock_user, debit_wallet
from dropship.utils.money import to_decimal, ZERO
from dropship.utils.admin_activity import log_admin_activity
from dropship.utils.edge_functions import EdgeFunctionClient

logger = logging.getLogger(__name__)

DUE_REMINDER_FUNCTION = "send-postpaid-due-reminder"


def available_credit(user: User) -> Decimal:
    return max(ZERO, to_decimal(user.postpaid_credit_limit) - to_decimal(user.postpaid_used))


def is_enabled(user: User) -> bool:
    # A nonzero limit enables postpaid even without the explicit toggle
    return bool(user.postpaid_enabled) or to_decimal(user.postpaid_credit_limit) > ZERO


def _get_user(db: Session, user_id: str) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("Profile not found")
    return user


def get_status(db: Session, user_id: str) -> Dict[str, Any]:
    user = _get_user(db, user_id)
    used = to_decimal(user.postpaid_used)
    return {
        "enabled": is_enabled(user),
        "credit_limit": to_decimal(user.postpaid_credit_limit),
        "used_credit": used,
        "available_credit": available_credit(user),
        "outstanding_dues": used,
        "due_cycle": user.postpaid_due_cycle_days,
        "can_request_payout": used == ZERO,
        "has_outstanding_dues": used > ZERO,
        "allow_payout_with_dues": bool(user.allow_payout_with_dues),
    }


def repay(db: Session, user_id: str, amount) -> Dict[str, Any]:
    """
    Repay postpaid dues from the wallet.

    Orders in postpaid_pending are cleared oldest first while their totals fit
    in the remaining payment; allocation stops at the first order that does not
    fit, so newer orders are never cleared out of turn. Any remainder still
    reduces postpaid_used without clearing an order.
    """
    amount = to_decimal(amount)
    if amount <= ZERO:
        raise ValidationError("Amount must be greater than zero")

    try:
        user = lock_user(db, user_id)
        wallet_balance = to_decimal(user.wallet_balance)
        used = to_decimal(user.postpaid_used)

        if amount > wallet_balance:
            raise InsufficientBalanceError("Insufficient wallet balance")
        if amount > used:
            raise AmountExceedsDuesError("Amount exceeds outstanding postpaid dues")

        pending_orders = (
            db.query(Order)
            .filter(Order.dropshipper_id == user_id, Order.status == OrderStatus.POSTPAID_PENDING)
            .order_by(Order.created_at.asc())
            .all()
        )

        now = datetime.utcnow()
        remaining = amount
        cleared: List[Order] = []
        for order in pending_orders:
            total = to_decimal(order.base_total)
            if total > remaining:
                break
            ensure_transition("order", order.status, OrderStatus.PAID_BY_USER)
            order.status = OrderStatus.PAID_BY_USER
            order.postpaid_paid_at = now
            order.paid_at = now
            remaining -= total
            cleared.append(order)

        debit_wallet(db, user, amount, "postpaid_repayment", "Postpaid dues repayment from wallet")
        new_used = used - amount
        user.postpaid_used = new_used

        db.add(PostpaidTransaction(
            user_id=user.id,
            amount=amount,
            transaction_type=PostpaidTransactionType.CREDIT_REPAID,
            description="Postpaid dues repayment from wallet",
            balance_before=used,
            balance_after=new_used,
        ))
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"User {user_id} repaid {amount} of postpaid dues, cleared {len(cleared)} orders")
    return {
        "new_postpaid_used": to_decimal(user.postpaid_used),
        "new_wallet_balance": to_decimal(user.wallet_balance),
        "cleared_orders": [o.id for o in cleared],
    }


def adjust_balance(db: Session, user_id: str, amount, reason: str, admin: Admin, request=None) -> PostpaidTransaction:
    """Admin correction of postpaid_used; the wallet is not touched."""
    amount = to_decimal(amount)
    if amount == ZERO:
        raise ValidationError("Adjustment amount cannot be zero")
    if not reason or not reason.strip():
        raise ValidationError("A reason is required for adjustments")

    try:
        user = lock_user(db, user_id)
        before = to_decimal(user.postpaid_used)
        after = max(ZERO, before + amount)
        user.postpaid_used = after
        tx = PostpaidTransaction(
            user_id=user.id,
            amount=abs(amount),
            transaction_type=PostpaidTransactionType.ADJUSTMENT,
            description=reason.strip(),
            balance_before=before,
            balance_after=after,
            admin_id=admin.id,
            admin_reason=reason.strip(),
        )
        db.add(tx)
        log_admin_activity(
            db=db,
            admin_id=admin.id,
            action="postpaid_adjusted",
            entity_type="user",
            entity_id=user.id,
            details={"amount": str(amount), "before": str(before), "after": str(after), "reason": reason},
            request=request,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(tx)
    logger.info(f"Admin {admin.id} adjusted postpaid dues of {user_id}: {before} -> {after}")
    return tx


def _update_profile(db: Session, user_id: str, admin: Optional[Admin], action: str, request=None, **fields) -> User:
    try:
        user = lock_user(db, user_id)
        for key, value in fields.items():
            setattr(user, key, value)
        if admin is not None:
            log_admin_activity(
                db=db,
                admin_id=admin.id,
                action=action,
                entity_type="user",
                entity_id=user.id,
                details={k: str(v) if isinstance(v, Decimal) else v for k, v in fields.items()},
                request=request,
            )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(user)
    return user


def set_enabled(db: Session, user_id: str, enabled: bool, admin: Optional[Admin] = None, request=None) -> User:
    return _update_profile(db, user_id, admin, "postpaid_toggled", request, postpaid_enabled=bool(enabled))


def set_credit_limit(db: Session, user_id: str, credit_limit, admin: Optional[Admin] = None, request=None) -> User:
    # Lowering below postpaid_used is allowed; available credit clamps to zero
    credit_limit = to_decimal(credit_limit)
    if credit_limit < ZERO:
        raise ValidationError("Credit limit cannot be negative")
    return _update_profile(db, user_id, admin, "postpaid_limit_updated", request, postpaid_credit_limit=credit_limit)


def set_due_cycle(db: Session, user_id: str, due_cycle_days: Optional[int], admin: Optional[Admin] = None,
                  request=None) -> User:
    if due_cycle_days is not None and due_cycle_days <= 0:
        raise ValidationError("Due cycle must be a positive number of days")
    return _update_profile(db, user_id, admin, "postpaid_due_cycle_updated", request,
                           postpaid_due_cycle_days=due_cycle_days)


def set_allow_payout_with_dues(db: Session, user_id: str, allow: bool, admin: Optional[Admin] = None,
                               request=None) -> User:
    return _update_profile(db, user_id, admin, "payout_with_dues_toggled", request,
                           allow_payout_with_dues=bool(allow))


def charge_order_to_credit(db: Session, user: User, order: Order) -> PostpaidTransaction:
    """
    Put an order on postpaid credit. Joins the caller's transaction; `user`
    must already be locked.
    """
    if not is_enabled(user):
        raise InsufficientCreditError("Postpaid is not enabled for this account")
    total = to_decimal(order.base_total)
    if total > available_credit(user):
        raise InsufficientCreditError(
            f"Order total {total} exceeds available credit {available_credit(user)}"
        )

    before = to_decimal(user.postpaid_used)
    after = before + total
    user.postpaid_used = after
    order.status = OrderStatus.POSTPAID_PENDING
    tx = PostpaidTransaction(
        user_id=user.id,
        order=order,
        amount=total,
        transaction_type=PostpaidTransactionType.CREDIT_USED,
        description=f"Order {order.order_number} charged to postpaid credit",
        balance_before=before,
        balance_after=after,
    )
    db.add(tx)
    logger.info(f"Order {order.order_number} charged {total} to postpaid credit of {user.id}")
    return tx


def list_transactions(db: Session, user_id: str, limit: int = 50) -> List[PostpaidTransaction]:
    return (
        db.query(PostpaidTransaction)
        .filter(PostpaidTransaction.user_id == user_id)
        .order_by(PostpaidTransaction.created_at.desc())
        .limit(limit)
        .all()
    )


def list_postpaid_users(db: Session) -> List[Dict[str, Any]]:
    users = db.query(User).order_by(User.name).all()
    return [
        {
            "user_id": u.id,
            "name": u.name or "Unknown",
            "email": u.email or "",
            "postpaid_enabled": bool(u.postpaid_enabled),
            "postpaid_credit_limit": to_decimal(u.postpaid_credit_limit),
            "postpaid_used": to_decimal(u.postpaid_used),
            "postpaid_due_cycle": u.postpaid_due_cycle_days,
            "wallet_balance": to_decimal(u.wallet_balance),
            "available_credit": available_credit(u),
            "allow_payout_with_dues": bool(u.allow_payout_with_dues),
        }
        for u in users
    ]


def postpaid_summary(db: Session) -> Dict[str, Any]:
    """Aggregates for the postpaid analytics dashboard"""
    users = db.query(User).all()
    enabled = [u for u in users if is_enabled(u)]
    buckets = {"no_usage": 0, "low": 0, "medium": 0, "high": 0}
    total_outstanding = ZERO
    total_limit = ZERO
    with_dues = 0

    for u in enabled:
        used = to_decimal(u.postpaid_used)
        limit = to_decimal(u.postpaid_credit_limit)
        total_outstanding += used
        total_limit += limit
        if used > ZERO:
            with_dues += 1

        if used == ZERO:
            buckets["no_usage"] += 1
            continue
        utilisation = used / limit * 100 if limit > ZERO else Decimal(100)
        if utilisation < 50:
            buckets["low"] += 1
        elif utilisation < 80:
            buckets["medium"] += 1
        else:
            buckets["high"] += 1

    return {
        "enabled_users": len(enabled),
        "users_with_dues": with_dues,
        "total_outstanding": total_outstanding,
        "total_credit_limit": total_limit,
        "utilisation": buckets,
    }


def send_due_reminders(client: EdgeFunctionClient) -> Dict[str, Any]:
    result = client.invoke(DUE_REMINDER_FUNCTION)
    logger.info(
        f"Due reminders sent: {result.get('emailsSent', 0)} emails, "
        f"{result.get('notificationsSent', 0)} notifications"
    )
    return {
        "success": bool(result.get("success", True)),
        "emailsSent": result.get("emailsSent", 0),
        "notificationsSent": result.get("notificationsSent", 0),
        "errors": result.get("errors"),
    }
