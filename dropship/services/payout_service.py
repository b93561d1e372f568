"""
Payout requests: user creation/cancellation and admin processing.

The wallet is debited once, on the first move into approved or completed, and
refunded only when a debited payout is rejected or reverted to pending.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Dict, Any, Optional, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from dropship.config import settings
from dropship.exceptions import (
    NotFoundError, ValidationError, DuesBlockedError, InsufficientBalanceError,
    BelowMinimumError, InsufficientAvailableError, InvalidTransitionError, StaleStateError,
)
from dropship.models.admin import Admin
from dropship.models.payout import PayoutRequest, PayoutStatus, PayoutStatusHistory, DEBITED_STATUSES
from dropship.models.user_activity_log import UserActivityLog
from dropship.services.state_machine import ensure_transition
from dropship.services.wallet_service import lock_user, credit_wallet, debit_wallet
from dropship.utils.money import to_decimal, format_amount, ZERO
from dropship.utils.notification_helper import create_notification, enqueue_email
from dropship.utils.platform_settings import get_setting
from dropship.utils.admin_activity import log_admin_activity

logger = logging.getLogger(__name__)

_USER_NOTIFICATIONS = {
    PayoutStatus.APPROVED: (
        "Payout Approved",
        "Your payout request of {amount} has been approved and is being processed.",
    ),
    PayoutStatus.REJECTED: (
        "Payout Rejected",
        "Your payout request of {amount} was rejected.{reason}",
    ),
    PayoutStatus.COMPLETED: (
        "Payout Completed",
        "Your payout of {amount} has been sent to your account.",
    ),
}


def get_min_payout(db: Session) -> Decimal:
    value = get_setting(db, "min_payout_amount")
    if value:
        try:
            return to_decimal(value)
        except ArithmeticError:
            logger.warning(f"Invalid min_payout_amount setting {value!r}, using default")
    return to_decimal(settings.MIN_PAYOUT_AMOUNT)


def _pending_total(db: Session, user_id: str) -> Decimal:
    total = (
        db.query(func.coalesce(func.sum(PayoutRequest.amount), 0))
        .filter(PayoutRequest.user_id == user_id, PayoutRequest.status == PayoutStatus.PENDING)
        .scalar()
    )
    return to_decimal(total)


def create(
    db: Session,
    user_id: str,
    amount,
    method: str,
    details: Optional[Dict[str, str]] = None,
    ip_address: Optional[str] = None,
) -> PayoutRequest:
    amount = to_decimal(amount)
    if amount <= ZERO:
        raise ValidationError("Amount must be greater than zero")
    if not method:
        raise ValidationError("Payment method is required")

    try:
        user = lock_user(db, user_id)
        balance = to_decimal(user.wallet_balance)
        dues = to_decimal(user.postpaid_used)

        if dues > ZERO and not user.allow_payout_with_dues:
            raise DuesBlockedError(
                f"You have pending postpaid dues of {format_amount(dues)}. "
                f"Please clear them before requesting a payout."
            )

        dues_hold = dues if user.allow_payout_with_dues else ZERO
        balance_after_hold = max(ZERO, balance - dues_hold)
        if amount > balance_after_hold:
            if dues_hold > ZERO:
                raise InsufficientBalanceError(
                    f"Insufficient balance. Your dues of {format_amount(dues_hold)} are held from your wallet. "
                    f"Available for payout: {format_amount(balance_after_hold)}"
                )
            raise InsufficientBalanceError("Insufficient wallet balance")

        min_payout = get_min_payout(db)
        if amount < min_payout:
            raise BelowMinimumError(f"Minimum payout amount is {format_amount(min_payout)}")

        pending_total = _pending_total(db, user_id)
        if pending_total + amount > balance:
            raise InsufficientAvailableError(
                f"Insufficient available balance. Pending payouts on hold: {format_amount(pending_total)}"
            )

        payout = PayoutRequest(
            user_id=user.id,
            amount=amount,
            payment_method=method,
            payment_details=details or {},
            status=PayoutStatus.PENDING,
        )
        db.add(payout)
        db.add(UserActivityLog(user_id=user.id, activity_type="payout_request", ip_address=ip_address))
        enqueue_email(
            db,
            "new_payout_request_admin",
            userName=user.name or "User",
            userEmail=user.email or "",
            amount=float(amount),
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(payout)
    logger.info(f"Payout {payout.id} of {amount} requested by {user_id}")
    return payout


def cancel(db: Session, user_id: str, payout_id: str, reason: Optional[str] = None) -> PayoutRequest:
    try:
        payout = (
            db.query(PayoutRequest)
            .filter(PayoutRequest.id == payout_id, PayoutRequest.user_id == user_id)
            .with_for_update()
            .first()
        )
        if not payout:
            raise NotFoundError("Payout request not found")
        if payout.status != PayoutStatus.PENDING:
            raise InvalidTransitionError("Only pending payout requests can be cancelled")
        ensure_transition("payout", payout.status, PayoutStatus.CANCELLED)

        notes = f"Cancelled by user: {reason}" if reason else "Cancelled by user"
        payout.status = PayoutStatus.CANCELLED
        payout.admin_notes = notes
        payout.processed_at = datetime.utcnow()
        db.add(PayoutStatusHistory(
            payout_id=payout.id,
            old_status=PayoutStatus.PENDING,
            new_status=PayoutStatus.CANCELLED,
            changed_by=user_id,
            notes=notes,
        ))
        user = payout.user
        enqueue_email(
            db,
            "payout_cancelled_admin",
            userName=user.name or "User",
            userEmail=user.email or "",
            amount=float(to_decimal(payout.amount)),
            cancellationReason=reason,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(payout)
    logger.info(f"Payout {payout_id} cancelled by {user_id}")
    return payout


def admin_process(
    db: Session,
    payout_id: str,
    new_status,
    admin: Admin,
    previous_status=None,
    admin_notes: Optional[str] = None,
    request=None,
) -> PayoutRequest:
    """
    Move a payout to `new_status`.

    `previous_status` is the status the admin was looking at; if it no longer
    matches the stored one the call fails with StaleStateError. Re-sending the
    stored status only updates the notes.
    """
    try:
        new_status = PayoutStatus(new_status)
        if previous_status is not None:
            previous_status = PayoutStatus(previous_status)
    except ValueError as e:
        raise ValidationError(f"Invalid payout status: {e}")

    try:
        payout = db.query(PayoutRequest).filter(PayoutRequest.id == payout_id).with_for_update().first()
        if not payout:
            raise NotFoundError("Payout request not found")

        current = PayoutStatus(payout.status)
        if previous_status is not None and previous_status != current:
            raise StaleStateError(
                f"Payout is {current.value}, not {previous_status.value}; refresh and try again"
            )

        if new_status == current:
            if admin_notes is not None:
                payout.admin_notes = admin_notes
            db.commit()
            db.refresh(payout)
            return payout

        ensure_transition("payout", current, new_status)

        user = lock_user(db, payout.user_id)
        amount = to_decimal(payout.amount)

        if new_status in DEBITED_STATUSES and current not in DEBITED_STATUSES:
            if to_decimal(user.wallet_balance) < amount:
                raise InsufficientBalanceError("Insufficient wallet balance to approve this payout")
            debit_wallet(
                db, user, amount,
                "payout_approved" if new_status == PayoutStatus.APPROVED else "payout_completed",
                "Payout approved - funds deducted" if new_status == PayoutStatus.APPROVED
                else "Payout completed - funds deducted",
                payout_id=payout.id,
            )
        elif new_status in (PayoutStatus.REJECTED, PayoutStatus.PENDING) and current in DEBITED_STATUSES:
            credit_wallet(
                db, user, amount,
                "payout_refund" if new_status == PayoutStatus.REJECTED else "payout_reverted",
                "Payout rejected - funds returned" if new_status == PayoutStatus.REJECTED
                else "Payout reverted to pending - funds returned",
                payout_id=payout.id,
            )

        payout.status = new_status
        payout.admin_notes = admin_notes
        payout.processed_by = admin.id
        payout.processed_at = None if new_status == PayoutStatus.PENDING else datetime.utcnow()

        db.add(PayoutStatusHistory(
            payout_id=payout.id,
            old_status=current,
            new_status=new_status,
            changed_by=admin.id,
            notes=admin_notes,
        ))

        if new_status in _USER_NOTIFICATIONS:
            title, template = _USER_NOTIFICATIONS[new_status]
            create_notification(
                db,
                user_id=user.id,
                type=f"payout_{new_status.value}",
                title=title,
                message=template.format(
                    amount=format_amount(amount),
                    reason=f" Reason: {admin_notes}" if admin_notes else "",
                ),
                category="payout",
                reference_id=payout.id,
            )
            if user.email:
                enqueue_email(
                    db,
                    f"payout_{new_status.value}",
                    userName=user.name or "User",
                    userEmail=user.email,
                    recipientEmail=user.email,
                    amount=float(amount),
                    adminNotes=admin_notes,
                )

        log_admin_activity(
            db=db,
            admin_id=admin.id,
            action="payout_processed",
            entity_type="payout",
            entity_id=payout.id,
            details={"old_status": current.value, "new_status": new_status.value, "amount": str(amount)},
            request=request,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(payout)
    logger.info(f"Payout {payout_id} moved {current.value} -> {new_status.value} by admin {admin.id}")
    return payout


def list_user_payouts(db: Session, user_id: str) -> List[PayoutRequest]:
    return (
        db.query(PayoutRequest)
        .filter(PayoutRequest.user_id == user_id)
        .order_by(PayoutRequest.created_at.desc())
        .all()
    )


def list_payouts(db: Session, status: Optional[str] = None) -> Dict[str, Any]:
    query = db.query(PayoutRequest)
    if status:
        query = query.filter(PayoutRequest.status == PayoutStatus(status))
    payouts = query.order_by(PayoutRequest.created_at.desc()).all()

    pending = db.query(PayoutRequest).filter(PayoutRequest.status == PayoutStatus.PENDING).all()
    return {
        "payouts": payouts,
        "pending_count": len(pending),
        "total_pending": sum((to_decimal(p.amount) for p in pending), ZERO),
    }


def payout_history(db: Session, payout_id: str) -> List[PayoutStatusHistory]:
    payout = db.query(PayoutRequest).filter(PayoutRequest.id == payout_id).first()
    if not payout:
        raise NotFoundError("Payout request not found")
    return (
        db.query(PayoutStatusHistory)
        .filter(PayoutStatusHistory.payout_id == payout_id)
        .order_by(PayoutStatusHistory.created_at.desc())
        .all()
    )
