from decimal import Decimal

import pytest

from dropship.exceptions import (
    BelowMinimumError, DuesBlockedError, InsufficientAvailableError, InsufficientBalanceError,
    InvalidTransitionError, NotFoundError, StaleStateError,
)
from dropship.models.notification import Notification, NotificationOutbox
from dropship.models.payout import PayoutStatus, PayoutStatusHistory
from dropship.models.user_activity_log import UserActivityLog
from dropship.models.wallet import WalletTransaction
from dropship.services import payout_service
from dropship.utils.platform_settings import update_setting


def _wallet(db, user):
    db.refresh(user)
    return user.wallet_balance


def test_create_queues_admin_email_and_logs_activity(db, user):
    payout = payout_service.create(db, user.id, "60", "bank_transfer", {"iban": "DE00"}, ip_address="10.0.0.1")

    assert payout.status == PayoutStatus.PENDING
    assert payout.payment_details == {"iban": "DE00"}
    assert _wallet(db, user) == Decimal("100.00")
    entry = db.query(NotificationOutbox).one()
    assert entry.payload["type"] == "new_payout_request_admin"
    assert entry.payload["amount"] == 60.0
    log = db.query(UserActivityLog).one()
    assert log.activity_type == "payout_request"
    assert log.ip_address == "10.0.0.1"


def test_create_blocked_by_dues_regardless_of_balance(db, make_user):
    user = make_user(wallet_balance="10000.00", postpaid_used="40.00", credit_limit="100.00")

    with pytest.raises(DuesBlockedError) as exc:
        payout_service.create(db, user.id, "60", "bank_transfer")
    assert "$40.00" in exc.value.message


def test_create_with_dues_allowed_holds_the_dues(db, make_user):
    user = make_user(wallet_balance="100.00", postpaid_used="40.00", credit_limit="100.00",
                     allow_payout_with_dues=True)

    with pytest.raises(InsufficientBalanceError) as exc:
        payout_service.create(db, user.id, "61", "bank_transfer")
    assert "Available for payout: $60.00" in exc.value.message

    payout = payout_service.create(db, user.id, "60", "bank_transfer")
    assert payout.amount == Decimal("60.00")


def test_create_respects_minimum_setting(db, user):
    update_setting(db, "min_payout_amount", "75")

    with pytest.raises(BelowMinimumError) as exc:
        payout_service.create(db, user.id, "70", "bank_transfer")
    assert exc.value.message == "Minimum payout amount is $75.00"


def test_pending_payouts_hold_the_balance(db, user):
    payout_service.create(db, user.id, "60", "bank_transfer")

    with pytest.raises(InsufficientAvailableError):
        payout_service.create(db, user.id, "50", "bank_transfer")


def test_approve_debits_exactly_once(db, user, admin):
    payout = payout_service.create(db, user.id, "60", "bank_transfer")

    payout_service.admin_process(db, payout.id, "approved", admin, previous_status="pending")
    assert _wallet(db, user) == Decimal("40.00")

    # retry of the same request
    payout_service.admin_process(db, payout.id, "approved", admin, previous_status="approved")
    assert _wallet(db, user) == Decimal("40.00")

    payout_service.admin_process(db, payout.id, "completed", admin, previous_status="approved")
    assert _wallet(db, user) == Decimal("40.00")
    debits = db.query(WalletTransaction).filter(WalletTransaction.payout_id == payout.id).all()
    assert [tx.type for tx in debits] == ["payout_approved"]


def test_reject_after_approve_refunds_exact_amount(db, user, admin):
    payout = payout_service.create(db, user.id, "55.55", "bank_transfer")
    payout_service.admin_process(db, payout.id, "approved", admin)

    payout_service.admin_process(db, payout.id, "rejected", admin, previous_status="approved",
                                 admin_notes="Wrong account")

    assert _wallet(db, user) == Decimal("100.00")
    refund = (
        db.query(WalletTransaction)
        .filter(WalletTransaction.payout_id == payout.id, WalletTransaction.type == "payout_refund")
        .one()
    )
    assert refund.amount == Decimal("55.55")
    notification = db.query(Notification).filter(Notification.type == "payout_rejected").one()
    assert "Reason: Wrong account" in notification.message


def test_reject_from_pending_moves_no_money(db, user, admin):
    payout = payout_service.create(db, user.id, "60", "bank_transfer")

    payout_service.admin_process(db, payout.id, "rejected", admin)

    assert _wallet(db, user) == Decimal("100.00")
    assert db.query(WalletTransaction).count() == 0


def test_revert_to_pending_refunds_and_clears_processed_at(db, user, admin):
    payout = payout_service.create(db, user.id, "60", "bank_transfer")
    payout_service.admin_process(db, payout.id, "completed", admin)

    payout = payout_service.admin_process(db, payout.id, "pending", admin)

    assert payout.processed_at is None
    assert _wallet(db, user) == Decimal("100.00")


def test_stale_previous_status_is_refused(db, user, admin):
    payout = payout_service.create(db, user.id, "60", "bank_transfer")
    payout_service.admin_process(db, payout.id, "approved", admin)

    with pytest.raises(StaleStateError):
        payout_service.admin_process(db, payout.id, "completed", admin, previous_status="pending")


def test_approve_fails_when_wallet_was_drained(db, user, admin):
    payout = payout_service.create(db, user.id, "60", "bank_transfer")
    user.wallet_balance = Decimal("30.00")
    db.commit()

    with pytest.raises(InsufficientBalanceError):
        payout_service.admin_process(db, payout.id, "approved", admin)

    db.refresh(payout)
    assert payout.status == PayoutStatus.PENDING


def test_cancel_pending(db, user):
    payout = payout_service.create(db, user.id, "60", "bank_transfer")

    payout = payout_service.cancel(db, user.id, payout.id, "Changed my mind")

    assert payout.status == PayoutStatus.CANCELLED
    assert payout.admin_notes == "Cancelled by user: Changed my mind"
    history = db.query(PayoutStatusHistory).filter(PayoutStatusHistory.payout_id == payout.id).one()
    assert history.changed_by == user.id
    types = [e.payload["type"] for e in db.query(NotificationOutbox).all()]
    assert "payout_cancelled_admin" in types


def test_cancel_approved_fails_without_touching_wallet(db, user, admin):
    payout = payout_service.create(db, user.id, "60", "bank_transfer")
    payout_service.admin_process(db, payout.id, "approved", admin)

    with pytest.raises(InvalidTransitionError):
        payout_service.cancel(db, user.id, payout.id)

    assert _wallet(db, user) == Decimal("40.00")


def test_cancelled_payout_cannot_be_processed(db, user, admin):
    payout = payout_service.create(db, user.id, "60", "bank_transfer")
    payout_service.cancel(db, user.id, payout.id)

    with pytest.raises(InvalidTransitionError):
        payout_service.admin_process(db, payout.id, "approved", admin)


def test_cancel_someone_elses_payout(db, user, make_user):
    payout = payout_service.create(db, user.id, "60", "bank_transfer")
    other = make_user(wallet_balance="0")

    with pytest.raises(NotFoundError):
        payout_service.cancel(db, other.id, payout.id)


def test_list_payouts_totals_pending(db, make_user, admin):
    a = make_user(wallet_balance="100.00")
    b = make_user(wallet_balance="100.00")
    payout_service.create(db, a.id, "60", "bank_transfer")
    approved = payout_service.create(db, b.id, "70", "bank_transfer")
    payout_service.admin_process(db, approved.id, "approved", admin)

    result = payout_service.list_payouts(db)

    assert len(result["payouts"]) == 2
    assert result["pending_count"] == 1
    assert result["total_pending"] == Decimal("60.00")
    assert len(payout_service.list_payouts(db, "approved")["payouts"]) == 1
