from decimal import Decimal

import pytest

from dropship.exceptions import InsufficientBalanceError, NotFoundError, ValidationError
from dropship.models.admin_activity_log import AdminActivityLog
from dropship.models.wallet import WalletTransaction
from dropship.services import wallet_service


def test_adjust_credits_and_records_ledger_entry(db, user, admin):
    wallet_service.adjust_wallet(db, user.id, "25.50", "Goodwill credit", admin)

    db.refresh(user)
    assert user.wallet_balance == Decimal("125.50")
    tx = db.query(WalletTransaction).filter(WalletTransaction.user_id == user.id).one()
    assert tx.amount == Decimal("25.50")
    assert tx.type == "admin_adjustment"
    assert tx.description == "Admin adjustment: Goodwill credit"
    assert db.query(AdminActivityLog).filter(AdminActivityLog.action == "wallet_adjusted").count() == 1


def test_adjust_debit_records_negative_amount(db, user, admin):
    wallet_service.adjust_wallet(db, user.id, "-40", "Chargeback", admin)

    db.refresh(user)
    assert user.wallet_balance == Decimal("60.00")
    tx = db.query(WalletTransaction).filter(WalletTransaction.user_id == user.id).one()
    assert tx.amount == Decimal("-40.00")


def test_adjust_cannot_overdraw(db, user, admin):
    with pytest.raises(InsufficientBalanceError):
        wallet_service.adjust_wallet(db, user.id, "-100.01", "Too much", admin)

    db.refresh(user)
    assert user.wallet_balance == Decimal("100.00")
    assert db.query(WalletTransaction).count() == 0


@pytest.mark.parametrize("amount, reason", [("0", "reason"), ("10", ""), ("10", "   ")])
def test_adjust_rejects_bad_input(db, user, admin, amount, reason):
    with pytest.raises(ValidationError):
        wallet_service.adjust_wallet(db, user.id, amount, reason, admin)


def test_adjust_unknown_user(db, admin):
    with pytest.raises(NotFoundError):
        wallet_service.adjust_wallet(db, "missing", "10", "reason", admin)
