"""
Wallet sync for order status changes.

This hook is the only code that moves money when an order enters or leaves
`completed`. It runs inside every flush, so the credit/debit commits (or rolls
back) together with the status change that caused it. The amount credited is
stored on the order and exactly that amount is taken back when the order
leaves `completed`, so any number of toggles nets at most one credit.

Importing this module registers the listener.
"""
import logging
import uuid

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

from dropship.models.order import Order, OrderStatus
from dropship.models.user import User
from dropship.services.wallet_service import credit_wallet, debit_wallet
from dropship.utils.money import to_decimal, ZERO

logger = logging.getLogger(__name__)


def _status_changed(order: Order) -> bool:
    return inspect(order).attrs.status.history.has_changes()


def _sync_order(session: Session, order: Order) -> None:
    completed = order.status == OrderStatus.COMPLETED
    credited = order.wallet_credited_amount

    if completed and credited is None:
        profit = to_decimal(order.profit)
        if profit <= ZERO or not order.dropshipper_id:
            return
        user = session.get(User, order.dropshipper_id, with_for_update=True)
        if user is None:
            return
        if order.id is None:
            order.id = str(uuid.uuid4())
        credit_wallet(
            session, user, profit, "order_completed",
            f"Profit from order {order.order_number}",
            order_id=order.id,
        )
        order.wallet_credited_amount = profit

    elif not completed and credited is not None:
        amount = to_decimal(credited)
        user = session.get(User, order.dropshipper_id, with_for_update=True) if order.dropshipper_id else None
        if user is not None and amount > ZERO:
            # Raises InsufficientBalanceError if the profit was already withdrawn
            debit_wallet(
                session, user, amount, "order_reversed",
                f"Order {order.order_number} moved to {order.status.value} - profit reversed",
                order_id=order.id,
            )
        else:
            logger.warning(f"Order {order.order_number} left completed with no wallet to debit")
        order.wallet_credited_amount = None


@event.listens_for(Session, "before_flush")
def sync_order_wallets(session, flush_context, instances):
    for obj in list(session.new):
        if isinstance(obj, Order):
            _sync_order(session, obj)
    for obj in list(session.dirty):
        if isinstance(obj, Order) and _status_changed(obj):
            _sync_order(session, obj)
