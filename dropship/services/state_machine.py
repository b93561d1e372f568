"""
Legal status transitions for payouts, orders and chat sessions.

`ensure_transition` is the only place transition validity is decided;
services call it before writing a new status.
"""
from typing import Dict, FrozenSet, Optional
import enum

from dropship.exceptions import InvalidTransitionError
from dropship.models.payout import PayoutStatus
from dropship.models.order import OrderStatus
from dropship.models.chat import ChatStatus


PAYOUT_TRANSITIONS: Dict[PayoutStatus, FrozenSet[PayoutStatus]] = {
    PayoutStatus.PENDING: frozenset({
        PayoutStatus.APPROVED, PayoutStatus.COMPLETED, PayoutStatus.REJECTED, PayoutStatus.CANCELLED,
    }),
    PayoutStatus.APPROVED: frozenset({PayoutStatus.COMPLETED, PayoutStatus.REJECTED, PayoutStatus.PENDING}),
    PayoutStatus.COMPLETED: frozenset({PayoutStatus.REJECTED, PayoutStatus.PENDING}),
    PayoutStatus.REJECTED: frozenset({PayoutStatus.PENDING}),
    PayoutStatus.CANCELLED: frozenset(),
}

_ADMIN_ORDER_STATUSES = frozenset({
    OrderStatus.PENDING_PAYMENT, OrderStatus.PAID_BY_USER, OrderStatus.PROCESSING,
    OrderStatus.COMPLETED, OrderStatus.CANCELLED,
})

# Admins may toggle freely between the regular statuses; postpaid orders only
# leave postpaid_pending by repayment or cancellation and nothing re-enters it.
ORDER_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    status: _ADMIN_ORDER_STATUSES - {status} for status in _ADMIN_ORDER_STATUSES
}
ORDER_TRANSITIONS[OrderStatus.POSTPAID_PENDING] = frozenset({OrderStatus.PAID_BY_USER, OrderStatus.CANCELLED})

CHAT_TRANSITIONS: Dict[Optional[ChatStatus], FrozenSet[ChatStatus]] = {
    # no session yet
    None: frozenset({ChatStatus.WAITING_FOR_SUPPORT, ChatStatus.ACTIVE, ChatStatus.CLOSED}),
    ChatStatus.WAITING_FOR_SUPPORT: frozenset({ChatStatus.ACTIVE, ChatStatus.USER_LEFT, ChatStatus.CLOSED}),
    ChatStatus.ACTIVE: frozenset({ChatStatus.WAITING_FOR_SUPPORT, ChatStatus.USER_LEFT, ChatStatus.CLOSED}),
    ChatStatus.USER_LEFT: frozenset({ChatStatus.ACTIVE, ChatStatus.WAITING_FOR_SUPPORT, ChatStatus.CLOSED}),
    ChatStatus.CLOSED: frozenset({ChatStatus.ACTIVE, ChatStatus.WAITING_FOR_SUPPORT}),
}

_TABLES = {
    "payout": PAYOUT_TRANSITIONS,
    "order": ORDER_TRANSITIONS,
    "chat": CHAT_TRANSITIONS,
}


def _label(status) -> str:
    if status is None:
        return "none"
    return status.value if isinstance(status, enum.Enum) else str(status)


def can_transition(domain: str, current, target) -> bool:
    """True if `current -> target` is a legal move; staying put is always legal."""
    if current == target:
        return True
    table = _TABLES[domain]
    return target in table.get(current, frozenset())


def ensure_transition(domain: str, current, target) -> None:
    if not can_transition(domain, current, target):
        raise InvalidTransitionError(
            f"Cannot move {domain} from {_label(current)} to {_label(target)}"
        )
