from dropship.models.user import User
from dropship.models.admin import Admin, AdminRole
from dropship.models.wallet import WalletTransaction
from dropship.models.postpaid import PostpaidTransaction, PostpaidTransactionType, PostpaidTransactionStatus
from dropship.models.payout import PayoutRequest, PayoutStatus, PayoutStatusHistory
from dropship.models.order import Order, OrderStatus
from dropship.models.order_status_history import OrderStatusHistory
from dropship.models.chat import (
    ChatSession, ChatStatus, ChatMessage, SenderRole, ChatCustomerName,
    ChatRating, ChatReassignmentLog, SupportAgentPresence
)
from dropship.models.notification import Notification, NotificationOutbox, OutboxStatus
from dropship.models.settings import PlatformSetting
from dropship.models.admin_activity_log import AdminActivityLog
from dropship.models.user_activity_log import UserActivityLog

__all__ = [
    "User",
    "Admin",
    "AdminRole",
    "WalletTransaction",
    "PostpaidTransaction",
    "PostpaidTransactionType",
    "PostpaidTransactionStatus",
    "PayoutRequest",
    "PayoutStatus",
    "PayoutStatusHistory",
    "Order",
    "OrderStatus",
    "OrderStatusHistory",
    "ChatSession",
    "ChatStatus",
    "ChatMessage",
    "SenderRole",
    "ChatCustomerName",
    "ChatRating",
    "ChatReassignmentLog",
    "SupportAgentPresence",
    "Notification",
    "NotificationOutbox",
    "OutboxStatus",
    "PlatformSetting",
    "AdminActivityLog",
    "UserActivityLog",
]
