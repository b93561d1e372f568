"""
Admin order operations. Wallet effects of status changes are applied by the
flush hook in order_wallet_sync, never here.
"""
import logging
import random
import string
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from dropship.exceptions import NotFoundError, ValidationError
from dropship.models.admin import Admin
from dropship.models.order import Order, OrderStatus, PAID_STATUSES
from dropship.models.order_status_history import OrderStatusHistory
from dropship.services import order_wallet_sync  # noqa: F401  registers the wallet hook
from dropship.services.postpaid_service import charge_order_to_credit
from dropship.services.state_machine import ensure_transition
from dropship.services.wallet_service import lock_user
from dropship.utils.money import to_decimal, ZERO
from dropship.utils.notification_helper import create_notification, enqueue_email
from dropship.utils.admin_activity import log_admin_activity

logger = logging.getLogger(__name__)

STATUS_LABELS = {
    OrderStatus.PENDING_PAYMENT: "Pending Payment",
    OrderStatus.PAID_BY_USER: "Paid by Customer",
    OrderStatus.PROCESSING: "Processing",
    OrderStatus.COMPLETED: "Completed",
    OrderStatus.CANCELLED: "Cancelled",
    OrderStatus.POSTPAID_PENDING: "Postpaid Pending",
}


def generate_order_number() -> str:
    """Generate unique order number"""
    timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
    random_str = ''.join(random.choices(string.ascii_uppercase + string.digits, k=6))
    return f"DS{timestamp}{random_str}"


def _parse_status(value) -> OrderStatus:
    if isinstance(value, str) and value.lower() == "canceled":
        value = "cancelled"
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValidationError(
            f"Invalid status: {value}. Valid values: {', '.join(s.value for s in OrderStatus)}"
        )


def create_order(
    db: Session,
    dropshipper_id: str,
    product_name: str,
    customer_name: str,
    base_price,
    selling_price,
    quantity: int = 1,
    customer_email: Optional[str] = None,
    customer_address: Optional[str] = None,
    status=OrderStatus.PENDING_PAYMENT,
    use_postpaid: bool = False,
    admin: Optional[Admin] = None,
    request=None,
) -> Order:
    base_price = to_decimal(base_price)
    selling_price = to_decimal(selling_price)
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1")
    if base_price < ZERO or selling_price < ZERO:
        raise ValidationError("Prices cannot be negative")

    status = OrderStatus.PENDING_PAYMENT if use_postpaid else _parse_status(status)
    if status == OrderStatus.POSTPAID_PENDING:
        raise ValidationError("Orders enter postpaid_pending only when charged to postpaid credit")

    try:
        user = lock_user(db, dropshipper_id)
        now = datetime.utcnow()
        order = Order(
            id=str(uuid.uuid4()),
            order_number=generate_order_number(),
            dropshipper_id=user.id,
            product_name=product_name,
            customer_name=customer_name,
            customer_email=customer_email,
            customer_address=customer_address,
            quantity=quantity,
            base_price=base_price,
            selling_price=selling_price,
            status=status,
            paid_at=now if status in PAID_STATUSES else None,
            completed_at=now if status == OrderStatus.COMPLETED else None,
        )
        db.add(order)
        if use_postpaid:
            charge_order_to_credit(db, user, order)
        db.add(OrderStatusHistory(
            order_id=order.id,
            old_status=None,
            status=order.status,
            changed_by=admin.id if admin else None,
            notes="Order created",
        ))
        if admin is not None:
            log_admin_activity(
                db=db,
                admin_id=admin.id,
                action="order_created",
                entity_type="order",
                entity_id=order.id,
                details={"order_number": order.order_number, "use_postpaid": use_postpaid},
                request=request,
            )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(order)
    logger.info(f"Order {order.order_number} created for {dropshipper_id} ({order.status.value})")
    return order


def update_status(
    db: Session,
    order_id: str,
    new_status,
    admin: Admin,
    notes: Optional[str] = None,
    request=None,
) -> Order:
    new_status = _parse_status(new_status)

    try:
        order = db.query(Order).filter(Order.id == order_id).with_for_update().first()
        if not order:
            raise NotFoundError("Order not found")

        old_status = order.status
        if new_status == old_status:
            return order
        ensure_transition("order", old_status, new_status)

        order.status = new_status
        if new_status == OrderStatus.COMPLETED:
            order.completed_at = datetime.utcnow()
        if new_status in (OrderStatus.PENDING_PAYMENT, OrderStatus.CANCELLED) and old_status in PAID_STATUSES:
            order.paid_at = None
            order.payment_proof_url = None

        db.add(OrderStatusHistory(
            order_id=order.id,
            old_status=old_status,
            status=new_status,
            changed_by=admin.id,
            notes=notes,
        ))
        log_admin_activity(
            db=db,
            admin_id=admin.id,
            action="order_status_updated",
            entity_type="order",
            entity_id=order.id,
            details={"old_status": old_status.value, "new_status": new_status.value, "notes": notes},
            request=request,
        )

        owner = order.dropshipper
        if owner is not None:
            label = STATUS_LABELS[new_status]
            create_notification(
                db=db,
                user_id=owner.id,
                type=f"order_{new_status.value}",
                title=f"Order #{order.order_number} {label}",
                message=f"Your order for {order.product_name} has been updated to: {label}.",
                category="order",
                reference_id=order.id,
            )
            if owner.email:
                enqueue_email(
                    db,
                    "order_completed_notification" if new_status == OrderStatus.COMPLETED else "order_status_change",
                    userName=owner.name,
                    userEmail=owner.email,
                    recipientEmail=owner.email,
                    orderNumber=order.order_number,
                    productName=order.product_name or "Product",
                    orderStatus=new_status.value,
                    previousStatus=old_status.value,
                )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(order)
    logger.info(f"Order {order.order_number} status {old_status.value} -> {new_status.value} by admin {admin.id}")
    return order
