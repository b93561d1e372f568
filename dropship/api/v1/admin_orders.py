"""
Admin order creation and status updates
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from dropship.database import get_db
from dropship.api.admin_deps import require_manager_or_above
from dropship.models.admin import Admin
from dropship.schemas.common import ResponseModel, dump
from dropship.schemas.order import OrderCreate, OrderStatusUpdate, OrderResponse
from dropship.services import order_service

router = APIRouter()


@router.post("", response_model=ResponseModel, status_code=201)
def create_order(
    body: OrderCreate,
    request: Request,
    admin: Admin = Depends(require_manager_or_above),
    db: Session = Depends(get_db)
):
    order = order_service.create_order(
        db,
        dropshipper_id=body.dropshipper_id,
        product_name=body.product_name,
        customer_name=body.customer_name,
        base_price=body.base_price,
        selling_price=body.selling_price,
        quantity=body.quantity,
        customer_email=body.customer_email,
        customer_address=body.customer_address,
        status=body.status,
        use_postpaid=body.use_postpaid,
        admin=admin,
        request=request,
    )
    return ResponseModel(success=True, data=dump(OrderResponse, order), message="Order created")


@router.put("/{order_id}/status", response_model=ResponseModel)
def update_order_status(
    order_id: str,
    body: OrderStatusUpdate,
    request: Request,
    admin: Admin = Depends(require_manager_or_above),
    db: Session = Depends(get_db)
):
    """Update order status; wallet credit/debit follows from the status change"""
    order = order_service.update_status(db, order_id, body.status, admin, notes=body.notes, request=request)
    return ResponseModel(success=True, data=dump(OrderResponse, order), message="Order status updated")
