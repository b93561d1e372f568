"""
Admin postpaid credit management
"""
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from dropship.database import get_db
from dropship.api.admin_deps import require_manager_or_above
from dropship.models.admin import Admin
from dropship.schemas.common import ResponseModel, dump
from dropship.schemas.postpaid import (
    AdjustBalanceRequest, ToggleRequest, CreditLimitRequest, DueCycleRequest,
    AllowPayoutWithDuesRequest, PostpaidTransactionResponse, PostpaidUserResponse,
    PostpaidSummaryResponse,
)
from dropship.services import postpaid_service
from dropship.utils.edge_functions import EdgeFunctionClient, get_edge_client

router = APIRouter()


def _user_row(db: Session, user_id: str) -> dict:
    rows = [u for u in postpaid_service.list_postpaid_users(db) if u["user_id"] == user_id]
    return dump(PostpaidUserResponse, rows[0]) if rows else None


@router.get("/users", response_model=ResponseModel)
def list_postpaid_users(
    admin: Admin = Depends(require_manager_or_above),
    db: Session = Depends(get_db)
):
    users = postpaid_service.list_postpaid_users(db)
    return ResponseModel(success=True, data={"users": [dump(PostpaidUserResponse, u) for u in users]})


@router.get("/summary", response_model=ResponseModel)
def get_postpaid_summary(
    admin: Admin = Depends(require_manager_or_above),
    db: Session = Depends(get_db)
):
    summary = postpaid_service.postpaid_summary(db)
    return ResponseModel(success=True, data=dump(PostpaidSummaryResponse, summary))


@router.put("/{user_id}/enabled", response_model=ResponseModel)
def toggle_postpaid(
    user_id: str,
    body: ToggleRequest,
    request: Request,
    admin: Admin = Depends(require_manager_or_above),
    db: Session = Depends(get_db)
):
    postpaid_service.set_enabled(db, user_id, body.enabled, admin=admin, request=request)
    return ResponseModel(success=True, data=_user_row(db, user_id), message="Postpaid status updated.")


@router.put("/{user_id}/credit-limit", response_model=ResponseModel)
def update_credit_limit(
    user_id: str,
    body: CreditLimitRequest,
    request: Request,
    admin: Admin = Depends(require_manager_or_above),
    db: Session = Depends(get_db)
):
    postpaid_service.set_credit_limit(db, user_id, body.credit_limit, admin=admin, request=request)
    return ResponseModel(success=True, data=_user_row(db, user_id), message="Credit limit updated.")


@router.put("/{user_id}/due-cycle", response_model=ResponseModel)
def update_due_cycle(
    user_id: str,
    body: DueCycleRequest,
    request: Request,
    admin: Admin = Depends(require_manager_or_above),
    db: Session = Depends(get_db)
):
    postpaid_service.set_due_cycle(db, user_id, body.due_cycle_days, admin=admin, request=request)
    return ResponseModel(success=True, data=_user_row(db, user_id), message="Due cycle updated.")


@router.put("/{user_id}/allow-payout-with-dues", response_model=ResponseModel)
def update_allow_payout_with_dues(
    user_id: str,
    body: AllowPayoutWithDuesRequest,
    request: Request,
    admin: Admin = Depends(require_manager_or_above),
    db: Session = Depends(get_db)
):
    postpaid_service.set_allow_payout_with_dues(db, user_id, body.allow, admin=admin, request=request)
    return ResponseModel(success=True, data=_user_row(db, user_id), message="Payout permission updated.")


@router.post("/{user_id}/adjust", response_model=ResponseModel)
def adjust_postpaid_balance(
    user_id: str,
    body: AdjustBalanceRequest,
    request: Request,
    admin: Admin = Depends(require_manager_or_above),
    db: Session = Depends(get_db)
):
    tx = postpaid_service.adjust_balance(db, user_id, body.amount, body.reason, admin, request=request)
    return ResponseModel(
        success=True,
        data=dump(PostpaidTransactionResponse, tx),
        message="Balance adjusted successfully."
    )


@router.get("/{user_id}/transactions", response_model=ResponseModel)
def get_user_transactions(
    user_id: str,
    limit: int = Query(50, ge=1, le=200),
    admin: Admin = Depends(require_manager_or_above),
    db: Session = Depends(get_db)
):
    transactions = postpaid_service.list_transactions(db, user_id, limit=limit)
    return ResponseModel(
        success=True,
        data={"transactions": [dump(PostpaidTransactionResponse, t) for t in transactions]}
    )


@router.post("/send-reminders", response_model=ResponseModel)
def send_due_reminders(
    admin: Admin = Depends(require_manager_or_above),
    client: EdgeFunctionClient = Depends(get_edge_client)
):
    result = postpaid_service.send_due_reminders(client)
    return ResponseModel(
        success=True,
        data=result,
        message=f"Sent {result['emailsSent']} emails and {result['notificationsSent']} notifications."
    )
