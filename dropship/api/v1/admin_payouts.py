"""
Admin payout processing
"""
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from typing import Optional
from dropship.database import get_db
from dropship.api.admin_deps import require_manager_or_above
from dropship.models.admin import Admin
from dropship.models.payout import PayoutStatus
from dropship.schemas.common import ResponseModel, dump
from dropship.schemas.payout import PayoutProcess, PayoutResponse, PayoutHistoryResponse
from dropship.services import payout_service

router = APIRouter()

_STATUS_MESSAGES = {
    PayoutStatus.APPROVED: "The payout has been approved and dropshipper notified.",
    PayoutStatus.REJECTED: "The payout has been rejected and dropshipper notified.",
    PayoutStatus.COMPLETED: "The payout is complete and dropshipper notified.",
    PayoutStatus.PENDING: "The payout status has been reverted to pending.",
}


@router.get("", response_model=ResponseModel)
def list_payouts(
    status: Optional[PayoutStatus] = Query(None),
    admin: Admin = Depends(require_manager_or_above),
    db: Session = Depends(get_db)
):
    result = payout_service.list_payouts(db, status.value if status else None)
    return ResponseModel(
        success=True,
        data={
            "payouts": [dump(PayoutResponse, p) for p in result["payouts"]],
            "pendingCount": result["pending_count"],
            "totalPending": float(result["total_pending"]),
        }
    )


@router.put("/{payout_id}/status", response_model=ResponseModel)
def process_payout(
    payout_id: str,
    body: PayoutProcess,
    request: Request,
    admin: Admin = Depends(require_manager_or_above),
    db: Session = Depends(get_db)
):
    payout = payout_service.admin_process(
        db,
        payout_id,
        body.status,
        admin,
        previous_status=body.previous_status,
        admin_notes=body.admin_notes,
        request=request,
    )
    return ResponseModel(
        success=True,
        data=dump(PayoutResponse, payout),
        message=_STATUS_MESSAGES.get(body.status, "The payout status has been updated.")
    )


@router.get("/{payout_id}/history", response_model=ResponseModel)
def get_payout_history(
    payout_id: str,
    admin: Admin = Depends(require_manager_or_above),
    db: Session = Depends(get_db)
):
    history = payout_service.payout_history(db, payout_id)
    return ResponseModel(success=True, data={"history": [dump(PayoutHistoryResponse, h) for h in history]})
