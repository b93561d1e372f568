from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from dropship.database import get_db
from dropship.api.deps import get_current_user, get_client_ip
from dropship.models.user import User
from dropship.schemas.common import ResponseModel, dump
from dropship.schemas.payout import PayoutCreate, PayoutCancel, PayoutResponse
from dropship.services import payout_service

router = APIRouter()


@router.get("", response_model=ResponseModel)
def list_my_payouts(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    payouts = payout_service.list_user_payouts(db, current_user.id)
    return ResponseModel(success=True, data={"payouts": [dump(PayoutResponse, p) for p in payouts]})


@router.post("", response_model=ResponseModel, status_code=201)
def request_payout(
    body: PayoutCreate,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    payout = payout_service.create(
        db,
        current_user.id,
        body.amount,
        body.payment_method,
        body.payment_details,
        ip_address=get_client_ip(request),
    )
    return ResponseModel(
        success=True,
        data=dump(PayoutResponse, payout),
        message="Your payout request has been submitted for review."
    )


@router.post("/{payout_id}/cancel", response_model=ResponseModel)
def cancel_payout(
    payout_id: str,
    body: PayoutCancel,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    payout = payout_service.cancel(db, current_user.id, payout_id, body.reason)
    return ResponseModel(
        success=True,
        data=dump(PayoutResponse, payout),
        message="Your payout request has been cancelled. The record is preserved in your history."
    )
