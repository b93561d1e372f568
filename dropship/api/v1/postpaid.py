from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from dropship.database import get_db
from dropship.api.deps import get_current_user
from dropship.models.user import User
from dropship.schemas.common import ResponseModel, dump
from dropship.schemas.postpaid import (
    RepayRequest, PostpaidStatusResponse, PostpaidTransactionResponse, RepayResponse,
)
from dropship.services import postpaid_service

router = APIRouter()


@router.get("", response_model=ResponseModel)
def get_postpaid_status(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Credit limit, used credit, available credit and dues of the current user"""
    status = postpaid_service.get_status(db, current_user.id)
    return ResponseModel(success=True, data=dump(PostpaidStatusResponse, status))


@router.get("/transactions", response_model=ResponseModel)
def get_postpaid_transactions(
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    transactions = postpaid_service.list_transactions(db, current_user.id, limit=limit)
    return ResponseModel(
        success=True,
        data={"transactions": [dump(PostpaidTransactionResponse, t) for t in transactions]}
    )


@router.post("/repay", response_model=ResponseModel)
def repay_postpaid(
    body: RepayRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Pay postpaid dues from the wallet balance"""
    result = postpaid_service.repay(db, current_user.id, body.amount)
    return ResponseModel(
        success=True,
        data=dump(RepayResponse, result),
        message="Your postpaid dues have been reduced."
    )
