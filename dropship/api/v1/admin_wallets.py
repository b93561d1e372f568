from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from dropship.database import get_db
from dropship.api.admin_deps import require_manager_or_above
from dropship.exceptions import NotFoundError
from dropship.models.admin import Admin
from dropship.models.user import User
from dropship.schemas.common import ResponseModel, dump
from dropship.schemas.wallet import WalletAdjustRequest, WalletResponse
from dropship.services import wallet_service

router = APIRouter()


@router.post("/{user_id}/adjust", response_model=ResponseModel)
def adjust_wallet(
    user_id: str,
    body: WalletAdjustRequest,
    request: Request,
    admin: Admin = Depends(require_manager_or_above),
    db: Session = Depends(get_db)
):
    user = wallet_service.adjust_wallet(db, user_id, body.amount, body.reason, admin, request=request)
    return ResponseModel(
        success=True,
        data=dump(WalletResponse, {"balance": user.wallet_balance, "transactions": []}),
        message="Wallet adjusted"
    )


@router.get("/{user_id}/transactions", response_model=ResponseModel)
def get_wallet_transactions(
    user_id: str,
    limit: int = Query(50, ge=1, le=200),
    admin: Admin = Depends(require_manager_or_above),
    db: Session = Depends(get_db)
):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User not found")
    transactions = wallet_service.list_wallet_transactions(db, user_id, limit=limit)
    return ResponseModel(
        success=True,
        data=dump(WalletResponse, {"balance": user.wallet_balance, "transactions": transactions})
    )
