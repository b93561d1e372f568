from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from dropship.database import get_db
from dropship.api.deps import get_current_user
from dropship.models.user import User
from dropship.schemas.common import ResponseModel, dump
from dropship.schemas.wallet import WalletResponse
from dropship.services import wallet_service

router = APIRouter()


@router.get("", response_model=ResponseModel)
def get_wallet(
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Wallet balance with the most recent transactions"""
    transactions = wallet_service.list_wallet_transactions(db, current_user.id, limit=limit)
    return ResponseModel(
        success=True,
        data=dump(WalletResponse, {"balance": current_user.wallet_balance, "transactions": transactions})
    )
