# routers/withdrawals.py

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app import withdrawal_service
from app.db import get_db
from app.deps_auth import Identity, get_current_identity
from app.errors import MarketplaceError, to_http
from models.withdrawals import Withdrawal
from schemas.withdrawals import WithdrawalCreate, WithdrawalOut

router = APIRouter(prefix="/withdrawals", tags=["Withdrawals"])


def withdrawal_to_out(w: Withdrawal) -> WithdrawalOut:
    return WithdrawalOut(
        id=w.id,
        user_id=w.user_id,
        amount=int(w.amount),
        payment_method=w.payment_method,
        payment_details=w.payment_details,
        status=w.status.value,
        note=w.note,
        created_at=w.created_at,
        processed_at=w.processed_at,
    )


@router.post("", response_model=WithdrawalOut, status_code=status.HTTP_201_CREATED)
def request_withdrawal(
    payload: WithdrawalCreate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    try:
        w = withdrawal_service.request_withdrawal(
            db,
            user_id=identity.user_id,
            amount=payload.amount,
            method=payload.payment_method,
            details=payload.payment_details,
        )
    except MarketplaceError as e:
        raise to_http(e)
    return withdrawal_to_out(w)


@router.get("/me", response_model=List[WithdrawalOut])
def my_withdrawals(
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    return [withdrawal_to_out(w) for w in withdrawal_service.list_withdrawals(db, user_id=identity.user_id)]
