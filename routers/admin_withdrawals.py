# routers/admin_withdrawals.py

from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app import withdrawal_service
from app.db import get_db
from app.deps_auth import Identity, require_roles
from app.email_service import safe_send, send_withdrawal_status_email
from app.errors import MarketplaceError, to_http
from models.profiles import AppRole, Profile
from models.withdrawals import Withdrawal, WithdrawalStatus
from routers.withdrawals import withdrawal_to_out
from schemas.withdrawals import WithdrawalDecision, WithdrawalOut

router = APIRouter(
    prefix="/admin/withdrawals",
    tags=["Admin Withdrawals"],
)

admin_only = require_roles(AppRole.ADMIN)


def _notify(db: Session, w: Withdrawal) -> None:
    email = db.query(Profile.email).filter(Profile.id == w.user_id).scalar()
    if not email:
        return
    safe_send(
        send_withdrawal_status_email,
        to_email=email,
        withdrawal_id=w.id,
        amount=int(w.amount),
        status=w.status.value,
        note=w.note,
    )


@router.get("", response_model=List[WithdrawalOut])
def list_withdrawals(
    status: Optional[WithdrawalStatus] = None,
    db: Session = Depends(get_db),
    admin: Identity = Depends(admin_only),
):
    return [withdrawal_to_out(w) for w in withdrawal_service.list_withdrawals(db, status=status)]


@router.post("/{withdrawal_id}/approve", response_model=WithdrawalOut)
def approve(
    withdrawal_id: int,
    payload: Optional[WithdrawalDecision] = None,
    db: Session = Depends(get_db),
    admin: Identity = Depends(admin_only),
):
    try:
        w = withdrawal_service.approve_withdrawal(db, withdrawal_id, note=payload.note if payload else None)
    except MarketplaceError as e:
        raise to_http(e)
    _notify(db, w)
    return withdrawal_to_out(w)


@router.post("/{withdrawal_id}/reject", response_model=WithdrawalOut)
def reject(
    withdrawal_id: int,
    payload: Optional[WithdrawalDecision] = None,
    db: Session = Depends(get_db),
    admin: Identity = Depends(admin_only),
):
    try:
        w = withdrawal_service.reject_withdrawal(db, withdrawal_id, note=payload.note if payload else None)
    except MarketplaceError as e:
        raise to_http(e)
    _notify(db, w)
    return withdrawal_to_out(w)
