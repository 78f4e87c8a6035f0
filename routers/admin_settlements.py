# routers/admin_settlements.py

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app import settlement_service, wallet_service
from app.db import get_db
from app.deps_auth import Identity, require_roles
from app.errors import MarketplaceError, to_http
from models.orders import Order
from models.profiles import AppRole
from routers.checkout import order_to_out
from schemas.orders import OrderOut
from schemas.wallet import WalletAuditOut

router = APIRouter(prefix="/admin", tags=["Admin Reconciliation"])

admin_only = require_roles(AppRole.ADMIN)


# ---------------------------------------------------------
# Orders whose commission / ledger steps did not land
# ---------------------------------------------------------
@router.get("/settlements/partial", response_model=List[OrderOut])
def partial_settlements(
    db: Session = Depends(get_db),
    admin: Identity = Depends(admin_only),
):
    return [order_to_out(o) for o in settlement_service.list_partial_orders(db)]


@router.post("/settlements/{order_id}/resume", response_model=OrderOut)
def resume_settlement(
    order_id: int,
    db: Session = Depends(get_db),
    admin: Identity = Depends(admin_only),
):
    try:
        settlement_service.resume_settlement(db, order_id)
    except MarketplaceError as e:
        # PartialSettlement included: the order stays flagged with the failed step
        raise to_http(e)

    order = db.query(Order).filter(Order.id == order_id).one()
    return order_to_out(order)


# ---------------------------------------------------------
# Ledger vs wallet balance
# ---------------------------------------------------------
@router.get("/wallets/{user_id}/audit", response_model=WalletAuditOut)
def audit_wallet(
    user_id: int,
    db: Session = Depends(get_db),
    admin: Identity = Depends(admin_only),
):
    try:
        a = wallet_service.audit(db, user_id)
    except MarketplaceError as e:
        raise to_http(e)
    return WalletAuditOut(
        user_id=a.user_id,
        wallet_balance=a.wallet_balance,
        ledger_balance=a.ledger_balance,
        consistent=a.consistent,
        drift=a.drift,
    )
