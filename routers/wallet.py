# routers/wallet.py

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app import wallet_service
from app.db import get_db
from app.deps_auth import Identity, get_current_identity
from app.errors import MarketplaceError, to_http
from models.transactions import Transaction
from schemas.wallet import TransactionOut, WalletOut

router = APIRouter(prefix="/wallet", tags=["Wallet"])


def transaction_to_out(t: Transaction) -> TransactionOut:
    return TransactionOut(
        id=t.id,
        type=t.type.value,
        amount=int(t.amount),
        signed_amount=t.signed_amount,
        description=t.description,
        reference_id=t.reference_id,
        created_at=t.created_at,
    )


@router.get("/me", response_model=WalletOut)
def my_wallet(
    limit: int = 100,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    try:
        balance = wallet_service.get_balance(db, identity.user_id)
    except MarketplaceError as e:
        raise to_http(e)

    entries = wallet_service.list_entries(db, identity.user_id, limit=max(1, min(limit, 500)))
    return WalletOut(
        user_id=identity.user_id,
        balance=balance,
        transactions=[transaction_to_out(t) for t in entries],
    )
