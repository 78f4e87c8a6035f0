# schemas/wallet.py

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class TransactionOut(BaseModel):
    id: int
    type: str
    amount: int
    signed_amount: int
    description: Optional[str] = None
    reference_id: Optional[str] = None
    created_at: Optional[datetime] = None


class WalletOut(BaseModel):
    user_id: int
    balance: int
    transactions: List[TransactionOut]


class WalletAuditOut(BaseModel):
    user_id: int
    wallet_balance: int
    ledger_balance: int
    consistent: bool
    drift: int
