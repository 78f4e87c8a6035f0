# schemas/withdrawals.py

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from models.withdrawals import WithdrawalMethod


class WithdrawalCreate(BaseModel):
    # minor units
    amount: int
    payment_method: str
    payment_details: str


class WithdrawalDecision(BaseModel):
    note: Optional[str] = None


class WithdrawalOut(BaseModel):
    id: int
    user_id: int
    amount: int
    payment_method: WithdrawalMethod
    payment_details: str
    status: str
    note: Optional[str] = None
    created_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None
