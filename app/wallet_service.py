# app/wallet_service.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from app.errors import InsufficientFunds, InvalidAmount, NotFound
from models.profiles import Profile
from models.transactions import DEBIT_TYPES, Transaction, TransactionType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WalletAudit:
    user_id: int
    wallet_balance: int
    ledger_balance: int

    @property
    def consistent(self) -> bool:
        return self.wallet_balance == self.ledger_balance

    @property
    def drift(self) -> int:
        return self.wallet_balance - self.ledger_balance


def _append_entry(
    db: Session,
    *,
    user_id: int,
    tx_type: TransactionType,
    amount: int,
    description: Optional[str],
    reference_id: Optional[str],
) -> Transaction:
    entry = Transaction(
        user_id=user_id,
        type=tx_type,
        amount=amount,
        description=description,
        reference_id=reference_id,
    )
    db.add(entry)
    return entry


def credit(
    db: Session,
    *,
    user_id: int,
    amount: int,
    tx_type: TransactionType,
    description: Optional[str] = None,
    reference_id: Optional[str] = None,
) -> Transaction:
    """
    Atomic balance increment + ledger append, inside the caller's transaction.
    The caller commits.
    """
    if tx_type in DEBIT_TYPES:
        raise InvalidAmount(f"{tx_type.value} is a debit type, cannot credit with it.")
    if amount < 0:
        raise InvalidAmount("Credit amount must be >= 0.")

    updated = (
        db.query(Profile)
        .filter(Profile.id == user_id)
        .update(
            {Profile.wallet_balance: Profile.wallet_balance + amount},
            synchronize_session=False,
        )
    )
    if updated != 1:
        raise NotFound(f"Profile {user_id} not found.")

    return _append_entry(
        db,
        user_id=user_id,
        tx_type=tx_type,
        amount=amount,
        description=description,
        reference_id=reference_id,
    )


def debit(
    db: Session,
    *,
    user_id: int,
    amount: int,
    tx_type: TransactionType = TransactionType.WITHDRAWAL,
    description: Optional[str] = None,
    reference_id: Optional[str] = None,
) -> Transaction:
    """
    Conditional atomic decrement: the UPDATE only matches while the balance
    covers the amount, so concurrent debits can never drive it negative.
    """
    if tx_type not in DEBIT_TYPES:
        raise InvalidAmount(f"{tx_type.value} is not a debit type.")
    if amount <= 0:
        raise InvalidAmount("Debit amount must be > 0.")

    updated = (
        db.query(Profile)
        .filter(Profile.id == user_id, Profile.wallet_balance >= amount)
        .update(
            {Profile.wallet_balance: Profile.wallet_balance - amount},
            synchronize_session=False,
        )
    )
    if updated != 1:
        exists = db.query(Profile.id).filter(Profile.id == user_id).first()
        if not exists:
            raise NotFound(f"Profile {user_id} not found.")
        raise InsufficientFunds("Insufficient wallet balance.")

    return _append_entry(
        db,
        user_id=user_id,
        tx_type=tx_type,
        amount=amount,
        description=description,
        reference_id=reference_id,
    )


def get_balance(db: Session, user_id: int) -> int:
    balance = db.query(Profile.wallet_balance).filter(Profile.id == user_id).scalar()
    if balance is None:
        raise NotFound(f"Profile {user_id} not found.")
    return int(balance)


def ledger_balance(db: Session, user_id: int) -> int:
    signed = case(
        (Transaction.type.in_(list(DEBIT_TYPES)), -Transaction.amount),
        else_=Transaction.amount,
    )
    total = (
        db.query(func.coalesce(func.sum(signed), 0))
        .filter(Transaction.user_id == user_id)
        .scalar()
    )
    return int(total or 0)


def list_entries(db: Session, user_id: int, limit: int = 100) -> list[Transaction]:
    return (
        db.query(Transaction)
        .filter(Transaction.user_id == user_id)
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .limit(limit)
        .all()
    )


def audit(db: Session, user_id: int) -> WalletAudit:
    result = WalletAudit(
        user_id=user_id,
        wallet_balance=get_balance(db, user_id),
        ledger_balance=ledger_balance(db, user_id),
    )
    if not result.consistent:
        logger.error(
            "WALLET: ledger drift | user_id=%s | wallet=%s | ledger=%s",
            user_id,
            result.wallet_balance,
            result.ledger_balance,
        )
    return result
