# app/withdrawal_service.py

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from app import wallet_service
from app.errors import (
    InsufficientFunds,
    InvalidAmount,
    InvalidInput,
    InvalidPaymentMethod,
    InvalidStateTransition,
    NotFound,
)
from models.transactions import TransactionType
from models.withdrawals import Withdrawal, WithdrawalMethod, WithdrawalStatus

logger = logging.getLogger(__name__)


def _parse_method(method) -> WithdrawalMethod:
    if isinstance(method, WithdrawalMethod):
        return method
    try:
        return WithdrawalMethod((method or "").strip().lower())
    except ValueError:
        allowed = ", ".join(m.value for m in WithdrawalMethod)
        raise InvalidPaymentMethod(f"Payment method must be one of: {allowed}.")


def request_withdrawal(
    db: Session,
    *,
    user_id: int,
    amount: int,
    method,
    details: Optional[str],
) -> Withdrawal:
    """
    Record a payout request. The balance is only checked here: the debit
    happens when an admin approves.
    """
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmount("Please enter a valid amount.")

    payment_method = _parse_method(method)

    details = (details or "").strip()
    if not details:
        raise InvalidInput("Payment details are required.")

    balance = wallet_service.get_balance(db, user_id)
    if amount > balance:
        raise InsufficientFunds("Amount exceeds your balance.")

    withdrawal = Withdrawal(
        user_id=user_id,
        amount=amount,
        payment_method=payment_method,
        payment_details=details,
        status=WithdrawalStatus.PENDING,
    )
    db.add(withdrawal)
    db.commit()
    db.refresh(withdrawal)

    logger.info(
        "WITHDRAWAL: requested | withdrawal_id=%s | user_id=%s | amount=%s | method=%s",
        withdrawal.id,
        user_id,
        amount,
        payment_method.value,
    )
    return withdrawal


def _load_pending_for_update(db: Session, withdrawal_id: int) -> Withdrawal:
    withdrawal = (
        db.query(Withdrawal)
        .filter(Withdrawal.id == withdrawal_id)
        .with_for_update()
        .first()
    )
    if not withdrawal:
        raise NotFound("Withdrawal not found.")
    if withdrawal.status != WithdrawalStatus.PENDING:
        raise InvalidStateTransition(f"Withdrawal is already {withdrawal.status.value}.")
    return withdrawal


def approve_withdrawal(db: Session, withdrawal_id: int, note: Optional[str] = None) -> Withdrawal:
    """
    Status change + balance debit + ledger row in one transaction. Funds are
    re-checked by the conditional debit, the balance may have moved since the
    request.
    """
    try:
        withdrawal = _load_pending_for_update(db, withdrawal_id)

        wallet_service.debit(
            db,
            user_id=withdrawal.user_id,
            amount=int(withdrawal.amount),
            tx_type=TransactionType.WITHDRAWAL,
            description=f"Withdrawal #{withdrawal.id} via {withdrawal.payment_method.value}",
            reference_id=str(withdrawal.id),
        )

        withdrawal.status = WithdrawalStatus.APPROVED
        withdrawal.processed_at = datetime.now(timezone.utc)
        if note:
            withdrawal.note = note.strip()[:255]

        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(withdrawal)
    logger.info(
        "WITHDRAWAL: approved | withdrawal_id=%s | user_id=%s | amount=%s",
        withdrawal.id,
        withdrawal.user_id,
        withdrawal.amount,
    )
    return withdrawal


def reject_withdrawal(db: Session, withdrawal_id: int, note: Optional[str] = None) -> Withdrawal:
    try:
        withdrawal = _load_pending_for_update(db, withdrawal_id)
        withdrawal.status = WithdrawalStatus.REJECTED
        withdrawal.processed_at = datetime.now(timezone.utc)
        if note:
            withdrawal.note = note.strip()[:255]
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(withdrawal)
    logger.info("WITHDRAWAL: rejected | withdrawal_id=%s | user_id=%s", withdrawal.id, withdrawal.user_id)
    return withdrawal


def list_withdrawals(
    db: Session,
    *,
    user_id: Optional[int] = None,
    status: Optional[WithdrawalStatus] = None,
) -> list[Withdrawal]:
    q = db.query(Withdrawal)
    if user_id is not None:
        q = q.filter(Withdrawal.user_id == user_id)
    if status is not None:
        q = q.filter(Withdrawal.status == status)
    return q.order_by(Withdrawal.created_at.desc(), Withdrawal.id.desc()).all()
