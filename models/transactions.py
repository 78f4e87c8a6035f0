# models/transactions.py

import enum

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
)
from sqlalchemy.sql import func

from models import Base


class TransactionType(str, enum.Enum):
    SALE = "sale"
    COMMISSION = "commission"
    WITHDRAWAL = "withdrawal"


# Debits are stored as positive amounts: the type carries the direction.
DEBIT_TYPES = frozenset({TransactionType.WITHDRAWAL})


class Transaction(Base):
    """
    Ledger entry. Append-only: the signed sum of a user's rows must always
    equal profiles.wallet_balance for that user.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_transactions_amount_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)

    type = Column(Enum(TransactionType), nullable=False)
    amount = Column(BigInteger, nullable=False)

    description = Column(String(500), nullable=True)

    # order id or withdrawal id, depending on type
    reference_id = Column(String(64), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    @property
    def signed_amount(self) -> int:
        return -int(self.amount) if self.type in DEBIT_TYPES else int(self.amount)
