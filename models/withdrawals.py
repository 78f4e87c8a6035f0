# models/withdrawals.py

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


class WithdrawalMethod(str, enum.Enum):
    BANK = "bank"
    MOBILE = "mobile"
    CARD = "card"


class WithdrawalStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Withdrawal(Base):
    __tablename__ = "withdrawals"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_withdrawals_amount_positive"),
    )

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)

    amount = Column(BigInteger, nullable=False)

    payment_method = Column(Enum(WithdrawalMethod), nullable=False)
    # account number / phone number / card number
    payment_details = Column(String(255), nullable=False)

    status = Column(Enum(WithdrawalStatus), nullable=False, default=WithdrawalStatus.PENDING)

    note = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    processed_at = Column(DateTime(timezone=True), nullable=True)
