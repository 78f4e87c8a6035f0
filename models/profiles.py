# models/profiles.py

import enum

from sqlalchemy import BigInteger, CheckConstraint, Column, DateTime, Integer, String
from sqlalchemy.sql import func

from models import Base


class AppRole(str, enum.Enum):
    VENDOR = "vendor"
    AFFILIATE = "affiliate"
    ADMIN = "admin"
    CONSUMER = "consumer"


class Profile(Base):
    __tablename__ = "profiles"
    __table_args__ = (
        CheckConstraint("wallet_balance >= 0", name="ck_profiles_wallet_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)

    email = Column(String(255), nullable=False, unique=True)
    full_name = Column(String(150), nullable=True)
    phone = Column(String(50), nullable=True)

    # Minor units. Only wallet_service touches this column, and always
    # together with a ledger row in `transactions`.
    wallet_balance = Column(BigInteger, nullable=False, default=0, server_default="0")

    created_at = Column(DateTime(timezone=True), server_default=func.now())
