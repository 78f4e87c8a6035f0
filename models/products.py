# models/products.py

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
    Text,
)
from sqlalchemy.sql import func

from models import Base


class ProductStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_products_price_non_negative"),
        CheckConstraint("commission >= 1 AND commission <= 50", name="ck_products_commission_range"),
        CheckConstraint("sales >= 0", name="ck_products_sales_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)

    vendor_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=False)

    # Price in minor units, commission as integer percent (1-50)
    price = Column(BigInteger, nullable=False)
    commission = Column(Integer, nullable=False)

    status = Column(Enum(ProductStatus), nullable=False, default=ProductStatus.PENDING)

    # Cumulative units sold, bumped by the settlement engine only
    sales = Column(Integer, nullable=False, default=0, server_default="0")

    created_at = Column(DateTime(timezone=True), server_default=func.now())
