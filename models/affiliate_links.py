# models/affiliate_links.py

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from models import Base


class AffiliateLink(Base):
    __tablename__ = "affiliate_links"
    __table_args__ = (
        # one link per (affiliate, product)
        UniqueConstraint("affiliate_id", "product_id", name="uq_affiliate_links_affiliate_product"),
    )

    id = Column(Integer, primary_key=True, index=True)

    affiliate_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)

    # Referral code shared in URLs (?ref=AFL-XXXXXXXX)
    code = Column(String(64), nullable=False, unique=True)

    clicks = Column(Integer, nullable=False, default=0, server_default="0")
    conversions = Column(Integer, nullable=False, default=0, server_default="0")
    commission_earned = Column(BigInteger, nullable=False, default=0, server_default="0")

    is_active = Column(Boolean, nullable=False, default=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    product = relationship("Product")
