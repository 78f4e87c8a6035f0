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
from sqlalchemy.orm import relationship
import enum

from models import Base


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class SettlementState(str, enum.Enum):
    DRAFTED = "DRAFTED"
    ORDER_PERSISTED = "ORDER_PERSISTED"
    ITEMS_PERSISTED = "ITEMS_PERSISTED"
    AFFILIATE_CREDITED = "AFFILIATE_CREDITED"
    VENDORS_CREDITED = "VENDORS_CREDITED"
    SETTLED = "SETTLED"
    # order committed, downstream steps rolled back: needs reconciliation
    PARTIAL = "PARTIAL"


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="ck_orders_total_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)

    # Minted by the order assembler: one order per draft, ever
    draft_id = Column(String(64), nullable=False, unique=True)

    customer_name = Column(String(150), nullable=False)
    customer_email = Column(String(255), nullable=False)
    customer_phone = Column(String(50), nullable=True)

    # Sum of price * quantity over the items, minor units. Immutable.
    total_amount = Column(BigInteger, nullable=False)

    status = Column(Enum(OrderStatus), nullable=False, default=OrderStatus.COMPLETED)

    # Link active at checkout time (null = direct sale)
    affiliate_link_id = Column(Integer, ForeignKey("affiliate_links.id"), nullable=True)

    settlement_state = Column(
        Enum(SettlementState),
        nullable=False,
        default=SettlementState.DRAFTED,
    )
    settlement_failed_step = Column(String(50), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # ==============================
    # RELATIONSHIPS
    # ==============================
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )


class OrderItem(Base):
    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),
        CheckConstraint("price >= 0", name="ck_order_items_price_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)

    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)

    # Snapshots taken from the cart at checkout
    title = Column(String(255), nullable=False)
    vendor_id = Column(Integer, ForeignKey("profiles.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    price = Column(BigInteger, nullable=False)
    commission_rate = Column(Integer, nullable=False)

    # commission_per_unit * quantity
    commission_amount = Column(BigInteger, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    order = relationship("Order", back_populates="items")

    @property
    def subtotal(self) -> int:
        return int(self.price) * int(self.quantity)

    @property
    def vendor_net(self) -> int:
        return self.subtotal - int(self.commission_amount)
