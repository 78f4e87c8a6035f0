"""create marketplace settlement tables

Revision ID: a3c91f0e7b21
Revises:
Create Date: 2026-10-18 10:12:04.418211
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "a3c91f0e7b21"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


product_status = sa.Enum("PENDING", "APPROVED", "REJECTED", name="productstatus")
order_status = sa.Enum("PENDING", "PROCESSING", "COMPLETED", "CANCELLED", name="orderstatus")
settlement_state = sa.Enum(
    "DRAFTED",
    "ORDER_PERSISTED",
    "ITEMS_PERSISTED",
    "AFFILIATE_CREDITED",
    "VENDORS_CREDITED",
    "SETTLED",
    "PARTIAL",
    name="settlementstate",
)
transaction_type = sa.Enum("SALE", "COMMISSION", "WITHDRAWAL", name="transactiontype")
withdrawal_method = sa.Enum("BANK", "MOBILE", "CARD", name="withdrawalmethod")
withdrawal_status = sa.Enum("PENDING", "APPROVED", "REJECTED", name="withdrawalstatus")


def upgrade() -> None:
    """
    Tables for the order / commission settlement flow.

    Money is BigInteger minor units everywhere. Counters are only updated with
    `x = x + :delta` statements, the CHECK constraints are the last line
    against negative balances.
    """
    op.create_table(
        "profiles",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("full_name", sa.String(length=150), nullable=True),
        sa.Column("phone", sa.String(length=50), nullable=True),
        sa.Column("wallet_balance", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("wallet_balance >= 0", name="ck_profiles_wallet_non_negative"),
    )
    op.create_index(op.f("ix_profiles_id"), "profiles", ["id"], unique=False)

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("vendor_id", sa.Integer(), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("price", sa.BigInteger(), nullable=False),
        sa.Column("commission", sa.Integer(), nullable=False),
        sa.Column("status", product_status, nullable=False),
        sa.Column("sales", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("price >= 0", name="ck_products_price_non_negative"),
        sa.CheckConstraint("commission >= 1 AND commission <= 50", name="ck_products_commission_range"),
        sa.CheckConstraint("sales >= 0", name="ck_products_sales_non_negative"),
    )
    op.create_index(op.f("ix_products_id"), "products", ["id"], unique=False)
    op.create_index(op.f("ix_products_vendor_id"), "products", ["vendor_id"], unique=False)

    op.create_table(
        "affiliate_links",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("affiliate_id", sa.Integer(), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("code", sa.String(length=64), nullable=False, unique=True),
        sa.Column("clicks", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("conversions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("commission_earned", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("affiliate_id", "product_id", name="uq_affiliate_links_affiliate_product"),
    )
    op.create_index(op.f("ix_affiliate_links_id"), "affiliate_links", ["id"], unique=False)
    op.create_index(op.f("ix_affiliate_links_affiliate_id"), "affiliate_links", ["affiliate_id"], unique=False)
    op.create_index(op.f("ix_affiliate_links_product_id"), "affiliate_links", ["product_id"], unique=False)

    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("draft_id", sa.String(length=64), nullable=False, unique=True),
        sa.Column("customer_name", sa.String(length=150), nullable=False),
        sa.Column("customer_email", sa.String(length=255), nullable=False),
        sa.Column("customer_phone", sa.String(length=50), nullable=True),
        sa.Column("total_amount", sa.BigInteger(), nullable=False),
        sa.Column("status", order_status, nullable=False),
        sa.Column("affiliate_link_id", sa.Integer(), sa.ForeignKey("affiliate_links.id"), nullable=True),
        sa.Column("settlement_state", settlement_state, nullable=False),
        sa.Column("settlement_failed_step", sa.String(length=50), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("total_amount >= 0", name="ck_orders_total_non_negative"),
    )
    op.create_index(op.f("ix_orders_id"), "orders", ["id"], unique=False)

    op.create_table(
        "order_items",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("vendor_id", sa.Integer(), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("price", sa.BigInteger(), nullable=False),
        sa.Column("commission_rate", sa.Integer(), nullable=False),
        sa.Column("commission_amount", sa.BigInteger(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),
        sa.CheckConstraint("price >= 0", name="ck_order_items_price_non_negative"),
    )
    op.create_index(op.f("ix_order_items_id"), "order_items", ["id"], unique=False)
    op.create_index(op.f("ix_order_items_order_id"), "order_items", ["order_id"], unique=False)

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("type", transaction_type, nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("reference_id", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("amount >= 0", name="ck_transactions_amount_non_negative"),
    )
    op.create_index(op.f("ix_transactions_id"), "transactions", ["id"], unique=False)
    op.create_index(op.f("ix_transactions_user_id"), "transactions", ["user_id"], unique=False)
    op.create_index(op.f("ix_transactions_reference_id"), "transactions", ["reference_id"], unique=False)

    op.create_table(
        "withdrawals",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("payment_method", withdrawal_method, nullable=False),
        sa.Column("payment_details", sa.String(length=255), nullable=False),
        sa.Column("status", withdrawal_status, nullable=False),
        sa.Column("note", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("amount > 0", name="ck_withdrawals_amount_positive"),
    )
    op.create_index(op.f("ix_withdrawals_id"), "withdrawals", ["id"], unique=False)
    op.create_index(op.f("ix_withdrawals_user_id"), "withdrawals", ["user_id"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_withdrawals_user_id"), table_name="withdrawals")
    op.drop_index(op.f("ix_withdrawals_id"), table_name="withdrawals")
    op.drop_table("withdrawals")

    op.drop_index(op.f("ix_transactions_reference_id"), table_name="transactions")
    op.drop_index(op.f("ix_transactions_user_id"), table_name="transactions")
    op.drop_index(op.f("ix_transactions_id"), table_name="transactions")
    op.drop_table("transactions")

    op.drop_index(op.f("ix_order_items_order_id"), table_name="order_items")
    op.drop_index(op.f("ix_order_items_id"), table_name="order_items")
    op.drop_table("order_items")

    op.drop_index(op.f("ix_orders_id"), table_name="orders")
    op.drop_table("orders")

    op.drop_index(op.f("ix_affiliate_links_product_id"), table_name="affiliate_links")
    op.drop_index(op.f("ix_affiliate_links_affiliate_id"), table_name="affiliate_links")
    op.drop_index(op.f("ix_affiliate_links_id"), table_name="affiliate_links")
    op.drop_table("affiliate_links")

    op.drop_index(op.f("ix_products_vendor_id"), table_name="products")
    op.drop_index(op.f("ix_products_id"), table_name="products")
    op.drop_table("products")

    op.drop_index(op.f("ix_profiles_id"), table_name="profiles")
    op.drop_table("profiles")

    bind = op.get_bind()
    for enum_type in (
        withdrawal_status,
        withdrawal_method,
        transaction_type,
        settlement_state,
        order_status,
        product_status,
    ):
        enum_type.drop(bind, checkfirst=True)
