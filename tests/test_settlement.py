from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from app import attribution_service, settlement_service, wallet_service
from app.errors import (
    DuplicateSettlement,
    InvalidStateTransition,
    PartialSettlement,
    SettlementFailed,
)
from app.order_assembler import CartLine, CustomerInfo, assemble
from models.affiliate_links import AffiliateLink
from models.orders import Order, OrderItem, SettlementState
from models.products import Product
from models.profiles import Profile
from models.transactions import Transaction, TransactionType

CUSTOMER = CustomerInfo(name="Kofi Mensah", email="kofi@example.com")


def cart_for(product, qty):
    return CartLine(
        product_id=product.id,
        title=product.title,
        unit_price=int(product.price),
        quantity=qty,
        commission_rate=int(product.commission),
        vendor_id=product.vendor_id,
    )


def balance(db, profile):
    return db.query(Profile.wallet_balance).filter(Profile.id == profile.id).scalar()


def entries(db, profile, tx_type=None):
    q = db.query(Transaction).filter(Transaction.user_id == profile.id)
    if tx_type is not None:
        q = q.filter(Transaction.type == tx_type)
    return q.all()


# -------------------------------------------------
# Direct sale
# -------------------------------------------------
def test_direct_sale_credits_vendor_only(db, vendor, product):
    draft = assemble([cart_for(product, 2)], CUSTOMER)

    result = settlement_service.settle(db, draft)

    order = db.query(Order).filter(Order.id == result.order_id).one()
    assert order.total_amount == 20000
    assert order.settlement_state == SettlementState.SETTLED
    assert order.affiliate_link_id is None

    items = db.query(OrderItem).filter(OrderItem.order_id == order.id).all()
    assert len(items) == 1
    assert items[0].commission_amount == 6000

    sales = entries(db, vendor, TransactionType.SALE)
    assert len(sales) == 1
    assert sales[0].amount == 14000
    assert sales[0].reference_id == str(order.id)

    # vendors are credited on the wallet too, not only in the ledger
    assert balance(db, vendor) == 14000

    db.refresh(product)
    assert product.sales == 2

    assert result.affiliate_id is None
    assert result.affiliate_commission == 0
    assert result.platform_amount == 6000
    assert db.query(Transaction).filter(Transaction.type == TransactionType.COMMISSION).count() == 0


def test_unknown_link_id_settles_as_direct_sale(db, vendor, product):
    draft = assemble([cart_for(product, 1)], CUSTOMER)

    result = settlement_service.settle(db, draft, affiliate_link_id=9999)

    assert result.state == SettlementState.SETTLED
    assert result.affiliate_id is None
    order = db.query(Order).filter(Order.id == result.order_id).one()
    assert order.affiliate_link_id is None
    assert balance(db, vendor) == 7000
    assert db.query(Transaction).filter(Transaction.type == TransactionType.COMMISSION).count() == 0


@pytest.mark.parametrize(
    "link_kwargs",
    [
        {"is_active": False},
        {"expires_at": datetime.now(timezone.utc) - timedelta(days=1)},
    ],
)
def test_unusable_link_id_settles_as_direct_sale(db, vendor, affiliate, product, make_link, link_kwargs):
    link = make_link(affiliate, product, **link_kwargs)
    draft = assemble([cart_for(product, 1)], CUSTOMER)

    result = settlement_service.settle(db, draft, link.id)

    assert result.state == SettlementState.SETTLED
    assert result.affiliate_id is None
    assert result.platform_amount == 3000
    order = db.query(Order).filter(Order.id == result.order_id).one()
    assert order.affiliate_link_id is None

    db.refresh(link)
    assert (link.conversions, link.commission_earned) == (0, 0)
    assert balance(db, affiliate) == 0
    assert db.query(Transaction).filter(Transaction.type == TransactionType.COMMISSION).count() == 0


# -------------------------------------------------
# Attributed sale
# -------------------------------------------------
def test_attributed_sale_credits_affiliate(db, vendor, affiliate, product, make_link):
    link = make_link(affiliate, product)
    draft = assemble([cart_for(product, 2)], CUSTOMER)

    result = settlement_service.settle(db, draft, link.id)

    db.refresh(link)
    assert link.conversions == 1
    assert link.commission_earned == 6000
    assert balance(db, affiliate) == 6000

    commissions = entries(db, affiliate, TransactionType.COMMISSION)
    assert len(commissions) == 1
    assert commissions[0].amount == 6000
    assert commissions[0].reference_id == str(result.order_id)

    # vendor side is unchanged by attribution
    assert balance(db, vendor) == 14000
    assert result.affiliate_id == affiliate.id
    assert result.platform_amount == 0


def test_multi_vendor_order(db, vendor, vendor2, affiliate, product, make_product, make_link):
    other = make_product(vendor2, title="Shea Butter", price=2599, commission=12)
    third = make_product(vendor, title="Clay Pot", price=333, commission=15)
    link = make_link(affiliate, product)

    draft = assemble(
        [cart_for(product, 1), cart_for(other, 3), cart_for(third, 3)],
        CUSTOMER,
    )
    result = settlement_service.settle(db, draft, link.id)

    expected_total = 10000 + 2599 * 3 + 333 * 3
    commission = 3000 + 312 * 3 + 50 * 3
    order = db.query(Order).filter(Order.id == result.order_id).one()
    assert order.total_amount == expected_total

    # one sale entry per distinct vendor
    assert len(entries(db, vendor, TransactionType.SALE)) == 1
    assert len(entries(db, vendor2, TransactionType.SALE)) == 1
    assert balance(db, vendor) == (10000 - 3000) + (999 - 150)
    assert balance(db, vendor2) == 2599 * 3 - 312 * 3
    assert balance(db, affiliate) == commission

    # money is conserved: customer total = vendors + affiliate + platform
    vendors_total = sum(vc.amount for vc in result.vendor_credits)
    assert vendors_total + result.affiliate_commission + result.platform_amount == expected_total

    db.refresh(other)
    assert other.sales == 3


def test_ledger_matches_wallet_after_settlements(db, vendor, affiliate, product, make_link):
    link = make_link(affiliate, product)
    for qty in (1, 3, 2):
        settlement_service.settle(db, assemble([cart_for(product, qty)], CUSTOMER), link.id)
    settlement_service.settle(db, assemble([cart_for(product, 1)], CUSTOMER))

    for profile in (vendor, affiliate):
        audit = wallet_service.audit(db, profile.id)
        assert audit.consistent

    db.refresh(link)
    assert link.conversions == 3


# -------------------------------------------------
# Exactly-once
# -------------------------------------------------
def test_second_settle_of_same_draft_is_rejected(db, vendor, affiliate, product, make_link):
    link = make_link(affiliate, product)
    draft = assemble([cart_for(product, 2)], CUSTOMER)
    first = settlement_service.settle(db, draft, link.id)

    with pytest.raises(DuplicateSettlement) as exc:
        settlement_service.settle(db, draft, link.id)

    assert exc.value.order_id == first.order_id
    assert db.query(Order).count() == 1
    assert balance(db, affiliate) == 6000
    assert balance(db, vendor) == 14000
    db.refresh(link)
    assert link.conversions == 1


# -------------------------------------------------
# Failures
# -------------------------------------------------
def test_order_persistence_failure_leaves_nothing(db, vendor, product, monkeypatch):
    def boom(*args, **kwargs):
        raise SQLAlchemyError("connection lost")

    monkeypatch.setattr(settlement_service, "_persist_order", boom)
    cleared = []

    with pytest.raises(SettlementFailed):
        settlement_service.settle(
            db,
            assemble([cart_for(product, 1)], CUSTOMER),
            on_order_persisted=cleared.append,
        )

    assert db.query(Order).count() == 0
    assert db.query(Transaction).count() == 0
    # the cart survives a failed checkout
    assert cleared == []


def test_downstream_failure_is_partial_and_rolled_back(db, vendor, affiliate, product, make_link, monkeypatch):
    link = make_link(affiliate, product)

    def vendor_credit_down(*args, **kwargs):
        raise RuntimeError("ledger unavailable")

    monkeypatch.setattr(settlement_service, "_credit_vendors", vendor_credit_down)
    cleared = []

    with pytest.raises(PartialSettlement) as exc:
        settlement_service.settle(
            db,
            assemble([cart_for(product, 2)], CUSTOMER),
            link.id,
            on_order_persisted=cleared.append,
        )

    order_id = exc.value.order_id
    assert exc.value.step == "vendor_credit"

    # the order is real and never retracted
    order = db.query(Order).filter(Order.id == order_id).one()
    assert order.settlement_state == SettlementState.PARTIAL
    assert order.settlement_failed_step == "vendor_credit"
    assert cleared == [order_id]

    # no half-applied money movements
    assert balance(db, affiliate) == 0
    assert db.query(Transaction).count() == 0
    db.refresh(link)
    assert link.conversions == 0

    assert [o.id for o in settlement_service.list_partial_orders(db)] == [order_id]


def test_resume_completes_a_partial_settlement_once(db, vendor, affiliate, product, make_link, monkeypatch):
    link = make_link(affiliate, product)

    def product_sales_down(*args, **kwargs):
        raise RuntimeError("products table locked")

    monkeypatch.setattr(settlement_service, "_bump_product_sales", product_sales_down)
    with pytest.raises(PartialSettlement) as exc:
        settlement_service.settle(db, assemble([cart_for(product, 2)], CUSTOMER), link.id)
    monkeypatch.undo()

    order_id = exc.value.order_id
    result = settlement_service.resume_settlement(db, order_id)

    assert result.state == SettlementState.SETTLED
    assert balance(db, affiliate) == 6000
    assert balance(db, vendor) == 14000
    db.refresh(product)
    assert product.sales == 2

    with pytest.raises(InvalidStateTransition):
        settlement_service.resume_settlement(db, order_id)

    assert balance(db, affiliate) == 6000
    assert wallet_service.audit(db, affiliate.id).consistent
    assert wallet_service.audit(db, vendor.id).consistent


def test_resume_refuses_settled_orders(db, vendor, product):
    result = settlement_service.settle(db, assemble([cart_for(product, 1)], CUSTOMER))
    with pytest.raises(InvalidStateTransition):
        settlement_service.resume_settlement(db, result.order_id)


def test_cart_cleared_after_successful_settlement(db, vendor, product):
    cleared = []
    result = settlement_service.settle(
        db,
        assemble([cart_for(product, 1)], CUSTOMER),
        on_order_persisted=cleared.append,
    )
    assert cleared == [result.order_id]
    assert db.query(Product).filter(Product.id == product.id).one().sales == 1


def test_failing_cart_hook_does_not_fail_the_order(db, vendor, product):
    def hook(order_id):
        raise RuntimeError("cart service down")

    result = settlement_service.settle(
        db,
        assemble([cart_for(product, 1)], CUSTOMER),
        on_order_persisted=hook,
    )

    assert result.state == SettlementState.SETTLED
    assert balance(db, vendor) == 7000


def test_failing_cart_hook_keeps_partial_settlement_error(db, vendor, product, monkeypatch):
    def hook(order_id):
        raise RuntimeError("cart service down")

    def vendor_credit_down(*args, **kwargs):
        raise RuntimeError("ledger unavailable")

    monkeypatch.setattr(settlement_service, "_credit_vendors", vendor_credit_down)

    with pytest.raises(PartialSettlement) as exc:
        settlement_service.settle(db, assemble([cart_for(product, 1)], CUSTOMER), on_order_persisted=hook)

    assert exc.value.step == "vendor_credit"


# -------------------------------------------------
# Stalled settlements
# -------------------------------------------------
def test_stalled_settlement_is_listed_and_resumable_after_grace(db, vendor, affiliate, product, make_link, monkeypatch):
    link = make_link(affiliate, product)

    def vendor_credit_down(*args, **kwargs):
        raise RuntimeError("ledger unavailable")

    # the PARTIAL flag itself cannot be written
    monkeypatch.setattr(settlement_service, "_credit_vendors", vendor_credit_down)
    monkeypatch.setattr(settlement_service, "_mark_partial", lambda *args, **kwargs: None)
    with pytest.raises(PartialSettlement) as exc:
        settlement_service.settle(db, assemble([cart_for(product, 2)], CUSTOMER), link.id)
    monkeypatch.undo()

    order_id = exc.value.order_id
    order = db.query(Order).filter(Order.id == order_id).one()
    assert order.settlement_state == SettlementState.ITEMS_PERSISTED

    # still within the grace window: could be a settlement in progress
    assert settlement_service.list_partial_orders(db) == []
    with pytest.raises(InvalidStateTransition):
        settlement_service.resume_settlement(db, order_id)

    db.query(Order).filter(Order.id == order_id).update(
        {Order.created_at: datetime.now(timezone.utc) - timedelta(hours=1)},
        synchronize_session=False,
    )
    db.commit()

    assert [o.id for o in settlement_service.list_partial_orders(db)] == [order_id]

    result = settlement_service.resume_settlement(db, order_id)

    assert result.state == SettlementState.SETTLED
    assert balance(db, affiliate) == 6000
    assert balance(db, vendor) == 14000
    assert settlement_service.list_partial_orders(db) == []
    with pytest.raises(InvalidStateTransition):
        settlement_service.resume_settlement(db, order_id)


# -------------------------------------------------
# Concurrent writers
# -------------------------------------------------
def test_stale_session_does_not_lose_concurrent_updates(engine, db, affiliate, product, make_link):
    link = make_link(affiliate, product)
    affiliate_id, link_id = affiliate.id, link.id
    # both sessions below share the single in-memory connection
    db.commit()

    Session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    session_a, session_b = Session(), Session()
    try:
        stale_profile = session_a.get(Profile, affiliate_id)
        stale_link = session_a.get(AffiliateLink, link_id)
        session_a.commit()
        assert stale_profile.wallet_balance == 0
        assert stale_link.conversions == 0

        wallet_service.credit(
            session_b,
            user_id=affiliate_id,
            amount=1500,
            tx_type=TransactionType.COMMISSION,
            reference_id="1",
        )
        attribution_service.record_conversion(session_b, link_id, 1500)
        session_b.commit()

        # session A still holds the snapshot taken before B's writes
        assert stale_profile.wallet_balance == 0
        assert stale_link.conversions == 0

        wallet_service.credit(
            session_a,
            user_id=affiliate_id,
            amount=2500,
            tx_type=TransactionType.COMMISSION,
            reference_id="2",
        )
        attribution_service.record_conversion(session_a, link_id, 2500)
        session_a.commit()
    finally:
        session_a.close()
        session_b.close()

    db.expire_all()
    assert db.query(Profile.wallet_balance).filter(Profile.id == affiliate_id).scalar() == 4000
    row = db.query(AffiliateLink).filter(AffiliateLink.id == link_id).one()
    assert (row.conversions, row.commission_earned) == (2, 4000)
    assert wallet_service.audit(db, affiliate_id).consistent
