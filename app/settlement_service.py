# app/settlement_service.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app import attribution_service, wallet_service
from app.config import settings
from app.errors import (
    DuplicateSettlement,
    InvalidStateTransition,
    NotFound,
    PartialSettlement,
    SettlementFailed,
)
from app.order_assembler import OrderDraft
from models.affiliate_links import AffiliateLink
from models.orders import Order, OrderItem, OrderStatus, SettlementState
from models.products import Product
from models.transactions import TransactionType

logger = logging.getLogger(__name__)

# Durably written only if the PARTIAL flag itself could not be stored
IN_FLIGHT_STATES = (
    SettlementState.ITEMS_PERSISTED,
    SettlementState.AFFILIATE_CREDITED,
    SettlementState.VENDORS_CREDITED,
)


# -------------------------------------------------
# Result
# -------------------------------------------------
@dataclass(frozen=True)
class VendorCredit:
    vendor_id: int
    amount: int


@dataclass(frozen=True)
class SettledOrder:
    order_id: int
    draft_id: str
    total_amount: int
    state: SettlementState
    affiliate_link_id: Optional[int] = None
    affiliate_id: Optional[int] = None
    affiliate_commission: int = 0
    vendor_credits: tuple[VendorCredit, ...] = ()
    platform_amount: int = 0


# -------------------------------------------------
# Step 1: order + items (commit point)
# -------------------------------------------------
def _persist_order(db: Session, draft: OrderDraft, affiliate_link_id: Optional[int]) -> Order:
    order = Order(
        draft_id=draft.draft_id,
        customer_name=draft.customer.name,
        customer_email=draft.customer.email,
        customer_phone=draft.customer.phone,
        total_amount=draft.total_amount,
        status=OrderStatus.COMPLETED,
        affiliate_link_id=affiliate_link_id,
        settlement_state=SettlementState.ORDER_PERSISTED,
    )
    db.add(order)
    db.flush()

    for item in draft.items:
        db.add(
            OrderItem(
                order_id=order.id,
                product_id=item.product_id,
                title=item.title,
                vendor_id=item.vendor_id,
                quantity=item.quantity,
                price=item.unit_price,
                commission_rate=item.commission_rate,
                commission_amount=item.commission_amount,
            )
        )
    order.settlement_state = SettlementState.ITEMS_PERSISTED
    db.flush()
    return order


def _usable_link_id(db: Session, link_id: Optional[int]) -> Optional[int]:
    if link_id is None:
        return None

    link = db.query(AffiliateLink).filter(AffiliateLink.id == link_id).first()
    if link is None or not attribution_service.is_usable(link):
        logger.info(
            "SETTLEMENT: affiliate link unknown or inactive, direct sale | link_id=%s",
            link_id,
        )
        return None
    return link.id


def _find_order_id_for_draft(db: Session, draft_id: str) -> Optional[int]:
    row = db.query(Order.id).filter(Order.draft_id == draft_id).first()
    return row[0] if row else None


# -------------------------------------------------
# Steps 2-4
# -------------------------------------------------
def _credit_affiliate(db: Session, order: Order) -> tuple[Optional[int], int]:
    if order.affiliate_link_id is None:
        return None, 0

    link = db.query(AffiliateLink).filter(AffiliateLink.id == order.affiliate_link_id).first()
    if link is None:
        logger.warning(
            "SETTLEMENT: affiliate link vanished, settling as direct sale | order_id=%s | link_id=%s",
            order.id,
            order.affiliate_link_id,
        )
        return None, 0

    commission = sum(int(i.commission_amount) for i in order.items)

    attribution_service.record_conversion(db, link.id, commission)
    wallet_service.credit(
        db,
        user_id=link.affiliate_id,
        amount=commission,
        tx_type=TransactionType.COMMISSION,
        description=f"Commission from order #{order.id}",
        reference_id=str(order.id),
    )
    return link.affiliate_id, commission


def _vendor_nets(order: Order) -> list[VendorCredit]:
    nets: dict[int, int] = {}
    for item in order.items:
        nets[int(item.vendor_id)] = nets.get(int(item.vendor_id), 0) + item.vendor_net
    return [VendorCredit(vendor_id=v, amount=a) for v, a in nets.items()]


def _sale_description(order: Order, vendor_id: int) -> str:
    parts = [f"{i.title} x{i.quantity}" for i in order.items if int(i.vendor_id) == vendor_id]
    return f"Sale of {', '.join(parts)} (order #{order.id})"[:500]


def _credit_vendors(db: Session, order: Order) -> list[VendorCredit]:
    credits = _vendor_nets(order)
    for vc in credits:
        wallet_service.credit(
            db,
            user_id=vc.vendor_id,
            amount=vc.amount,
            tx_type=TransactionType.SALE,
            description=_sale_description(order, vc.vendor_id),
            reference_id=str(order.id),
        )
    return credits


def _bump_product_sales(db: Session, order: Order) -> None:
    for item in order.items:
        updated = (
            db.query(Product)
            .filter(Product.id == item.product_id)
            .update(
                {Product.sales: Product.sales + int(item.quantity)},
                synchronize_session=False,
            )
        )
        if updated != 1:
            raise NotFound(f"Product {item.product_id} not found.")


def _mark_partial(db: Session, order_id: int, step: str) -> None:
    try:
        db.query(Order).filter(Order.id == order_id).update(
            {
                Order.settlement_state: SettlementState.PARTIAL,
                Order.settlement_failed_step: step,
            },
            synchronize_session=False,
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("SETTLEMENT: could not flag order as PARTIAL | order_id=%s | step=%s", order_id, step)


def _run_downstream(db: Session, order_id: int) -> SettledOrder:
    """
    Steps 2-4 in one database transaction: either all money movements and
    counters land, or none do and the order is flagged PARTIAL.
    """
    step = "load_order"
    try:
        order = db.query(Order).filter(Order.id == order_id).with_for_update().one()
        if order.settlement_state == SettlementState.SETTLED:
            raise InvalidStateTransition(f"Order {order_id} is already settled.")

        step = "affiliate_credit"
        affiliate_id, commission = _credit_affiliate(db, order)
        if affiliate_id is not None:
            order.settlement_state = SettlementState.AFFILIATE_CREDITED

        step = "vendor_credit"
        vendor_credits = _credit_vendors(db, order)
        order.settlement_state = SettlementState.VENDORS_CREDITED

        step = "product_sales"
        _bump_product_sales(db, order)

        step = "commit"
        order.settlement_state = SettlementState.SETTLED
        order.settlement_failed_step = None
        db.commit()
    except InvalidStateTransition:
        db.rollback()
        raise
    except Exception as exc:
        db.rollback()
        logger.exception(
            "SETTLEMENT: PARTIAL | order_id=%s | failed_step=%s | error=%s",
            order_id,
            step,
            exc,
        )
        _mark_partial(db, order_id, step)
        raise PartialSettlement(order_id, step) from exc

    vendors_total = sum(vc.amount for vc in vendor_credits)
    total = int(order.total_amount)

    logger.info(
        "SETTLEMENT: settled | order_id=%s | total=%s | affiliate_id=%s | commission=%s | vendors=%s",
        order_id,
        total,
        affiliate_id,
        commission,
        len(vendor_credits),
    )

    return SettledOrder(
        order_id=order_id,
        draft_id=order.draft_id,
        total_amount=total,
        state=SettlementState.SETTLED,
        affiliate_link_id=order.affiliate_link_id if affiliate_id is not None else None,
        affiliate_id=affiliate_id,
        affiliate_commission=commission,
        vendor_credits=tuple(vendor_credits),
        platform_amount=total - vendors_total - commission,
    )


# -------------------------------------------------
# Public API
# -------------------------------------------------
def _notify_persisted(callback: Optional[Callable[[int], None]], order_id: int) -> None:
    if callback is None:
        return
    try:
        callback(order_id)
    except Exception:
        # order is already committed, hook errors are only logged
        logger.exception("SETTLEMENT: on_order_persisted hook failed | order_id=%s", order_id)


def settle(
    db: Session,
    draft: OrderDraft,
    affiliate_link_id: Optional[int] = None,
    *,
    on_order_persisted: Optional[Callable[[int], None]] = None,
) -> SettledOrder:
    """
    Turn a draft into a real order and move the money.

    - SettlementFailed: nothing was persisted, the checkout can be retried.
    - PartialSettlement: the order exists, downstream steps were rolled back
      and the order is flagged PARTIAL for reconciliation. Never retry settle().
    - DuplicateSettlement: this draft already produced an order.

    An unknown, deactivated or expired affiliate link settles as a direct sale.
    on_order_persisted (cart clearing) runs once the order is committed,
    whatever happens afterwards.
    """
    existing_id = _find_order_id_for_draft(db, draft.draft_id)
    if existing_id is not None:
        raise DuplicateSettlement(draft.draft_id, existing_id)

    affiliate_link_id = _usable_link_id(db, affiliate_link_id)

    try:
        order = _persist_order(db, draft, affiliate_link_id)
        db.commit()
        order_id = order.id
    except IntegrityError as exc:
        db.rollback()
        existing_id = _find_order_id_for_draft(db, draft.draft_id)
        if existing_id is not None:
            raise DuplicateSettlement(draft.draft_id, existing_id) from exc
        logger.exception("SETTLEMENT: order persistence failed | draft_id=%s", draft.draft_id)
        raise SettlementFailed("Order could not be saved, please try again.") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("SETTLEMENT: order persistence failed | draft_id=%s", draft.draft_id)
        raise SettlementFailed("Order could not be saved, please try again.") from exc

    logger.info(
        "SETTLEMENT: order persisted | order_id=%s | draft_id=%s | total=%s | items=%s | link_id=%s",
        order_id,
        draft.draft_id,
        draft.total_amount,
        len(draft.items),
        affiliate_link_id,
    )

    try:
        result = _run_downstream(db, order_id)
    finally:
        _notify_persisted(on_order_persisted, order_id)

    return result


def _stale_cutoff(stale_after: Optional[timedelta]) -> datetime:
    if stale_after is None:
        stale_after = timedelta(seconds=settings.settlement_stale_after_seconds)
    return datetime.now(timezone.utc) - stale_after


def _needs_reconciliation(cutoff: datetime):
    return or_(
        Order.settlement_state == SettlementState.PARTIAL,
        and_(
            Order.settlement_state.in_(IN_FLIGHT_STATES),
            Order.created_at <= cutoff,
        ),
    )


def resume_settlement(
    db: Session,
    order_id: int,
    *,
    stale_after: Optional[timedelta] = None,
) -> SettledOrder:
    """
    Re-run steps 2-4 for an order flagged PARTIAL, or one stuck mid-settlement
    for longer than the stale window. Claims the order first.
    """
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise NotFound(f"Order {order_id} not found.")

    claimed = (
        db.query(Order)
        .filter(Order.id == order_id, _needs_reconciliation(_stale_cutoff(stale_after)))
        .update(
            {
                Order.settlement_state: SettlementState.ITEMS_PERSISTED,
                Order.settlement_failed_step: None,
            },
            synchronize_session=False,
        )
    )
    if claimed != 1:
        db.rollback()
        raise InvalidStateTransition(
            f"Order {order_id} is {order.settlement_state.value}, "
            "only PARTIAL or stalled orders can be resumed."
        )
    db.commit()

    logger.info("SETTLEMENT: resuming | order_id=%s", order_id)
    return _run_downstream(db, order_id)


def list_partial_orders(db: Session, *, stale_after: Optional[timedelta] = None) -> list[Order]:
    """PARTIAL orders plus in-flight ones older than the stale window."""
    return (
        db.query(Order)
        .filter(_needs_reconciliation(_stale_cutoff(stale_after)))
        .order_by(Order.created_at.asc(), Order.id.asc())
        .all()
    )
