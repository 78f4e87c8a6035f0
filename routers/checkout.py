# routers/checkout.py

from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session, selectinload

from app import attribution_service, settlement_service
from app.db import get_db
from app.email_service import safe_send, send_order_confirmation_email
from app.errors import (
    DuplicateSettlement,
    MarketplaceError,
    PartialSettlement,
    SettlementFailed,
    to_http,
)
from app.order_assembler import CartLine, CustomerInfo, assemble
from models.orders import Order
from models.products import Product, ProductStatus
from schemas.orders import CheckoutItem, CheckoutRequest, CheckoutResponse, OrderItemOut, OrderOut

router = APIRouter(prefix="/checkout", tags=["Checkout"])
logger = logging.getLogger(__name__)


def order_to_out(order: Order) -> OrderOut:
    return OrderOut(
        id=order.id,
        customer_name=order.customer_name,
        customer_email=order.customer_email,
        total_amount=int(order.total_amount),
        status=order.status.value,
        affiliate_link_id=order.affiliate_link_id,
        settlement_state=order.settlement_state.value,
        settlement_failed_step=order.settlement_failed_step,
        created_at=order.created_at,
        items=[OrderItemOut.model_validate(i) for i in order.items],
    )


def _snapshot_cart(db: Session, items: List[CheckoutItem]) -> list[CartLine]:
    """
    Prices, commission rates and vendors ALWAYS come from the DB, never from
    the client payload.
    """
    ids = {i.product_id for i in items}
    products = {
        p.id: p
        for p in db.query(Product).filter(Product.id.in_(ids)).all()
    } if ids else {}

    lines: list[CartLine] = []
    for item in items:
        p = products.get(item.product_id)
        if not p or p.status != ProductStatus.APPROVED:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Product {item.product_id} is not available.",
            )
        lines.append(
            CartLine(
                product_id=p.id,
                title=p.title,
                unit_price=int(p.price),
                quantity=item.quantity,
                commission_rate=int(p.commission),
                vendor_id=p.vendor_id,
            )
        )
    return lines


# -------------------------------------------------
# POST /checkout
# -------------------------------------------------
@router.post("", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED)
def checkout(data: CheckoutRequest, db: Session = Depends(get_db)):
    try:
        lines = _snapshot_cart(db, data.items)
        draft = assemble(
            lines,
            CustomerInfo(
                name=data.customer.name,
                email=str(data.customer.email),
                phone=data.customer.phone,
            ),
        )
    except MarketplaceError as e:
        raise to_http(e)

    # Unknown / expired codes never block the order: direct sale
    link = attribution_service.find_active_link(db, data.affiliate_code)
    if data.affiliate_code and link is None:
        logger.info("CHECKOUT: unresolved affiliate code, direct sale | code=%s", data.affiliate_code)

    try:
        result = settlement_service.settle(db, draft, link.id if link else None)
        order_id = result.order_id
    except PartialSettlement as e:
        # The order is real: confirm it to the customer, reconciliation is ours
        logger.error(
            "CHECKOUT: order placed with PARTIAL settlement | order_id=%s | step=%s",
            e.order_id,
            e.step,
        )
        order_id = e.order_id
    except (SettlementFailed, DuplicateSettlement) as e:
        raise to_http(e)

    order = (
        db.query(Order)
        .options(selectinload(Order.items))
        .filter(Order.id == order_id)
        .one()
    )

    safe_send(
        send_order_confirmation_email,
        to_email=order.customer_email,
        customer_name=order.customer_name,
        order_id=order.id,
        total_amount=int(order.total_amount),
        lines=[(i.title, int(i.quantity), int(i.price)) for i in order.items],
    )

    return CheckoutResponse(
        order=order_to_out(order),
        attributed=order.affiliate_link_id is not None,
        clear_cart=True,
    )
