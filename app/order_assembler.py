# app/order_assembler.py

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Iterable, Optional

from app.commission import split_commission
from app.errors import EmptyCart, InvalidCustomer, InvalidInput


@dataclass(frozen=True)
class CartLine:
    """Client-side cart snapshot of one product. Never persisted on its own."""

    product_id: int
    title: str
    unit_price: int
    quantity: int
    commission_rate: int
    vendor_id: int


@dataclass(frozen=True)
class CustomerInfo:
    name: str
    email: str
    phone: Optional[str] = None


@dataclass(frozen=True)
class DraftItem:
    product_id: int
    title: str
    vendor_id: int
    quantity: int
    unit_price: int
    commission_rate: int
    commission_amount: int

    @property
    def subtotal(self) -> int:
        return self.unit_price * self.quantity

    @property
    def vendor_net(self) -> int:
        return self.subtotal - self.commission_amount


@dataclass(frozen=True)
class OrderDraft:
    draft_id: str
    customer: CustomerInfo
    items: tuple[DraftItem, ...]
    total_amount: int
    vendor_ids: tuple[int, ...] = field(default=())

    @property
    def total_commission(self) -> int:
        return sum(i.commission_amount for i in self.items)


def _clean_customer(customer: CustomerInfo) -> CustomerInfo:
    name = (customer.name or "").strip()
    email = (customer.email or "").strip()
    if not name:
        raise InvalidCustomer("Customer name is required.")
    if not email:
        raise InvalidCustomer("Customer email is required.")
    phone = (customer.phone or "").strip() or None
    return CustomerInfo(name=name, email=email, phone=phone)


def assemble(cart_lines: Iterable[CartLine], customer: CustomerInfo) -> OrderDraft:
    """
    Build an order draft from a cart snapshot.

    total_amount is what the customer pays: sum(unit_price * quantity), integer
    arithmetic only, independent of the commission math. Each draft gets a fresh
    draft_id so the settlement engine can refuse to settle it twice.
    """
    lines = list(cart_lines)
    if not lines:
        raise EmptyCart("Cart is empty.")

    clean_customer = _clean_customer(customer)

    items: list[DraftItem] = []
    for line in lines:
        if line.quantity < 1:
            raise InvalidInput(f"Quantity for product {line.product_id} must be >= 1.")
        if line.unit_price < 0:
            raise InvalidInput(f"Price for product {line.product_id} must be >= 0.")

        split = split_commission(line.unit_price, line.quantity, line.commission_rate)
        items.append(
            DraftItem(
                product_id=line.product_id,
                title=line.title,
                vendor_id=line.vendor_id,
                quantity=line.quantity,
                unit_price=line.unit_price,
                commission_rate=line.commission_rate,
                commission_amount=split.commission_per_unit * line.quantity,
            )
        )

    total = sum(i.subtotal for i in items)

    # distinct vendors, first-seen order
    vendor_ids = tuple(dict.fromkeys(i.vendor_id for i in items))

    return OrderDraft(
        draft_id=uuid.uuid4().hex,
        customer=clean_customer,
        items=tuple(items),
        total_amount=total,
        vendor_ids=vendor_ids,
    )
