# schemas/orders.py

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field


class CheckoutCustomer(BaseModel):
    name: str = Field(min_length=1, max_length=150)
    email: EmailStr
    phone: Optional[str] = None


class CheckoutItem(BaseModel):
    product_id: int
    quantity: int = Field(default=1, ge=1)


class CheckoutRequest(BaseModel):
    customer: CheckoutCustomer
    items: List[CheckoutItem]
    # ?ref=<code> captured by the storefront
    affiliate_code: Optional[str] = None


class OrderItemOut(BaseModel):
    product_id: int
    title: str
    vendor_id: int
    quantity: int
    price: int
    commission_rate: int
    commission_amount: int

    class Config:
        from_attributes = True


class OrderOut(BaseModel):
    id: int
    customer_name: str
    customer_email: str
    total_amount: int
    status: str
    affiliate_link_id: Optional[int] = None
    settlement_state: str
    settlement_failed_step: Optional[str] = None
    created_at: Optional[datetime] = None
    items: List[OrderItemOut] = []


class CheckoutResponse(BaseModel):
    order: OrderOut
    attributed: bool
    # the storefront empties its cart when this is true
    clear_cart: bool = True
