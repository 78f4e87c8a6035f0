# app/errors.py

from typing import Optional

from fastapi import HTTPException


class MarketplaceError(Exception):
    """Base class for every domain error raised by the settlement services."""

    status_code = 400

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


# -------------------------------------------------
# Validation (caller's fault, never retried)
# -------------------------------------------------
class InvalidInput(MarketplaceError):
    status_code = 400


class InvalidPaymentMethod(InvalidInput):
    pass


class EmptyCart(MarketplaceError):
    status_code = 400


class InvalidCustomer(MarketplaceError):
    status_code = 400


class InvalidAmount(MarketplaceError):
    status_code = 400


class InsufficientFunds(MarketplaceError):
    status_code = 400


# -------------------------------------------------
# Lookups / state
# -------------------------------------------------
class NotFound(MarketplaceError):
    status_code = 404


class DuplicateAffiliateLink(MarketplaceError):
    status_code = 409


class InvalidStateTransition(MarketplaceError):
    status_code = 409


# -------------------------------------------------
# Settlement
# -------------------------------------------------
class SettlementError(MarketplaceError):
    status_code = 500


class SettlementFailed(SettlementError):
    """Step 1 failed: nothing was persisted, the whole checkout can be retried."""

    status_code = 503


class DuplicateSettlement(SettlementError):
    """The draft was already settled into an order."""

    status_code = 409

    def __init__(self, draft_id: str, order_id: Optional[int] = None):
        super().__init__(f"Draft {draft_id} already settled (order_id={order_id}).")
        self.draft_id = draft_id
        self.order_id = order_id


class PartialSettlement(SettlementError):
    """
    The order is committed but a downstream step (affiliate credit, vendor
    credit, product counters) failed. Re-running settle() would duplicate the
    order: these must go through reconciliation instead.
    """

    def __init__(self, order_id: int, step: str):
        super().__init__(f"Order {order_id} partially settled: step '{step}' failed.")
        self.order_id = order_id
        self.step = step


def to_http(exc: MarketplaceError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.message)
