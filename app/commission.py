# app/commission.py

from dataclasses import dataclass

from app.errors import InvalidInput


@dataclass(frozen=True)
class CommissionSplit:
    commission_per_unit: int
    vendor_net_per_unit: int


def round_half_up_percent(amount: int, rate_pct: int) -> int:
    """
    amount * rate_pct / 100 rounded half-up, in pure integer arithmetic.
    Only defined for non-negative operands (prices and rates are never negative).
    """
    return (amount * rate_pct + 50) // 100


def _require_int(name: str, value) -> int:
    # bool is an int subclass: True would silently become 1
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInput(f"{name} must be an integer (got {value!r}).")
    return value


def split_commission(unit_price: int, quantity: int, commission_rate_pct: int) -> CommissionSplit:
    """
    Per-unit split of a price between affiliate commission and vendor net.

    commission_per_unit + vendor_net_per_unit == unit_price for every valid input.
    """
    unit_price = _require_int("unit_price", unit_price)
    quantity = _require_int("quantity", quantity)
    commission_rate_pct = _require_int("commission_rate_pct", commission_rate_pct)

    if unit_price < 0:
        raise InvalidInput("unit_price must be >= 0.")
    if quantity < 1:
        raise InvalidInput("quantity must be >= 1.")
    if commission_rate_pct < 0 or commission_rate_pct > 100:
        raise InvalidInput("commission_rate_pct must be between 0 and 100.")

    commission = round_half_up_percent(unit_price, commission_rate_pct)
    return CommissionSplit(
        commission_per_unit=commission,
        vendor_net_per_unit=unit_price - commission,
    )


def line_commission(unit_price: int, quantity: int, commission_rate_pct: int) -> int:
    return split_commission(unit_price, quantity, commission_rate_pct).commission_per_unit * quantity
