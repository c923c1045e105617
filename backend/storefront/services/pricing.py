"""
Cart and order totals.

All money is Decimal, rounded half-up to paise. The cart preview shows GST
on top of the subtotal; placed orders are charged subtotal + shipping.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Tuple, Dict, Any

from storefront.core.config import settings

TWO_PLACES = Decimal("0.01")


def money(value: Any) -> Decimal:
    """Coerce to a 2-place Decimal"""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def to_paise(amount: Decimal) -> int:
    """Razorpay takes amounts in the smallest currency unit"""
    return int((money(amount) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def subtotal_of(lines: Iterable[Tuple[Decimal, int]]) -> Decimal:
    """Sum of price x quantity over (price, quantity) pairs"""
    total = Decimal("0")
    for price, quantity in lines:
        total += Decimal(str(price)) * quantity
    return money(total)


def shipping_for(subtotal: Decimal) -> Decimal:
    """Free shipping strictly above the threshold"""
    if subtotal > settings.FREE_SHIPPING_THRESHOLD:
        return money(0)
    return money(settings.SHIPPING_CHARGE)


def cart_summary(lines: Iterable[Tuple[Decimal, int]]) -> Dict[str, Any]:
    lines = list(lines)
    subtotal = subtotal_of(lines)
    tax = money(subtotal * settings.TAX_RATE)
    # Nothing to ship for an empty cart
    shipping = shipping_for(subtotal) if lines else money(0)
    return {
        "subtotal": subtotal,
        "tax": tax,
        "shipping": shipping,
        "total": money(subtotal + tax + shipping),
        "item_count": sum(quantity for _, quantity in lines),
    }


def order_total(lines: Iterable[Tuple[Decimal, int]]) -> Decimal:
    subtotal = subtotal_of(lines)
    return money(subtotal + shipping_for(subtotal))
