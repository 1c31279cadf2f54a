"""
Order Pricing Module
Voucher discount, shipping fee and total for a checkout
"""

from datetime import datetime
from typing import Any, Dict, Iterable, Optional, Set
import math

from location_service import calculate_shipping_fee
from models import DiscountType, GPSCoordinates, Voucher


class PricingValueError(ValueError):
    """Raised when pricing inputs break the order invariants."""
    pass


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves going up (storefront rounding)"""
    return int(math.floor(value + 0.5))


def calculate_subtotal(items: Iterable[Any]) -> float:
    """
    Sum of price * quantity over cart lines

    Lines can be CartLineModel instances or plain dicts.
    """
    subtotal = 0.0
    for item in items:
        if isinstance(item, dict):
            price, quantity = item["price"], item["quantity"]
        else:
            price, quantity = item.price, item.quantity
        if price < 0 or quantity < 0:
            raise PricingValueError("price and quantity must be non-negative")
        subtotal += price * quantity
    return subtotal


def discount_for(subtotal: float, voucher: Optional[Voucher]) -> float:
    """
    Discount a voucher gives on a subtotal

    Args:
        subtotal: Order subtotal before shipping
        voucher: Selected voucher, or None

    Returns:
        float: Discount in [0, subtotal]. Zero when there is no voucher or the
        subtotal is below the voucher's minimum order.
    """
    if voucher is None:
        return 0
    if subtotal < voucher.min_order:
        return 0

    if voucher.discount_type == DiscountType.PERCENT:
        discount = round_half_up(subtotal * voucher.discount_value / 100)
    else:
        discount = voucher.discount_value

    return max(0, min(discount, subtotal))


def calculate_total(subtotal: float, shipping_fee: float, discount: float) -> float:
    """
    Order total: subtotal + shipping_fee - discount

    Raises:
        PricingValueError: If any amount is negative or the discount exceeds
        the subtotal
    """
    if subtotal < 0 or shipping_fee < 0 or discount < 0:
        raise PricingValueError("amounts must be non-negative")
    if discount > subtotal:
        raise PricingValueError("discount cannot exceed subtotal")
    return subtotal + shipping_fee - discount


def voucher_rejection_reason(
    subtotal: float,
    voucher: Voucher,
    now: Optional[datetime] = None,
    owned_ids: Optional[Set[str]] = None
) -> Optional[str]:
    """
    Why a selected voucher cannot be applied, or None if it can

    Reasons:
        voucher_not_owned    - caller does not hold the voucher
        voucher_not_eligible - inactive, used up or expired
        min_order_not_met    - subtotal below the voucher's minimum order
    """
    if owned_ids is not None and voucher.id not in owned_ids:
        return "voucher_not_owned"
    if not voucher.is_eligible(now):
        return "voucher_not_eligible"
    if subtotal < voucher.min_order:
        return "min_order_not_met"
    return None


def quote_order(
    subtotal: float,
    voucher: Optional[Voucher],
    coordinates: Optional[GPSCoordinates],
    default_shipping_fee: float,
    now: Optional[datetime] = None,
    owned_ids: Optional[Set[str]] = None
) -> Dict[str, Any]:
    """
    Full pricing breakdown for a checkout

    A voucher that cannot be applied is deselected: it is reported in
    `voucher_rejected_reason` and `applied_voucher` is None, so a stale
    selection never reduces the total.

    Returns:
        dict: subtotal, shipping_fee, distance_km, shipping_fee_source,
        discount, total, applied_voucher, voucher_rejected_reason
    """
    if subtotal < 0:
        raise PricingValueError("subtotal must be non-negative")

    shipping = calculate_shipping_fee(coordinates, default_shipping_fee)

    rejected_reason = None
    applied = voucher
    if voucher is not None:
        rejected_reason = voucher_rejection_reason(subtotal, voucher, now, owned_ids)
        if rejected_reason is not None:
            applied = None

    discount = discount_for(subtotal, applied)
    total = calculate_total(subtotal, shipping["shipping_fee"], discount)

    return {
        "subtotal": subtotal,
        "shipping_fee": shipping["shipping_fee"],
        "distance_km": shipping["distance_km"],
        "shipping_fee_source": shipping["source"],
        "discount": discount,
        "total": total,
        "applied_voucher": applied,
        "voucher_rejected_reason": rejected_reason,
    }
