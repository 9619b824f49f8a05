"""
Price and discount calculation for the Payments service.

Pure functions: they take already loaded prices, coupons and balances and
never read or write the database.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Mapping, Optional

from .domain import DiscountType, is_within_window
from .exceptions import InvalidCoupon, InvalidPoints, InvalidProduct

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass(frozen=True)
class CouponTerms:
    """Discount type and value of the coupon being applied."""
    type: str
    value: Decimal


def compute_total(items: Iterable, catalog_prices: Mapping[str, Decimal]) -> Decimal:
    """
    Sum price x quantity over all order items.

    Args:
        items: Order items exposing product_id and quantity
        catalog_prices: Current unit price per product id

    Returns:
        Order total before discounts

    Raises:
        InvalidProduct: if an item references a product missing from the catalog
    """
    total = ZERO
    for item in items:
        if item.product_id not in catalog_prices:
            raise InvalidProduct(item.product_id)
        total += Decimal(str(catalog_prices[item.product_id])) * item.quantity
    return total


def coupon_discount(total: Decimal, coupon: CouponTerms) -> Decimal:
    """
    Discount granted by a coupon on the given total.

    Percent coupons take value% of the total, fixed coupons take their value.
    Unknown types grant nothing.
    """
    try:
        discount_type = DiscountType(coupon.type)
    except ValueError:
        logger.warning(f"Unknown coupon type '{coupon.type}', no discount applied")
        return ZERO

    value = Decimal(str(coupon.value))
    if discount_type is DiscountType.PERCENT:
        return total * value / 100
    if discount_type is DiscountType.FIXED:
        return value
    return ZERO


def apply_discounts(
    total: Decimal,
    coupon: Optional[CouponTerms] = None,
    points: Optional[int] = None,
) -> Decimal:
    """
    Final amount after coupon and point discounts.

    Both discounts are computed from the same original total and summed
    before being subtracted. The result is clamped at zero.

    Args:
        total: Order total before discounts
        coupon: Terms of a validated coupon, if any
        points: Validated number of points to spend, if any

    Returns:
        Final amount, never negative
    """
    total = Decimal(str(total))
    discount_from_coupon = coupon_discount(total, coupon) if coupon else ZERO
    discount_from_points = Decimal(points) if points else ZERO

    final_amount = total - (discount_from_coupon + discount_from_points)
    return final_amount if final_amount > ZERO else ZERO


def check_coupon_usable(issued_coupon, user_id: str, now: datetime = None) -> None:
    """
    Validate that an issued coupon can be applied by the user right now.

    Raises:
        InvalidCoupon: if the coupon is missing, belongs to someone else,
            was already used, is not valid yet or has expired
    """
    if issued_coupon is None:
        raise InvalidCoupon(f"user doesn't have coupon. userId: {user_id}")

    now = now or datetime.utcnow()
    if issued_coupon.user_id != user_id:
        raise InvalidCoupon(
            f"Coupon {issued_coupon.id} does not belong to user {user_id}"
        )
    if not issued_coupon.is_valid:
        raise InvalidCoupon(f"Coupon {issued_coupon.id} has already been used")
    if not is_within_window(issued_coupon.valid_from, issued_coupon.valid_until, now):
        raise InvalidCoupon(
            f"Coupon {issued_coupon.id} is only valid from {issued_coupon.valid_from} "
            f"until {issued_coupon.valid_until}"
        )


def check_points_usable(requested: int, available: int) -> None:
    """
    Validate a request to spend loyalty points.

    Only validates; the balance is decremented when the order is completed.

    Raises:
        InvalidPoints: if the request is negative, the balance is negative,
            or the request exceeds the balance
    """
    if requested < 0:
        raise InvalidPoints(f"Invalid points amount requested: {requested}")
    if available < 0 or requested > available:
        raise InvalidPoints(f"Invalid points amount {available}")
