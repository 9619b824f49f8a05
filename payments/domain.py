"""
State transitions for orders and entitlements.

These functions only check and compute; they never touch the database. The
stores in ``crud`` and ``entitlements`` call them before issuing the guarded
update that persists the same transition.
"""
import enum
from datetime import datetime

from .exceptions import CouponAlreadyUsed, InsufficientPoints, OrderAlreadyPaid


class OrderStatus(str, enum.Enum):
    STARTED = "started"
    PAID = "paid"


class ShippingStatus(str, enum.Enum):
    ORDERED = "ordered"


class DiscountType(str, enum.Enum):
    PERCENT = "percent"
    FIXED = "fixed"


# Allowed order status transitions. Paid is terminal.
ORDER_TRANSITIONS = {
    OrderStatus.STARTED: {OrderStatus.PAID},
    OrderStatus.PAID: set(),
}


def can_transition(old_status: str, new_status: str) -> bool:
    try:
        old, new = OrderStatus(old_status), OrderStatus(new_status)
    except ValueError:
        return False
    return new in ORDER_TRANSITIONS[old]


def mark_paid(order_id: str, current_status: str) -> str:
    """
    Return the status an order moves to when it is completed.

    Raises:
        OrderAlreadyPaid: if the order is not in the started state
    """
    if not can_transition(current_status, OrderStatus.PAID.value):
        raise OrderAlreadyPaid(order_id, current_status)
    return OrderStatus.PAID.value


def ensure_redeemable(issued_coupon_id: str, is_valid: bool) -> None:
    """Only a usable coupon may move to used."""
    if not is_valid:
        raise CouponAlreadyUsed(issued_coupon_id)


def debit(user_id: str, available: int, amount: int) -> int:
    """
    Return the balance left after spending ``amount`` points.

    Raises:
        InsufficientPoints: if the balance would go negative
    """
    if amount < 0 or available < 0 or amount > available:
        raise InsufficientPoints(user_id, amount, available)
    remaining = available - amount
    return remaining


def is_within_window(valid_from: datetime, valid_until: datetime, now: datetime) -> bool:
    """Validity window check: valid_from <= now < valid_until."""
    return valid_from <= now < valid_until
