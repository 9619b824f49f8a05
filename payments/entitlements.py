"""
Coupon and loyalty-point ledgers for the Payments service.

Lookups used while pricing an order, and the guarded consumption run when an
order is completed. Consumption functions never commit: they write through
the session of the caller's unit of work.
"""
from datetime import datetime
from typing import Optional
import logging

from sqlalchemy import update
from sqlalchemy.orm import Session

from . import models
from .domain import debit, ensure_redeemable
from .exceptions import CouponAlreadyUsed, InsufficientPoints

logger = logging.getLogger(__name__)

ORDER_USE_REASON = "order use"


def find_issued_coupon(
    db: Session, coupon_id: str, user_id: str, now: datetime = None
) -> Optional[models.IssuedCoupon]:
    """
    Retrieve the user's issuance of a coupon.

    An unused issuance valid at ``now`` is preferred, the one expiring soonest
    first. Without one, the closest match is returned so the caller can report
    why it is unusable.

    Args:
        db: Database session
        coupon_id: ID of the coupon definition
        user_id: ID of the user the coupon was issued to
        now: Time the coupon would be used at (defaults to utcnow)

    Returns:
        IssuedCoupon object or None if the user was never issued the coupon
    """
    now = now or datetime.utcnow()
    query = db.query(models.IssuedCoupon).filter(
        models.IssuedCoupon.coupon_id == coupon_id,
        models.IssuedCoupon.user_id == user_id,
    )
    usable = (
        query.filter(
            models.IssuedCoupon.is_valid.is_(True),
            models.IssuedCoupon.valid_from <= now,
            models.IssuedCoupon.valid_until > now,
        )
        .order_by(models.IssuedCoupon.valid_until.asc())
        .first()
    )
    if usable is not None:
        return usable
    return query.order_by(models.IssuedCoupon.is_valid.desc(), models.IssuedCoupon.valid_until.asc()).first()


def redeem(db: Session, issued_coupon_id: str, now: datetime = None) -> models.IssuedCoupon:
    """
    Mark an issued coupon as used.

    The row is locked, the usable -> used transition checked, and the write
    only applies while the coupon is still usable, so two concurrent
    redemptions can never both succeed.

    Args:
        db: Database session of the enclosing unit of work
        issued_coupon_id: ID of the issued coupon to redeem
        now: Redemption time (defaults to utcnow)

    Returns:
        The redeemed IssuedCoupon

    Raises:
        CouponAlreadyUsed: if the coupon is missing or was already used
    """
    issued_coupon = (
        db.query(models.IssuedCoupon)
        .filter(models.IssuedCoupon.id == issued_coupon_id)
        .with_for_update(of=models.IssuedCoupon)
        .populate_existing()
        .first()
    )
    if issued_coupon is None:
        raise CouponAlreadyUsed(issued_coupon_id)
    ensure_redeemable(issued_coupon.id, issued_coupon.is_valid)

    result = db.execute(
        update(models.IssuedCoupon)
        .where(
            models.IssuedCoupon.id == issued_coupon_id,
            models.IssuedCoupon.is_valid.is_(True),
        )
        .values(is_valid=False, used_at=now or datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.warning(f"Issued coupon {issued_coupon_id} was redeemed concurrently")
        raise CouponAlreadyUsed(issued_coupon_id)

    db.refresh(issued_coupon)
    logger.info(f"Redeemed issued coupon {issued_coupon_id}")
    return issued_coupon


def get_point(db: Session, user_id: str, lock: bool = False) -> Optional[models.Point]:
    """
    Retrieve the point balance of a user.

    Args:
        db: Database session
        user_id: ID of the user
        lock: Lock the row for the rest of the transaction

    Returns:
        Point object or None if the user has no balance yet
    """
    query = db.query(models.Point).filter(models.Point.user_id == user_id)
    if lock:
        query = query.with_for_update().populate_existing()
    return query.first()


def get_available_points(db: Session, user_id: str) -> int:
    point = get_point(db, user_id)
    return point.available_amount if point else 0


def consume(db: Session, user_id: str, amount: int, reason: str = ORDER_USE_REASON) -> models.Point:
    """
    Spend loyalty points and record the spending in the point log.

    The decrement only applies while the balance still covers the amount,
    and the log entry is written in the same transaction.

    Args:
        db: Database session of the enclosing unit of work
        user_id: ID of the user spending points
        amount: Number of points to spend
        reason: Audit label stored in the point log

    Returns:
        The updated Point balance

    Raises:
        InsufficientPoints: if the balance does not cover the amount
    """
    point = get_point(db, user_id, lock=True)
    if point is None:
        raise InsufficientPoints(user_id, amount, 0)
    debit(user_id, point.available_amount, amount)

    result = db.execute(
        update(models.Point)
        .where(
            models.Point.id == point.id,
            models.Point.available_amount >= amount,
        )
        .values(available_amount=models.Point.available_amount - amount)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.refresh(point)
        logger.warning(f"Point balance of user {user_id} changed concurrently")
        raise InsufficientPoints(user_id, amount, point.available_amount)

    db.add(models.PointLog(point_id=point.id, amount=amount, reason=reason))
    db.flush()
    db.refresh(point)
    logger.info(f"Consumed {amount} points of user {user_id} ({reason}), {point.available_amount} left")
    return point
