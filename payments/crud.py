"""
Order persistence for the Payments service.

This module contains the database operations for orders, their line items
and shipping info. Like the entitlement ledgers, nothing here commits; the
orchestrator's unit of work does.
"""
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Mapping, Optional, Sequence
import logging

from sqlalchemy import update
from sqlalchemy.orm import Session

from . import entitlements, models
from .clients.users_client import SqlUserDirectory, UserDirectory
from .domain import OrderStatus, ShippingStatus, mark_paid
from .exceptions import OrderAlreadyPaid, OrderNotFound, UserNotFound

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def get_order(db: Session, order_id: str, lock: bool = False) -> Optional[models.Order]:
    """
    Retrieve a single order by ID.

    Args:
        db: Database session
        order_id: ID of the order to retrieve
        lock: Lock the order row for the rest of the transaction

    Returns:
        Order object or None if not found
    """
    query = db.query(models.Order).filter(models.Order.id == order_id)
    if lock:
        # Lock only the order row, shipping info is outer joined
        query = query.with_for_update(of=models.Order).populate_existing()
    return query.first()


def get_orders_for_user(db: Session, user_id: str, skip: int = 0, limit: int = 100) -> List[models.Order]:
    """
    Retrieve a user's orders with pagination, newest first.

    Args:
        db: Database session
        user_id: Owner of the orders
        skip: Number of records to skip (offset)
        limit: Maximum number of records to return

    Returns:
        List of Order objects
    """
    return (
        db.query(models.Order)
        .filter(models.Order.user_id == user_id)
        .order_by(models.Order.created_at.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def create_shipping_info(db: Session, address: str) -> models.ShippingInfo:
    """
    Create the shipping info for a new order.

    Args:
        db: Database session
        address: Delivery address

    Returns:
        ShippingInfo in the "ordered" status
    """
    if not address or not address.strip():
        raise ValueError("Shipping address must not be empty")
    shipping_info = models.ShippingInfo(address=address, status=ShippingStatus.ORDERED.value)
    db.add(shipping_info)
    db.flush()
    return shipping_info


def create_order(
    db: Session,
    user_id: str,
    items: Sequence,
    final_amount: Decimal,
    unit_prices: Mapping[str, Decimal],
    shipping_info: Optional[models.ShippingInfo] = None,
    issued_coupon: Optional[models.IssuedCoupon] = None,
    point_amount_used: int = 0,
    users: Optional[UserDirectory] = None,
) -> models.Order:
    """
    Persist a new order in the "started" status.

    Unit prices are copied onto the order items so later catalog changes
    never alter the order.

    Args:
        db: Database session
        user_id: ID of the ordering user
        items: Requested items exposing product_id and quantity
        final_amount: Amount to charge after discounts
        unit_prices: Catalog price per product id at order time
        shipping_info: Optional shipping info created for the order
        issued_coupon: Coupon to redeem when the order is completed
        point_amount_used: Points to consume when the order is completed
        users: Directory used to resolve the user (defaults to the users table)

    Returns:
        Created Order object

    Raises:
        UserNotFound: if the user does not exist
    """
    users = users or SqlUserDirectory()
    if users.resolve_user(db, user_id) is None:
        raise UserNotFound(user_id)

    db_order = models.Order(
        user_id=user_id,
        amount=Decimal(str(final_amount)).quantize(CENTS, rounding=ROUND_HALF_UP),
        status=OrderStatus.STARTED.value,
        shipping_info=shipping_info,
        used_issued_coupon_id=issued_coupon.id if issued_coupon is not None else None,
        point_amount_used=point_amount_used or 0,
        items=[
            models.OrderItem(
                position=position,
                product_id=item.product_id,
                quantity=item.quantity,
                unit_price=unit_prices[item.product_id],
            )
            for position, item in enumerate(items)
        ],
    )
    db.add(db_order)
    db.flush()
    logger.info(f"Created order {db_order.id} for user {user_id} with amount {db_order.amount}")
    return db_order


def complete_order(db: Session, order_id: str, now: datetime = None) -> models.Order:
    """
    Settle an order: redeem its coupon, consume its points and mark it paid.

    All three writes go through the caller's session, so they commit or roll
    back together.

    Args:
        db: Database session of the enclosing unit of work
        order_id: ID of the order to complete
        now: Completion time (defaults to utcnow)

    Returns:
        The paid Order

    Raises:
        OrderNotFound: if the order does not exist
        CouponAlreadyUsed: if the order's coupon was already redeemed
        InsufficientPoints: if the user's balance no longer covers the order's points
        OrderAlreadyPaid: if the order is not in the started status
    """
    now = now or datetime.utcnow()
    db_order = get_order(db, order_id, lock=True)
    if db_order is None:
        raise OrderNotFound(order_id)

    if db_order.used_issued_coupon_id:
        entitlements.redeem(db, db_order.used_issued_coupon_id, now=now)
    new_status = mark_paid(db_order.id, db_order.status)
    if db_order.point_amount_used:
        entitlements.consume(db, db_order.user_id, db_order.point_amount_used, entitlements.ORDER_USE_REASON)

    result = db.execute(
        update(models.Order)
        .where(
            models.Order.id == db_order.id,
            models.Order.status == OrderStatus.STARTED.value,
        )
        .values(status=new_status, paid_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.refresh(db_order)
        raise OrderAlreadyPaid(db_order.id, db_order.status)

    db.refresh(db_order)
    logger.info(f"Order {db_order.id} paid")
    return db_order
