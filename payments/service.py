"""
Order orchestration for the Payments service.

``PaymentService`` prices a cart into a started order and later settles it.
Each operation runs inside the UnitOfWork it is given: all of its writes
commit together, or none do.
"""
from datetime import datetime
from typing import Optional, Sequence
import logging

from . import crud, entitlements, models
from .clients.catalog_client import CatalogPort, SqlCatalog
from .clients.users_client import SqlUserDirectory, UserDirectory
from .database import UnitOfWork
from .discounts import (
    CouponTerms,
    apply_discounts,
    check_coupon_usable,
    check_points_usable,
    compute_total,
)

logger = logging.getLogger(__name__)


class PaymentService:
    """
    Prices and settles orders.

    Args:
        catalog: Source of current product prices
        users: Directory used to check that the ordering user exists
        clock: Callable returning the current time (utcnow by default)
    """

    def __init__(
        self,
        catalog: Optional[CatalogPort] = None,
        users: Optional[UserDirectory] = None,
        clock=None,
    ):
        self.catalog = catalog or SqlCatalog()
        self.users = users or SqlUserDirectory()
        self.clock = clock or datetime.utcnow

    def init_order(
        self,
        uow: UnitOfWork,
        user_id: str,
        items: Sequence,
        coupon_id: Optional[str] = None,
        point_amount_to_use: Optional[int] = None,
        shipping_address: Optional[str] = None,
    ) -> models.Order:
        """
        Price a cart and persist it as a started order.

        Coupon and points are validated here but only consumed by
        ``complete_order``.

        Args:
            uow: Unit of work the order is written in
            user_id: ID of the ordering user
            items: Items exposing product_id and quantity
            coupon_id: ID of a coupon issued to the user
            point_amount_to_use: Loyalty points to spend on the order
            shipping_address: Delivery address; no shipping info without it

        Returns:
            The persisted Order

        Raises:
            InvalidProduct, InvalidCoupon, InvalidPoints, UserNotFound
        """
        with uow:
            db = uow.session
            now = self.clock()
            prices = self.catalog.get_prices(db, {item.product_id for item in items})
            total = compute_total(items, prices)

            issued_coupon = None
            coupon_terms = None
            if coupon_id:
                issued_coupon = entitlements.find_issued_coupon(db, coupon_id, user_id, now)
                check_coupon_usable(issued_coupon, user_id, now)
                coupon_terms = CouponTerms(type=issued_coupon.coupon.type, value=issued_coupon.coupon.value)

            points = 0
            if point_amount_to_use:
                check_points_usable(point_amount_to_use, entitlements.get_available_points(db, user_id))
                points = point_amount_to_use

            final_amount = apply_discounts(total, coupon_terms, points)

            shipping_info = None
            if shipping_address and shipping_address.strip():
                shipping_info = crud.create_shipping_info(db, shipping_address)
            order = crud.create_order(
                db,
                user_id=user_id,
                items=items,
                final_amount=final_amount,
                unit_prices=prices,
                shipping_info=shipping_info,
                issued_coupon=issued_coupon,
                point_amount_used=points,
                users=self.users,
            )
            uow.commit()

        logger.info(f"Initiated order {order.id}: total {total}, final amount {order.amount}")
        return order

    def complete_order(self, uow: UnitOfWork, order_id: str, authorize=None) -> models.Order:
        """
        Settle a started order.

        Redeems the order's coupon, consumes its points and marks it paid in
        one transaction. On any failure the order stays started and nothing
        is consumed.

        Args:
            uow: Unit of work the settlement is written in
            order_id: ID of the order to settle
            authorize: Optional callable run on the stored order before any
                write; it raises to refuse the settlement

        Raises:
            OrderNotFound, CouponAlreadyUsed, InsufficientPoints, OrderAlreadyPaid
        """
        with uow:
            if authorize is not None:
                stored = crud.get_order(uow.session, order_id)
                if stored is not None:
                    authorize(stored)
            order = crud.complete_order(uow.session, order_id, now=self.clock())
            uow.commit()

        logger.info(f"Completed order {order.id}")
        return order
