"""
SQLAlchemy ORM models for the Payments service.

Defines the database schema for orders, their line items and shipping info,
and for the coupon and loyalty-point entitlements that orders consume.
"""
import uuid
from datetime import datetime
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from .database import Base
from .domain import OrderStatus, ShippingStatus


def _new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    """
    User as known to the Payments service.

    Users are owned by the identity subsystem; this table only mirrors the
    ids orders and entitlements point to.
    """
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=_new_id)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class Product(Base):
    """Catalog product with its current unit price."""
    __tablename__ = "products"

    id = Column(String, primary_key=True, default=_new_id)
    name = Column(String, nullable=False)
    price = Column(Numeric(12, 2), nullable=False)


class ShippingInfo(Base):
    """
    Shipping details captured with an order.

    Attributes:
        id (str): Primary key
        address (str): Delivery address, never empty
        status (str): Shipping status, "ordered" on creation
    """
    __tablename__ = "shipping_infos"

    id = Column(String, primary_key=True, default=_new_id)
    address = Column(Text, nullable=False)
    status = Column(String, nullable=False, default=ShippingStatus.ORDERED.value)
    created_at = Column(DateTime, default=datetime.utcnow)


class Order(Base):
    """
    Order model representing a priced customer order.

    Attributes:
        id (str): Primary key, UUID string
        user_id (str): ID of the user who placed the order
        amount (Decimal): Final charged amount after discounts, never negative
        status (str): "started" until settled, then "paid"
        items (list): Ordered OrderItem rows with unit price snapshots
        shipping_info (ShippingInfo): Optional shipping details
        used_issued_coupon_id (str): Issued coupon redeemed when the order is paid
        point_amount_used (int): Loyalty points consumed when the order is paid
        created_at (datetime): Timestamp when the order was created
        paid_at (datetime): Timestamp when the order was completed
    """
    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_orders_amount_non_negative"),
        CheckConstraint("point_amount_used >= 0", name="ck_orders_points_non_negative"),
    )

    id = Column(String, primary_key=True, index=True, default=_new_id)
    user_id = Column(String, nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(String, nullable=False, default=OrderStatus.STARTED.value)
    shipping_info_id = Column(String, ForeignKey("shipping_infos.id"), nullable=True)
    used_issued_coupon_id = Column(String, ForeignKey("issued_coupons.id"), nullable=True)
    point_amount_used = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    paid_at = Column(DateTime, nullable=True)

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
        lazy="selectin",
    )
    shipping_info = relationship("ShippingInfo", lazy="joined", single_parent=True, cascade="all, delete-orphan")
    used_issued_coupon = relationship("IssuedCoupon")


class OrderItem(Base):
    """
    Order line item with the unit price captured when the order started.

    Attributes:
        id (int): Primary key
        order_id (str): Owning order
        position (int): Position of the item within the order
        product_id (str): Catalog product id
        quantity (int): Quantity ordered, always positive
        unit_price (Decimal): Price per unit at order time
    """
    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String, ForeignKey("orders.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    product_id = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)

    order = relationship("Order", back_populates="items")


class Coupon(Base):
    """
    Coupon definition.

    Attributes:
        id (str): Primary key
        name (str): Display name
        type (str): Discount type, "percent" or "fixed"
        value (Decimal): Percentage (0-100) or fixed currency amount
    """
    __tablename__ = "coupons"

    id = Column(String, primary_key=True, default=_new_id)
    name = Column(String, nullable=True)
    type = Column(String, nullable=False)
    value = Column(Numeric(12, 2), nullable=False)


class IssuedCoupon(Base):
    """
    A coupon granted to one user, usable once within its validity window.

    Attributes:
        id (str): Primary key
        coupon_id (str): Coupon definition
        user_id (str): Owning user
        valid_from (datetime): Start of the validity window (inclusive)
        valid_until (datetime): End of the validity window (exclusive)
        is_valid (bool): True while the coupon is unused
        used_at (datetime): When the coupon was redeemed
    """
    __tablename__ = "issued_coupons"
    __table_args__ = (
        CheckConstraint("valid_from < valid_until", name="ck_issued_coupons_window"),
    )

    id = Column(String, primary_key=True, default=_new_id)
    coupon_id = Column(String, ForeignKey("coupons.id"), nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    valid_from = Column(DateTime, nullable=False)
    valid_until = Column(DateTime, nullable=False)
    is_valid = Column(Boolean, nullable=False, default=True)
    used_at = Column(DateTime, nullable=True)

    coupon = relationship("Coupon", lazy="joined")


class Point(Base):
    """
    Loyalty point balance, one row per user.

    Attributes:
        id (str): Primary key
        user_id (str): Owning user (unique)
        available_amount (int): Spendable points, never negative
    """
    __tablename__ = "points"
    __table_args__ = (
        CheckConstraint("available_amount >= 0", name="ck_points_available_non_negative"),
    )

    id = Column(String, primary_key=True, default=_new_id)
    user_id = Column(String, nullable=False, unique=True)
    available_amount = Column(Integer, nullable=False, default=0)

    logs = relationship("PointLog", back_populates="point", order_by="PointLog.id")


class PointLog(Base):
    """
    Append-only record of a point consumption.

    Attributes:
        id (int): Primary key, auto-incrementing
        point_id (str): Point balance the entry belongs to
        amount (int): Points consumed
        reason (str): Free-text audit label (e.g. "order use")
        created_at (datetime): When the points were consumed
    """
    __tablename__ = "point_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    point_id = Column(String, ForeignKey("points.id"), nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    reason = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    point = relationship("Point", back_populates="logs")
