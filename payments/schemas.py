"""
Pydantic schemas for request/response validation in the Payments service.

These schemas define the structure of data for API requests and responses.
"""
from datetime import datetime
from typing import Optional, List
from decimal import Decimal
from pydantic import BaseModel, Field


class OrderItemCreate(BaseModel):
    """Schema for a requested order line item."""
    product_id: str = Field(..., description="Product ID from the catalog")
    quantity: int = Field(..., gt=0, description="Quantity ordered")


class OrderCreate(BaseModel):
    """
    Schema for initiating an order.

    Prices are never taken from the client; they are looked up in the catalog.
    """
    user_id: Optional[str] = Field(None, description="Ordering user, defaults to the caller")
    items: List[OrderItemCreate] = Field(..., min_length=1, description="Order line items")
    coupon_id: Optional[str] = Field(None, description="Coupon issued to the user")
    point_amount_to_use: Optional[int] = Field(None, description="Loyalty points to spend")
    shipping_address: Optional[str] = Field(None, min_length=1, description="Delivery address")


class OrderItem(BaseModel):
    """Schema for an order line item with its price snapshot."""
    product_id: str
    quantity: int
    unit_price: Decimal

    class Config:
        from_attributes = True


class ShippingInfo(BaseModel):
    id: str
    address: str
    status: str

    class Config:
        from_attributes = True


class Order(BaseModel):
    """
    Schema for order responses, includes all database fields.

    Attributes:
        id (str): Order's unique identifier
        user_id (str): ID of the user who placed the order
        amount (Decimal): Final amount after discounts
        status (str): "started" or "paid"
        items (List[OrderItem]): Order line items
        shipping_info (ShippingInfo): Shipping details, if an address was given
        used_issued_coupon_id (str): Issued coupon redeemed on completion
        point_amount_used (int): Points consumed on completion
        created_at (datetime): When the order was created
        paid_at (datetime): When the order was completed
    """
    id: str
    user_id: str
    amount: Decimal
    status: str
    items: List[OrderItem] = Field(default_factory=list)
    shipping_info: Optional[ShippingInfo] = None
    used_issued_coupon_id: Optional[str] = None
    point_amount_used: int = 0
    created_at: datetime
    paid_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PointLog(BaseModel):
    id: int
    amount: int
    reason: str
    created_at: datetime

    class Config:
        from_attributes = True


class PointBalance(BaseModel):
    """Schema for a user's loyalty point balance and its consumption history."""
    user_id: str
    available_amount: int
    logs: List[PointLog] = Field(default_factory=list)


class Error(BaseModel):
    """Schema for business error responses."""
    domain: str
    code: str
    message: str
