"""
Business exceptions raised by the Payments service.

Every exception carries the domain it was raised in, a message for logs, a
message safe to return to API clients, an HTTP status and a machine-readable
code. They propagate unchanged to the caller of the orchestrator.
"""
from fastapi import status


class BusinessException(Exception):
    """Base class for business-level errors."""

    code = "business_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        domain: str,
        message: str,
        api_message: str = None,
        status_code: int = None,
        code: str = None,
    ):
        super().__init__(message)
        self.domain = domain
        self.message = message
        self.api_message = api_message or message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code

    def to_dict(self) -> dict:
        return {"domain": self.domain, "code": self.code, "message": self.api_message}


class InvalidProduct(BusinessException):
    code = "invalid_product"

    def __init__(self, product_id: str):
        super().__init__("payment", f"Product with ID {product_id} not found", "Invalid product")
        self.product_id = product_id


class UserNotFound(BusinessException):
    code = "user_not_found"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, user_id: str):
        super().__init__("user", f"User {user_id} not found", "User not found")
        self.user_id = user_id


class InvalidCoupon(BusinessException):
    code = "invalid_coupon"

    def __init__(self, message: str):
        super().__init__("payment", message, "Invalid coupon")


class InvalidPoints(BusinessException):
    code = "invalid_points"

    def __init__(self, message: str):
        super().__init__("payment", message, "Invalid points")


class OrderNotFound(BusinessException):
    code = "order_not_found"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, order_id: str):
        super().__init__("payment", f"Order {order_id} not found", "Order not found")
        self.order_id = order_id


class CouponAlreadyUsed(BusinessException):
    code = "coupon_already_used"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, issued_coupon_id: str):
        super().__init__(
            "payment",
            f"Issued coupon {issued_coupon_id} has already been used",
            "Coupon already used",
        )
        self.issued_coupon_id = issued_coupon_id


class InsufficientPoints(BusinessException):
    code = "insufficient_points"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, user_id: str, requested: int, available: int):
        super().__init__(
            "payment",
            f"User {user_id} has {available} points available, {requested} requested",
            "Insufficient points",
        )
        self.user_id = user_id
        self.requested = requested
        self.available = available


class OrderAlreadyPaid(BusinessException):
    code = "order_already_paid"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, order_id: str, current_status: str):
        super().__init__(
            "payment",
            f"Order {order_id} cannot be completed from status '{current_status}'",
            "Order already paid",
        )
        self.order_id = order_id
        self.current_status = current_status


class CatalogUnavailable(BusinessException):
    code = "catalog_unavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, message: str):
        super().__init__("payment", message, "Service communication error")
