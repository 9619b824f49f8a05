"""
Payments Service API

This module implements a FastAPI-based microservice that turns carts into
priced orders and settles them, consuming the coupons and loyalty points the
order reserved.

Endpoints:
    GET /healthz: Health check endpoint for orchestration systems
    POST /orders: Initiate an order from a cart
    POST /orders/{order_id}/complete: Settle a started order
    GET /orders: List the caller's orders with pagination
    GET /orders/{order_id}: Get a single order by ID
    GET /points/me: The caller's point balance and history

Attributes:
    app (FastAPI): The FastAPI application instance configured with the title "payments-service"
"""
import os
import logging
from typing import List
from fastapi import FastAPI, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from . import auth, crud, entitlements, models, schemas
from .clients.catalog_client import HttpCatalog, SqlCatalog
from .clients.users_client import HttpUserDirectory, SqlUserDirectory
from .database import UnitOfWork, engine, get_db, get_uow
from .exceptions import BusinessException
from .service import PaymentService

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
CATALOG_BACKEND = os.getenv("CATALOG_BACKEND", "sql")
USERS_BACKEND = os.getenv("USERS_BACKEND", "sql")

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

# Create database tables
models.Base.metadata.create_all(bind=engine)

app = FastAPI(title="payments-service")

BUSINESS_ERROR_RESPONSES = {
    code: {"model": schemas.Error} for code in (400, 404, 409, 503)
}


@app.exception_handler(BusinessException)
def business_exception_handler(request: Request, exc: BusinessException):
    """Return business errors as JSON with their status and code."""
    logger.warning(f"{request.method} {request.url.path} failed: [{exc.code}] {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def get_payment_service(
    current_user: auth.CurrentUser = Depends(auth.get_current_user)
) -> PaymentService:
    """
    Build the orchestrator with the configured catalog and user directory.

    HTTP adapters forward the caller's token to the other services.
    """
    catalog = HttpCatalog(token=current_user.token) if CATALOG_BACKEND == "http" else SqlCatalog()
    users = HttpUserDirectory(token=current_user.token) if USERS_BACKEND == "http" else SqlUserDirectory()
    return PaymentService(catalog=catalog, users=users)


@app.get("/healthz", response_model=dict)
def health():
    """
    Health check endpoint for the payments service.

    Returns:
        dict: {"status": "healthy"} when the service is operational.
    """
    return {"status": "healthy"}


@app.post(
    "/orders",
    response_model=schemas.Order,
    status_code=status.HTTP_201_CREATED,
    responses=BUSINESS_ERROR_RESPONSES,
)
def init_order(
    order: schemas.OrderCreate,
    uow: UnitOfWork = Depends(get_uow),
    service: PaymentService = Depends(get_payment_service),
    current_user: auth.CurrentUser = Depends(auth.get_current_user)
):
    """
    Initiate an order (authenticated users only).

    This endpoint:
    - Looks up current prices for every item in the catalog
    - Validates the coupon and point request against the user's entitlements
    - Persists the order in the "started" status with the discounted amount
    - Users can only create orders for themselves (unless admin)

    Raises:
        HTTPException: 403 if not authorized
        BusinessException: 400/404 for invalid products, coupons, points or users
    """
    user_id = order.user_id or current_user.id
    auth.ensure_owner_or_admin(current_user, user_id, "create orders for other users")

    return service.init_order(
        uow,
        user_id=user_id,
        items=order.items,
        coupon_id=order.coupon_id,
        point_amount_to_use=order.point_amount_to_use,
        shipping_address=order.shipping_address,
    )


@app.post(
    "/orders/{order_id}/complete",
    response_model=schemas.Order,
    responses=BUSINESS_ERROR_RESPONSES,
)
def complete_order(
    order_id: str,
    uow: UnitOfWork = Depends(get_uow),
    service: PaymentService = Depends(get_payment_service),
    current_user: auth.CurrentUser = Depends(auth.get_current_user)
):
    """
    Settle a started order (owner or admin).

    Redeems the order's coupon and consumes its points atomically.

    Raises:
        HTTPException: 403 if not authorized
        BusinessException: 404 if the order does not exist, 409 if its
            entitlements were already consumed or it is already paid
    """
    def authorize(order: models.Order):
        auth.ensure_owner_or_admin(current_user, order.user_id, "complete this order")

    return service.complete_order(uow, order_id, authorize=authorize)


@app.get("/orders", response_model=List[schemas.Order])
def list_orders(
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_user: auth.CurrentUser = Depends(auth.get_current_user)
):
    """List the caller's orders, newest first."""
    return crud.get_orders_for_user(db, current_user.id, skip=skip, limit=limit)


@app.get("/orders/{order_id}", response_model=schemas.Order)
def get_order(
    order_id: str,
    db: Session = Depends(get_db),
    current_user: auth.CurrentUser = Depends(auth.get_current_user)
):
    """
    Get a single order by ID (owner or admin).

    Raises:
        HTTPException: 403 if not authorized
        HTTPException: 404 if order not found
    """
    db_order = crud.get_order(db, order_id)
    if db_order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    auth.ensure_owner_or_admin(current_user, db_order.user_id, "access this order")
    return db_order


@app.get("/points/me", response_model=schemas.PointBalance)
def get_my_points(
    db: Session = Depends(get_db),
    current_user: auth.CurrentUser = Depends(auth.get_current_user)
):
    """The caller's available points and consumption history."""
    point = entitlements.get_point(db, current_user.id)
    if point is None:
        return schemas.PointBalance(user_id=current_user.id, available_amount=0)
    return schemas.PointBalance(
        user_id=current_user.id,
        available_amount=point.available_amount,
        logs=[schemas.PointLog.model_validate(log) for log in point.logs],
    )
