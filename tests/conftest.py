import os

# Point the service at SQLite before any payments module creates its engine.
os.environ["DATABASE_URL"] = "sqlite://"

from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from payments import models
from payments.database import Base, UnitOfWork
from payments.schemas import OrderItemCreate
from payments.service import PaymentService

USER_ID = "user-1"
OTHER_USER_ID = "user-2"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_uow(session_factory):
    return lambda: UnitOfWork(session_factory)


@pytest.fixture
def now():
    return datetime(2026, 10, 19, 12, 0, 0)


@pytest.fixture
def service(now):
    return PaymentService(clock=lambda: now)


@pytest.fixture
def seeded(db, now):
    """Users, products, coupons and point balances shared by most tests."""
    db.add_all([
        models.User(id=USER_ID, email="buyer@example.com", name="Buyer"),
        models.User(id=OTHER_USER_ID, email="other@example.com", name="Other"),
        models.Product(id="p-100", name="Keyboard", price=Decimal("100")),
        models.Product(id="p-50", name="Mouse", price=Decimal("50")),
        models.Coupon(id="c-percent-10", name="10% off", type="percent", value=Decimal("10")),
        models.Coupon(id="c-fixed-150", name="150 off", type="fixed", value=Decimal("150")),
        models.Coupon(id="c-fixed-30", name="30 off", type="fixed", value=Decimal("30")),
        models.Point(id="pt-1", user_id=USER_ID, available_amount=60),
    ])
    db.flush()
    window = dict(valid_from=now - timedelta(days=1), valid_until=now + timedelta(days=30))
    db.add_all([
        models.IssuedCoupon(id="ic-percent", coupon_id="c-percent-10", user_id=USER_ID, **window),
        models.IssuedCoupon(id="ic-fixed-150", coupon_id="c-fixed-150", user_id=USER_ID, **window),
        models.IssuedCoupon(id="ic-fixed-30", coupon_id="c-fixed-30", user_id=USER_ID, **window),
        models.IssuedCoupon(
            id="ic-expired",
            coupon_id="c-fixed-30",
            user_id=OTHER_USER_ID,
            valid_from=now - timedelta(days=30),
            valid_until=now - timedelta(days=1),
        ),
    ])
    db.commit()
    return db


def item(product_id: str, quantity: int) -> OrderItemCreate:
    return OrderItemCreate(product_id=product_id, quantity=quantity)


def fresh(db, model, pk):
    """Reload a row as committed by other sessions."""
    db.expire_all()
    return db.get(model, pk)
