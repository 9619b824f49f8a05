"""Tests for the Payments service HTTP API."""

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from payments import auth, models
from payments.database import UnitOfWork, get_db, get_uow
from payments.main import app, get_payment_service
from payments.service import PaymentService

from conftest import OTHER_USER_ID, USER_ID, fresh


def token_for(user_id, role="user"):
    claims = {"sub": user_id, "email": f"{user_id}@example.com", "role": role}
    return jwt.encode(claims, auth.SECRET_KEY, algorithm=auth.ALGORITHM)


def headers_for(user_id, role="user"):
    return {"Authorization": f"Bearer {token_for(user_id, role)}"}


@pytest.fixture
def client(seeded, session_factory, now):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_uow] = lambda: UnitOfWork(session_factory)
    app.dependency_overrides[get_payment_service] = lambda: PaymentService(clock=lambda: now)
    yield TestClient(app)
    app.dependency_overrides.clear()


def create_order(client, caller=USER_ID, **body):
    body.setdefault("items", [{"product_id": "p-100", "quantity": 2}])
    return client.post("/orders", json=body, headers=headers_for(caller))


class TestHealth:
    def test_healthz(self, client):
        assert client.get("/healthz").json() == {"status": "healthy"}

    def test_business_errors_are_documented(self, client):
        schema = client.get("/openapi.json").json()
        responses = schema["paths"]["/orders/{order_id}/complete"]["post"]["responses"]
        assert responses["409"]["content"]["application/json"]["schema"]["$ref"].endswith("/Error")
        assert set(schema["components"]["schemas"]["Error"]["properties"]) == {"domain", "code", "message"}


class TestInitOrder:
    def test_creates_started_order(self, client):
        response = create_order(client, coupon_id="c-percent-10", shipping_address="1 Main St")

        assert response.status_code == 201
        order = response.json()
        assert order["status"] == "started"
        assert float(order["amount"]) == 180.0
        assert order["user_id"] == USER_ID
        assert order["items"][0]["product_id"] == "p-100"
        assert order["shipping_info"]["status"] == "ordered"

    def test_invalid_points_is_a_business_error(self, client):
        response = create_order(client, point_amount_to_use=80)

        assert response.status_code == 400
        assert response.json() == {"domain": "payment", "code": "invalid_points", "message": "Invalid points"}

    def test_invalid_product(self, client):
        response = create_order(client, items=[{"product_id": "p-404", "quantity": 1}])
        assert response.status_code == 400
        assert response.json()["code"] == "invalid_product"

    def test_cannot_order_for_someone_else(self, client):
        response = create_order(client, caller=USER_ID, user_id=OTHER_USER_ID)
        assert response.status_code == 403

    def test_rejects_non_positive_quantity(self, client):
        response = create_order(client, items=[{"product_id": "p-100", "quantity": 0}])
        assert response.status_code == 422

    def test_requires_valid_token(self, client):
        response = client.post(
            "/orders",
            json={"items": [{"product_id": "p-100", "quantity": 1}]},
            headers={"Authorization": "Bearer not-a-token"},
        )
        assert response.status_code == 401


class TestCompleteOrder:
    def test_completes_order(self, client, seeded):
        order_id = create_order(client, coupon_id="c-fixed-30", point_amount_to_use=20).json()["id"]

        response = client.post(f"/orders/{order_id}/complete", headers=headers_for(USER_ID))

        assert response.status_code == 200
        assert response.json()["status"] == "paid"
        assert fresh(seeded, models.Point, "pt-1").available_amount == 40

    def test_second_completion_conflicts(self, client):
        order_id = create_order(client, coupon_id="c-fixed-30").json()["id"]
        client.post(f"/orders/{order_id}/complete", headers=headers_for(USER_ID))

        response = client.post(f"/orders/{order_id}/complete", headers=headers_for(USER_ID))

        assert response.status_code == 409
        assert response.json()["code"] == "coupon_already_used"

    def test_unknown_order(self, client):
        response = client.post("/orders/nonexistent-id/complete", headers=headers_for(USER_ID))
        assert response.status_code == 404
        assert response.json()["code"] == "order_not_found"

    def test_other_users_order_is_forbidden(self, client):
        order_id = create_order(client).json()["id"]
        response = client.post(f"/orders/{order_id}/complete", headers=headers_for(OTHER_USER_ID))
        assert response.status_code == 403


class TestReadEndpoints:
    def test_get_order_as_owner_and_admin(self, client):
        order_id = create_order(client).json()["id"]

        assert client.get(f"/orders/{order_id}", headers=headers_for(USER_ID)).status_code == 200
        assert client.get(f"/orders/{order_id}", headers=headers_for("admin-1", role="admin")).status_code == 200
        assert client.get(f"/orders/{order_id}", headers=headers_for(OTHER_USER_ID)).status_code == 403

    def test_list_orders_only_returns_callers_orders(self, client):
        create_order(client)
        create_order(client)

        assert len(client.get("/orders", headers=headers_for(USER_ID)).json()) == 2
        assert client.get("/orders", headers=headers_for(OTHER_USER_ID)).json() == []

    def test_points_balance_and_history(self, client):
        order_id = create_order(client, point_amount_to_use=15).json()["id"]
        client.post(f"/orders/{order_id}/complete", headers=headers_for(USER_ID))

        body = client.get("/points/me", headers=headers_for(USER_ID)).json()

        assert body["available_amount"] == 45
        assert [(log["amount"], log["reason"]) for log in body["logs"]] == [(15, "order use")]

    def test_points_for_user_without_balance(self, client):
        body = client.get("/points/me", headers=headers_for(OTHER_USER_ID)).json()
        assert body == {"user_id": OTHER_USER_ID, "available_amount": 0, "logs": []}
