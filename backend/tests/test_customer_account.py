"""
Customer account tests.

Verifies:
- Profile updates touch only the supplied fields
- Customers see only their own orders
- Account deletion keeps orders but detaches them
"""

import pytest

from commerce.models import CartItem, Customer, OneTimeCode, Order
from commerce.services import customer_service, order_service, otp_service
from commerce.validation import ValidationError, parse_checkout_payload
from conftest import checkout_payload


def _place(product, customer):
    return order_service.create_order(
        parse_checkout_payload(checkout_payload([(product, 1)])),
        customer_id=customer.id,
    )


class TestProfile:

    def test_partial_update(self, db_session, customer):
        customer_service.update_profile(customer.id, {"phone": "+44 20 0000"})
        db_session.expire_all()
        stored = db_session.get(Customer, customer.id)
        assert stored.phone == "+44 20 0000"
        assert stored.name == "Ana"

    def test_blank_clears_field(self, db_session, customer):
        customer_service.update_profile(customer.id, {"address": "  "})
        db_session.expire_all()
        assert db_session.get(Customer, customer.id).address is None

    def test_too_long(self, db_session, customer):
        with pytest.raises(ValidationError):
            customer_service.update_profile(customer.id, {"name": "x" * 300})

    def test_profile_route(self, customer_client):
        resp = customer_client.put("/api/auth/profile", json={"name": "Ana Maria"})
        assert resp.status_code == 200
        assert resp.json["user"]["name"] == "Ana Maria"

    def test_profile_route_requires_object(self, customer_client):
        resp = customer_client.put("/api/auth/profile", json=["name"])
        assert resp.status_code == 400


class TestOrderHistory:

    def test_lists_only_own_orders(self, customer_client, customer, other_customer, make_product):
        product = make_product()
        mine = _place(product, customer)
        theirs = _place(product, other_customer)

        resp = customer_client.get("/api/orders")
        assert resp.status_code == 200
        assert [o["id"] for o in resp.json["orders"]] == [mine.id]

        assert customer_client.get(f"/api/orders/{mine.id}").status_code == 200
        assert customer_client.get(f"/api/orders/{theirs.id}").status_code == 404


class TestDeleteAccount:

    def test_orders_detached_not_deleted(self, db_session, customer, make_product):
        product = make_product()
        order_id = _place(product, customer).id
        otp_service.issue_code(customer.email)
        db_session.add(CartItem(customer_id=customer.id, product_id=product.id, quantity=1))
        db_session.commit()
        customer_id = customer.id

        assert customer_service.delete_account(customer_id) == 1

        db_session.expire_all()
        assert db_session.get(Customer, customer_id) is None
        assert db_session.get(Order, order_id).user_id is None
        assert db_session.query(CartItem).count() == 0
        assert db_session.query(OneTimeCode).count() == 0

    def test_delete_route_clears_cookie(self, app, customer_client, db_session):
        resp = customer_client.delete("/api/auth/account")
        assert resp.status_code == 200
        assert resp.json["detached_orders"] == 0
        assert resp.headers["Set-Cookie"].startswith(app.config["CUSTOMER_COOKIE_NAME"] + "=;")
        assert db_session.query(Customer).count() == 0
