"""
Order deletion / stock reversal tests.

Verifies:
- Deleting an order gives back exactly what its checkout took
- Bulk deletion restores every order's lines
- A missing product is a reported discrepancy, not a failure
- Customer cancellation rules (owner, pending, time window)
"""

import logging
from datetime import timedelta

import pytest

from commerce.models import Order
from commerce.services import order_service, reversal_service
from commerce.services.order_state_service import InvalidTransition
from commerce.time_utils import utcnow
from commerce.validation import NotFound, parse_checkout_payload
from conftest import checkout_payload, current_stock


def _place(items, customer=None):
    return order_service.create_order(
        parse_checkout_payload(checkout_payload(items)),
        customer_id=customer.id if customer else None,
    )


# =============================================================================
# ADMIN DELETION
# =============================================================================


class TestDeleteOrder:

    def test_checkout_then_delete_is_symmetric(self, db_session, make_product):
        shirt = make_product(name="Shirt", stock=7)
        scarf = make_product(name="Scarf", stock=3)
        order = _place([(shirt, 2), (scarf, 3)])
        assert current_stock(db_session, shirt) == 5
        assert current_stock(db_session, scarf) == 0

        report = reversal_service.delete_order(order.id)

        assert report.deleted_count == 1
        assert not report.partial
        assert sorted((r["product_id"], r["quantity"]) for r in report.restored) == sorted(
            [(shirt.id, 2), (scarf.id, 3)]
        )
        assert current_stock(db_session, shirt) == 7
        assert current_stock(db_session, scarf) == 3
        assert db_session.query(Order).count() == 0

    def test_unlimited_product_untouched(self, db_session, make_product):
        product = make_product(stock=0, unlimited_stock=True)
        order = _place([(product, 4)])
        report = reversal_service.delete_order(order.id)
        assert not report.partial
        assert current_stock(db_session, product) == 0

    def test_missing_product_is_discrepancy(self, db_session, make_product, caplog):
        kept = make_product(name="Kept", stock=5)
        gone = make_product(name="Gone", stock=5)
        order_id = _place([(kept, 1), (gone, 2)]).id
        gone_id = gone.id
        db_session.delete(gone)
        db_session.commit()

        with caplog.at_level(logging.WARNING):
            report = reversal_service.delete_order(order_id)

        assert report.partial
        assert report.deleted_count == 1
        assert report.discrepancies == [{
            "order_id": order_id,
            "product_id": gone_id,
            "quantity": 2,
            "reason": "product_missing",
        }]
        assert current_stock(db_session, kept) == 5
        assert db_session.query(Order).count() == 0
        assert any("partial failure" in r.getMessage() for r in caplog.records if r.levelno == logging.WARNING)

    def test_unknown_order(self, db_session):
        with pytest.raises(NotFound):
            reversal_service.delete_order(12345)

    def test_delete_all_orders(self, db_session, make_product):
        product = make_product(stock=10)
        for qty in (1, 2, 3):
            _place([(product, qty)])
        assert current_stock(db_session, product) == 4

        report = reversal_service.delete_all_orders()
        assert report.deleted_count == 3
        assert current_stock(db_session, product) == 10
        assert db_session.query(Order).count() == 0

    def test_delete_all_when_empty(self, db_session):
        report = reversal_service.delete_all_orders()
        assert report.to_dict()["deleted_count"] == 0


class TestAdminDeleteRoutes:

    def test_delete_route(self, client, admin_headers, db_session, make_product):
        product = make_product(stock=2)
        order = _place([(product, 2)])
        resp = client.delete(f"/api/admin/orders/{order.id}", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["deleted_count"] == 1
        assert resp.json["partial_failure"] is False
        assert current_stock(db_session, product) == 2

    def test_delete_all_route(self, client, admin_headers, db_session, make_product):
        product = make_product(stock=5)
        _place([(product, 1)])
        _place([(product, 1)])
        resp = client.delete("/api/admin/orders/all", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["deleted_count"] == 2
        assert current_stock(db_session, product) == 5

    def test_delete_missing_route(self, client, admin_headers):
        assert client.delete("/api/admin/orders/777", headers=admin_headers).status_code == 404


# =============================================================================
# CUSTOMER CANCEL
# =============================================================================


class TestCustomerCancel:

    def test_cancel_restores_stock(self, customer_client, customer, db_session, make_product):
        product = make_product(stock=3)
        order = _place([(product, 2)], customer)
        resp = customer_client.post(f"/api/orders/{order.id}/cancel")
        assert resp.status_code == 200
        assert current_stock(db_session, product) == 3
        assert db_session.query(Order).count() == 0

    def test_cannot_cancel_shipped(self, customer_client, customer, db_session, make_product):
        order = _place([(make_product(), 1)], customer)
        order.status = "shipped"
        db_session.commit()
        resp = customer_client.post(f"/api/orders/{order.id}/cancel")
        assert resp.status_code == 409

    def test_window_expired(self, customer_client, customer, db_session, make_product):
        order = _place([(make_product(), 1)], customer)
        order.created_at = utcnow() - timedelta(days=2, minutes=1)
        db_session.commit()
        resp = customer_client.post(f"/api/orders/{order.id}/cancel")
        assert resp.status_code == 409

    def test_window_boundary_in_service(self, app, db_session, customer, make_product):
        order = _place([(make_product(), 1)], customer)
        placed_at = order.created_at
        window = app.config["ORDER_CANCEL_WINDOW"]
        with pytest.raises(InvalidTransition):
            reversal_service.cancel_customer_order(customer.id, order.id, now=placed_at + window)
        report = reversal_service.cancel_customer_order(
            customer.id, order.id, now=placed_at + window - timedelta(seconds=1)
        )
        assert report.deleted_count == 1

    def test_cannot_cancel_other_customers_order(self, customer_client, other_customer, db_session, make_product):
        order = _place([(make_product(), 1)], other_customer)
        resp = customer_client.post(f"/api/orders/{order.id}/cancel")
        assert resp.status_code == 404
        assert db_session.query(Order).count() == 1
