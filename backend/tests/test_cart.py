"""
Cart tests.

Verifies:
- Adding merges lines and respects stock minus what is already in the cart
- Quantity 0 removes a line
- Hidden products drop out of the listing and show up as validation problems
- The advisory report flags lines that checkout would refuse
"""

import pytest

from commerce.models import CartItem
from commerce.services import cart_service
from commerce.services.inventory_service import InsufficientStock
from commerce.validation import NotFound, ValidationError


class TestCartService:

    def test_add_merges_lines(self, db_session, customer, make_product):
        product = make_product(stock=5)
        cart_service.add_item(customer.id, product.id, 2)
        cart_service.add_item(customer.id, product.id, 1)
        assert db_session.query(CartItem).count() == 1
        assert cart_service.list_cart(customer.id)["item_count"] == 3

    def test_add_counts_units_already_in_cart(self, db_session, customer, make_product):
        product = make_product(stock=3)
        cart_service.add_item(customer.id, product.id, 2)
        with pytest.raises(InsufficientStock) as exc:
            cart_service.add_item(customer.id, product.id, 2)
        assert exc.value.available == 1

    def test_unlimited_never_refused(self, db_session, customer, make_product):
        product = make_product(stock=0, unlimited_stock=True)
        cart_service.add_item(customer.id, product.id, 500)

    def test_hidden_product_refused(self, db_session, customer, make_product):
        product = make_product(is_hidden=True)
        with pytest.raises(ValidationError):
            cart_service.add_item(customer.id, product.id, 1)

    def test_unknown_product(self, db_session, customer):
        with pytest.raises(NotFound):
            cart_service.add_item(customer.id, 4242, 1)

    def test_update_to_zero_removes(self, db_session, customer, make_product):
        product = make_product()
        cart_service.add_item(customer.id, product.id, 2)
        assert cart_service.update_item(customer.id, product.id, 0) is None
        assert db_session.query(CartItem).count() == 0

    def test_update_checks_stock(self, db_session, customer, make_product):
        product = make_product(stock=4)
        cart_service.add_item(customer.id, product.id, 1)
        cart_service.update_item(customer.id, product.id, 4)
        with pytest.raises(InsufficientStock):
            cart_service.update_item(customer.id, product.id, 5)

    def test_listing_and_subtotal(self, db_session, customer, make_product):
        shirt = make_product(name="Shirt", price_cents=4500)
        scarf = make_product(name="Scarf", price_cents=1250)
        cart_service.add_item(customer.id, shirt.id, 2)
        cart_service.add_item(customer.id, scarf.id, 1)

        scarf.is_hidden = True
        db_session.commit()

        cart = cart_service.list_cart(customer.id)
        assert [line["product_id"] for line in cart["items"]] == [shirt.id]
        assert cart["subtotal_cents"] == 9000
        assert cart["item_count"] == 2

    def test_validate_reports_problems(self, db_session, customer, make_product):
        shirt = make_product(name="Shirt", stock=5)
        scarf = make_product(name="Scarf", stock=5)
        hat = make_product(name="Hat", stock=5)
        for product in (shirt, scarf, hat):
            cart_service.add_item(customer.id, product.id, 3)

        shirt.stock = 1
        scarf.is_hidden = True
        db_session.commit()

        report = cart_service.validate_cart(customer.id)
        assert report["ok"] is False
        problems = {p["product_id"]: p for p in report["problems"]}
        assert problems[shirt.id]["reason"] == "insufficient_stock"
        assert problems[shirt.id]["available"] == 1
        assert problems[scarf.id]["reason"] == "unavailable"
        assert hat.id not in problems

    def test_validate_clean_cart(self, db_session, customer, make_product):
        cart_service.add_item(customer.id, make_product().id, 1)
        assert cart_service.validate_cart(customer.id) == {"ok": True, "problems": []}

    def test_cart_is_not_a_reservation(self, db_session, customer, make_product):
        product = make_product(stock=2)
        cart_service.add_item(customer.id, product.id, 2)
        db_session.expire_all()
        assert db_session.get(type(product), product.id).stock == 2


class TestCartRoutes:

    def test_crud(self, customer_client, make_product):
        product = make_product(stock=5)

        resp = customer_client.post("/api/cart", json={"product_id": product.id, "quantity": 2})
        assert resp.status_code == 201
        assert resp.json["item_count"] == 2

        resp = customer_client.put(f"/api/cart/{product.id}", json={"quantity": 4})
        assert resp.status_code == 200
        assert resp.json["items"][0]["quantity"] == 4

        resp = customer_client.get("/api/cart")
        assert resp.json["subtotal_cents"] == 4 * product.price_cents

        resp = customer_client.delete(f"/api/cart/{product.id}")
        assert resp.status_code == 200
        assert resp.json["items"] == []

        assert customer_client.delete(f"/api/cart/{product.id}").status_code == 404

    def test_add_over_stock(self, customer_client, make_product):
        product = make_product(stock=1)
        resp = customer_client.post("/api/cart", json={"product_id": product.id, "quantity": 2})
        assert resp.status_code == 409
        assert resp.json["product_id"] == product.id

    @pytest.mark.parametrize("body", [
        {},
        {"product_id": "x"},
        {"product_id": 1, "quantity": 0},
        {"product_id": 1, "quantity": 2.5},
    ])
    def test_add_bad_input(self, customer_client, db_session, body):
        assert customer_client.post("/api/cart", json=body).status_code == 400

    def test_update_missing_line(self, customer_client, make_product):
        product = make_product()
        resp = customer_client.put(f"/api/cart/{product.id}", json={"quantity": 1})
        assert resp.status_code == 404

    def test_clear(self, customer_client, make_product):
        customer_client.post("/api/cart", json={"product_id": make_product().id, "quantity": 1})
        customer_client.post("/api/cart", json={"product_id": make_product(name="Hat").id, "quantity": 1})
        resp = customer_client.delete("/api/cart")
        assert resp.json == {"removed": 2}

    def test_validate_route(self, customer_client, make_product):
        customer_client.post("/api/cart", json={"product_id": make_product().id, "quantity": 1})
        resp = customer_client.get("/api/cart/validate")
        assert resp.status_code == 200
        assert resp.json["ok"] is True
