"""
Health, CORS and CLI tests.
"""

from commerce.models import Order, Product
from commerce.services import order_service
from commerce.services.token_service import verify_password
from commerce.validation import parse_checkout_payload
from conftest import checkout_payload, current_stock


class TestHealth:

    def test_health(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json["status"] == "healthy"
        assert resp.json["checks"]["database"]["status"] == "healthy"

    def test_degraded_without_admin_hash(self, app, client, db_session, monkeypatch):
        monkeypatch.setitem(app.config, "ADMIN_PASSWORD_HASH", None)
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json["status"] == "degraded"

    def test_version(self, client):
        assert client.get("/version").json["api_version"]


class TestCors:

    def test_allowed_origin(self, client, db_session):
        resp = client.get("/health", headers={"Origin": "http://localhost:3000"})
        assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:3000"
        assert resp.headers["Access-Control-Allow-Credentials"] == "true"

    def test_unknown_origin(self, client, db_session):
        resp = client.get("/health", headers={"Origin": "https://evil.example"})
        assert "Access-Control-Allow-Origin" not in resp.headers


class TestCli:

    def test_create_and_list_products(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["catalog", "create", "--name", "Wool Hat", "--price-cents", "2500", "--stock", "4"])
        assert result.exit_code == 0, result.output
        assert "Created product" in result.output

        result = runner.invoke(args=["catalog", "list"])
        assert "Wool Hat" in result.output

    def test_set_stock(self, app, db_session, make_product):
        product = make_product(stock=1)
        result = app.test_cli_runner().invoke(args=["catalog", "set-stock", str(product.id), "9"])
        assert result.exit_code == 0, result.output
        assert current_stock(db_session, product) == 9

    def test_set_stock_unknown_product(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["catalog", "set-stock", "999", "9"])
        assert result.exit_code != 0

    def test_hash_password(self, app):
        result = app.test_cli_runner().invoke(args=["admin", "hash-password"], input="s3cret-pass\ns3cret-pass\n")
        assert result.exit_code == 0, result.output
        assert verify_password("s3cret-pass", result.output.strip().splitlines()[-1])

    def test_delete_all_orders(self, app, db_session, make_product):
        product = make_product(stock=3)
        order_service.create_order(parse_checkout_payload(checkout_payload([(product, 2)])))
        result = app.test_cli_runner().invoke(args=["orders", "delete-all", "--yes"])
        assert result.exit_code == 0, result.output
        assert "Deleted 1 orders" in result.output
        assert db_session.query(Order).count() == 0
        assert current_stock(db_session, product) == 3

    def test_reset_db_requires_confirmation(self, app, db_session, make_product):
        make_product()
        result = app.test_cli_runner().invoke(args=["system", "reset-db"], input="n\n")
        assert result.exit_code != 0
        assert db_session.query(Product).count() == 1
