"""
Pytest fixtures for the commerce backend tests.

Provides an in-memory test database, a test client, catalog/customer
fixtures, and helpers for the two session kinds (admin bearer token,
customer cookie).
"""

import pytest
from commerce import create_app
from commerce.extensions import db
from commerce.models import Customer, Product
from commerce.services import notification_service
from commerce.services.token_service import KIND_ADMIN, KIND_CUSTOMER, hash_password, issue_token


ADMIN_PASSWORD = "Sturdy-Admin-Pass-42"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'NOTIFICATIONS_ASYNC': False,
        'RESEND_API_KEY': None,
        'ADMIN_USERNAME': 'admin',
        'ADMIN_PASSWORD_HASH': hash_password(ADMIN_PASSWORD),
        'ENFORCE_ORDER_STATE_PAIRS': True,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def outbox(monkeypatch):
    """Capture outgoing email instead of sending it."""
    sent = []

    def fake_send(to, subject, text, html=None):
        sent.append({"to": to, "subject": subject, "text": text})

    monkeypatch.setattr(notification_service, "send_email", fake_send)
    return sent


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory for catalog products."""
    def _make(name="Linen Shirt", price_cents=4500, stock=10, unlimited_stock=False, is_hidden=False):
        product = Product(
            name=name,
            price_cents=price_cents,
            stock=stock,
            unlimited_stock=unlimited_stock,
            is_hidden=is_hidden,
        )
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def customer(db_session):
    """A registered storefront customer."""
    c = Customer(email="ana@example.com", name="Ana", phone="+1 555 0100", address="1 Main St")
    db_session.add(c)
    db_session.commit()
    return c


@pytest.fixture(scope='function')
def other_customer(db_session):
    c = Customer(email="ben@example.com", name="Ben")
    db_session.add(c)
    db_session.commit()
    return c


@pytest.fixture(scope='function')
def customer_client(app, client, customer):
    """Test client carrying the customer's session cookie."""
    login_as(app, client, customer)
    return client


@pytest.fixture(scope='function')
def admin_headers(db_session):
    token, _ = issue_token("admin", KIND_ADMIN)
    return auth_headers(token)


def login_as(app, client, customer) -> None:
    """Put a customer session cookie on the test client."""
    token, _ = issue_token(customer.id, KIND_CUSTOMER)
    client.set_cookie(app.config['CUSTOMER_COOKIE_NAME'], token)


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def checkout_payload(items, **overrides) -> dict:
    """Checkout body for [(product, quantity), ...]."""
    payload = {
        "items": [{"product_id": p.id, "quantity": q} for p, q in items],
        "payment_method": "COD",
        "user_name": "Ana",
        "phone": "+1 555 0100",
        "address": "1 Main St",
        "email": "ana@example.com",
    }
    payload.update(overrides)
    return payload


def current_stock(db_session, product) -> int:
    """Re-read stock from the database, bypassing the identity map."""
    db_session.expire_all()
    return db_session.get(Product, product.id).stock
