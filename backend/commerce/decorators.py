# Overview: Request decorators that establish the admin or customer principal for a route.

from functools import wraps
from flask import current_app, g, jsonify, request

from .extensions import db
from .models import Customer
from .services.token_service import (
    GENERIC_AUTH_ERROR,
    KIND_ADMIN,
    KIND_CUSTOMER,
    AuthenticationFailure,
    validate_token,
)


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def _customer_token() -> str | None:
    return request.cookies.get(current_app.config["CUSTOMER_COOKIE_NAME"])


def _load_customer(token: str | None) -> Customer:
    principal = validate_token(token, KIND_CUSTOMER)
    try:
        customer_id = int(principal.subject_id)
    except ValueError:
        raise AuthenticationFailure()
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        # Account deleted after the token was issued
        raise AuthenticationFailure()
    g.customer_principal = principal
    return customer


def require_admin(f):
    """
    Require an admin token in the Authorization header.

    Sets g.admin_principal. Every rejection is a 401 with the same message.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            g.admin_principal = validate_token(_bearer_token(), KIND_ADMIN)
        except AuthenticationFailure:
            return jsonify({"error": GENERIC_AUTH_ERROR}), 401
        return f(*args, **kwargs)

    return decorated_function


def require_customer(f):
    """
    Require the customer session cookie.

    Sets g.current_customer to the Customer row. The cookie is HttpOnly, so
    browser scripts can't read it; a missing, expired, tampered or admin
    token all produce the same 401.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            g.current_customer = _load_customer(_customer_token())
        except AuthenticationFailure:
            return jsonify({"error": GENERIC_AUTH_ERROR}), 401
        return f(*args, **kwargs)

    return decorated_function


def optional_customer(f):
    """Like require_customer, but a guest (no valid cookie) gets g.current_customer = None."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _customer_token()
        g.current_customer = None
        if token:
            try:
                g.current_customer = _load_customer(token)
            except AuthenticationFailure:
                current_app.logger.info("Invalid customer cookie on %s; continuing as guest", request.path)
        return f(*args, **kwargs)

    return decorated_function
