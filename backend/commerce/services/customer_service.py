# Overview: Customer account profile and deletion.

from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..models import CartItem, Customer, OneTimeCode, Order
from ..validation import NotFound, optional_str


def get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise NotFound("Customer not found")
    return customer


def update_profile(customer_id: int, data: dict) -> Customer:
    """Update name / phone / address. Keys that are absent are left alone."""
    customer = get_customer(customer_id)
    if "name" in data:
        customer.name = optional_str(data.get("name"), "name", max_length=255)
    if "phone" in data:
        customer.phone = optional_str(data.get("phone"), "phone", max_length=64)
    if "address" in data:
        customer.address = optional_str(data.get("address"), "address")
    db.session.commit()
    return customer


def delete_account(customer_id: int) -> int:
    """
    Delete a customer.

    Orders are kept for the store's records but detached (user_id = NULL).
    Cart lines and login codes go with the account. Returns the number of
    detached orders.
    """
    customer = get_customer(customer_id)
    detached = db.session.execute(
        update(Order)
        .where(Order.user_id == customer_id)
        .values(user_id=None)
        .execution_options(synchronize_session=False)
    ).rowcount
    db.session.query(CartItem).filter_by(customer_id=customer_id).delete(synchronize_session=False)
    db.session.query(OneTimeCode).filter_by(email=customer.email).delete(synchronize_session=False)
    db.session.delete(customer)
    db.session.commit()
    return detached
