# Overview: Checkout; turns validated cart lines into an order and its stock decrements atomically.

"""
Order Transaction

create_order() is the only place stock is taken for a sale. Two hazards:

1. Over-sell race: two checkouts for the last unit must not both succeed.
   Each line is a conditional decrement (stock >= qty evaluated by the
   database), so at most one of them matches the row.
2. Partial order: an order must never exist with only some lines
   decremented. All decrements, the order row, its item snapshot and the
   optional cart clear share one transaction; any failing line raises and
   run_with_retry rolls the whole attempt back.

NOT IDEMPOTENT: replaying a checkout that already succeeded creates a
second order (no key is derived from the cart contents). Clients must not
auto-retry a 201-less timeout blindly.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Order, OrderItem, Product
from ..time_utils import utcnow
from ..validation import CheckoutRequest, NotFound, ValidationError
from .cart_service import clear_cart
from .concurrency import begin_write_transaction, run_with_retry
from .inventory_service import InsufficientStock, decrement_stock, get_stock
from .notification_service import notify_order_confirmation


INITIAL_PAYMENT_STATUS = {
    "COD": "pending",
    "BankTransfer": "pending",
}


def create_order(checkout: CheckoutRequest, customer_id: int | None = None) -> Order:
    """
    Place an order.

    Raises:
        ValidationError: a product is unknown or hidden
        InsufficientStock: a bounded product lacks units (nothing is changed)
        ServiceUnavailable: storage stayed locked/unreachable after retries
    """
    def _op():
        begin_write_transaction()

        product_ids = [line.product_id for line in checkout.lines]
        products = {
            p.id: p
            for p in db.session.query(Product).filter(Product.id.in_(product_ids)).all()
        }
        for line in checkout.lines:
            product = products.get(line.product_id)
            if product is None or product.is_hidden:
                raise ValidationError(f"Product not available: {line.product_id}")

        now = utcnow()
        order = Order(
            user_id=customer_id,
            user_name=checkout.user_name,
            email=checkout.email,
            phone=checkout.phone,
            address=checkout.address,
            payment_method=checkout.payment_method,
            payment_status=INITIAL_PAYMENT_STATUS[checkout.payment_method],
            status="pending",
            total_price_cents=0,
            created_at=now,
            updated_at=now,
        )

        total = 0
        for line in checkout.lines:
            product = products[line.product_id]
            if not product.unlimited_stock and not decrement_stock(product.id, line.quantity):
                raise InsufficientStock(
                    product.id,
                    requested=line.quantity,
                    available=get_stock(product.id),
                )
            order.items.append(OrderItem(
                product_id=product.id,
                name=product.name,
                price_cents=product.price_cents,
                quantity=line.quantity,
                image_url=product.image_url,
            ))
            total += product.price_cents * line.quantity
        order.total_price_cents = total

        proof = checkout.payment_proof
        if proof is not None:
            order.proof_transaction_id = proof.transaction_id
            order.proof_method = proof.method
            order.proof_screenshot_url = proof.screenshot_url
            order.proof_fee_paid_cents = proof.fee_paid_cents
            order.proof_uploaded_at = now

        db.session.add(order)

        if customer_id is not None and checkout.clear_cart:
            clear_cart(customer_id, commit=False)

        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info(
        "Order %s created: %d line(s), total_cents=%d, customer=%s",
        order.id, len(order.items), order.total_price_cents, customer_id,
    )
    notify_order_confirmation(order.to_dict())
    return order


def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFound("Order not found")
    return order


def get_customer_order(customer_id: int, order_id: int) -> Order:
    """Owned order lookup. Someone else's order is indistinguishable from a missing one."""
    order = db.session.query(Order).filter_by(id=order_id, user_id=customer_id).first()
    if order is None:
        raise NotFound("Order not found")
    return order


def list_customer_orders(customer_id: int) -> list[Order]:
    return db.session.query(Order).filter_by(
        user_id=customer_id
    ).order_by(Order.created_at.desc(), Order.id.desc()).all()


def list_orders(status: str | None = None, payment_status: str | None = None) -> list[Order]:
    query = db.session.query(Order)
    if status:
        query = query.filter(Order.status == status)
    if payment_status:
        query = query.filter(Order.payment_status == payment_status)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).all()
