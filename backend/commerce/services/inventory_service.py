# Overview: Service-layer operations for inventory; the authoritative stock count per product.

# backend/commerce/services/inventory_service.py
"""
Inventory Ledger Invariants (authoritative)

Stock model:
- products.stock is the only availability signal. A checkout decrement IS
  the reservation; there is no separate reserved counter.
- stock >= 0 at all times (also a CHECK constraint on the table).
- unlimited_stock products are never checked and never decremented or
  incremented.

Concurrency:
- Every write is a single conditional UPDATE evaluated by the database,
  never read-then-write in Python. Two decrements racing for the last unit
  cannot both match "stock >= qty".
- The helpers here do NOT commit (except the admin edits). Callers compose
  them inside one transaction so a multi-line checkout commits or rolls back
  as a unit.

Writers:
- order_service: decrement_stock (checkout)
- reversal_service: increment_stock (order deletion)
- set_stock / adjust_stock: direct admin corrections (coalesced upstream)
"""

from __future__ import annotations

from sqlalchemy import case, update

from ..extensions import db
from ..models import Product
from ..validation import NotFound, ValidationError
from .concurrency import run_with_retry


class InsufficientStock(Exception):
    """A conditional decrement matched no row: not enough units left."""

    def __init__(self, product_id: int, requested: int | None = None, available: int | None = None):
        super().__init__(f"Insufficient stock for product {product_id}")
        self.product_id = product_id
        self.requested = requested
        self.available = available

    def to_dict(self) -> dict:
        return {
            "error": "Insufficient stock",
            "product_id": self.product_id,
            "requested": self.requested,
            "available": self.available,
        }


def get_stock(product_id: int) -> int:
    stock = db.session.query(Product.stock).filter(Product.id == product_id).scalar()
    if stock is None:
        raise NotFound("Product not found")
    return int(stock)


def decrement_stock(product_id: int, quantity: int) -> bool:
    """
    Atomically take quantity units from a bounded product.

    UPDATE products SET stock = stock - :qty
     WHERE id = :id AND unlimited_stock = false AND stock >= :qty

    Returns True when exactly one row changed. Does not commit.
    """
    if quantity < 1:
        raise ValueError("quantity must be positive")
    result = db.session.execute(
        update(Product)
        .where(
            Product.id == product_id,
            Product.unlimited_stock.is_(False),
            Product.stock >= quantity,
        )
        .values(stock=Product.stock - quantity)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def increment_stock(product_id: int, quantity: int) -> bool:
    """
    Atomically return quantity units to a product.

    Returns False only when the product no longer exists. Unlimited
    products have nothing to restore and return True. Does not commit.
    """
    if quantity < 1:
        raise ValueError("quantity must be positive")
    result = db.session.execute(
        update(Product)
        .where(Product.id == product_id, Product.unlimited_stock.is_(False))
        .values(stock=Product.stock + quantity)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        return True
    exists = db.session.query(Product.id).filter(Product.id == product_id).first()
    return exists is not None


def set_stock(product_id: int, stock: int) -> int:
    """Admin correction: overwrite stock with an absolute value. Commits."""
    if isinstance(stock, bool) or not isinstance(stock, int) or stock < 0:
        raise ValidationError("stock must be a non-negative integer")

    def _op():
        result = db.session.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(stock=stock)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise NotFound("Product not found")
        db.session.commit()
        return stock

    return run_with_retry(_op)


def adjust_stock(product_id: int, delta: int) -> int:
    """
    Admin correction: add delta (may be negative), clamped at zero.

    The clamp is evaluated in SQL so concurrent adjustments compose.
    Returns the resulting stock. Commits.
    """
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise ValidationError("delta must be an integer")

    def _op():
        result = db.session.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(stock=case((Product.stock + delta < 0, 0), else_=Product.stock + delta))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise NotFound("Product not found")
        db.session.commit()
        return get_stock(product_id)

    return run_with_retry(_op)
