# Overview: Customer cart and the advisory stock pre-check used before checkout.

"""
Cart Service / CartValidator

The stock check here is ADVISORY. It compares what the customer asks for
against the product's current stock minus what is already in their cart, so
obviously doomed checkouts are caught early. It is never the enforcement
point: stock read here can be stale by the time checkout runs, and only the
conditional decrement in order_service decides.
"""

from __future__ import annotations

from ..extensions import db
from ..models import CartItem, Product
from ..validation import NotFound, ValidationError, MAX_LINE_QUANTITY
from .inventory_service import InsufficientStock


def available_for_cart(product: Product, already_in_cart: int = 0) -> int | None:
    """Units this customer could still add; None means unbounded."""
    if product.unlimited_stock:
        return None
    return max(product.stock - already_in_cart, 0)


def check_quantity(product: Product, requested: int, already_in_cart: int = 0) -> None:
    """Raise InsufficientStock if requested more units would exceed stock."""
    available = available_for_cart(product, already_in_cart)
    if available is not None and requested > available:
        raise InsufficientStock(product.id, requested=requested, available=available)


def _get_visible_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFound("Product not found")
    if product.is_hidden:
        raise ValidationError("Product is not available")
    return product


def _get_line(customer_id: int, product_id: int) -> CartItem | None:
    return db.session.query(CartItem).filter_by(
        customer_id=customer_id,
        product_id=product_id,
    ).first()


def list_cart(customer_id: int) -> dict:
    """Cart contents with hidden products filtered out."""
    lines = db.session.query(CartItem).filter_by(
        customer_id=customer_id
    ).order_by(CartItem.created_at.desc(), CartItem.id.desc()).all()

    items = [line for line in lines if line.product is not None and not line.product.is_hidden]
    return {
        "items": [line.to_dict() for line in items],
        "subtotal_cents": sum(line.product.price_cents * line.quantity for line in items),
        "item_count": sum(line.quantity for line in items),
    }


def add_item(customer_id: int, product_id: int, quantity: int = 1) -> CartItem:
    """Add units of a product, merging with an existing line."""
    if quantity < 1 or quantity > MAX_LINE_QUANTITY:
        raise ValidationError("Quantity must be a positive number")

    product = _get_visible_product(product_id)
    line = _get_line(customer_id, product_id)
    in_cart = line.quantity if line else 0
    check_quantity(product, quantity, already_in_cart=in_cart)

    if line is None:
        line = CartItem(customer_id=customer_id, product_id=product_id, quantity=quantity)
        db.session.add(line)
    else:
        line.quantity = in_cart + quantity

    db.session.commit()
    return line


def update_item(customer_id: int, product_id: int, quantity: int) -> CartItem | None:
    """Set a line's quantity; 0 removes the line (returns None)."""
    if quantity < 0 or quantity > MAX_LINE_QUANTITY:
        raise ValidationError("Quantity must be a non-negative number")

    line = _get_line(customer_id, product_id)
    if line is None:
        raise NotFound("Cart item not found")

    if quantity == 0:
        db.session.delete(line)
        db.session.commit()
        return None

    product = _get_visible_product(product_id)
    check_quantity(product, quantity)
    line.quantity = quantity
    db.session.commit()
    return line


def remove_item(customer_id: int, product_id: int) -> bool:
    deleted = db.session.query(CartItem).filter_by(
        customer_id=customer_id,
        product_id=product_id,
    ).delete(synchronize_session=False)
    db.session.commit()
    return deleted > 0


def clear_cart(customer_id: int, *, commit: bool = True) -> int:
    """Delete every line. With commit=False the caller owns the transaction."""
    deleted = db.session.query(CartItem).filter_by(
        customer_id=customer_id
    ).delete(synchronize_session=False)
    if commit:
        db.session.commit()
    return deleted


def validate_cart(customer_id: int) -> dict:
    """
    Advisory pre-checkout report.

    Lists every line whose quantity exceeds current stock or whose product
    has been hidden. ok=False means checkout would almost certainly fail.
    """
    problems = []
    lines = db.session.query(CartItem).filter_by(customer_id=customer_id).all()
    for line in lines:
        product = line.product
        if product is None or product.is_hidden:
            problems.append({
                "product_id": line.product_id,
                "requested": line.quantity,
                "available": 0,
                "reason": "unavailable",
            })
            continue
        available = available_for_cart(product)
        if available is not None and line.quantity > available:
            problems.append({
                "product_id": line.product_id,
                "requested": line.quantity,
                "available": available,
                "reason": "insufficient_stock",
            })
    return {"ok": not problems, "problems": problems}
