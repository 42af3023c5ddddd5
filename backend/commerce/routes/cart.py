# Overview: Flask API routes for the signed-in customer's cart.

# backend/commerce/routes/cart.py
"""
Cart API routes

All routes require the customer session cookie. Stock checks here are
advisory; checkout is the enforcement point.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import cart_service
from ..services.inventory_service import InsufficientStock
from ..validation import MAX_LINE_QUANTITY, NotFound, ValidationError, require_int
from ..decorators import require_customer


cart_bp = Blueprint("cart", __name__, url_prefix="/api/cart")


@cart_bp.get("")
@require_customer
def list_cart_route():
    return jsonify(cart_service.list_cart(g.current_customer.id)), 200


@cart_bp.get("/validate")
@require_customer
def validate_cart_route():
    """Advisory pre-checkout report: {ok, problems: [...]}."""
    return jsonify(cart_service.validate_cart(g.current_customer.id)), 200


@cart_bp.post("")
@require_customer
def add_item_route():
    """
    Add a product to the cart.

    Request body: {"product_id": 1, "quantity": 2}  (quantity defaults to 1)
    """
    try:
        data = request.get_json(silent=True) or {}
        product_id = require_int(data.get("product_id"), "product_id", minimum=1)
        quantity = require_int(data.get("quantity", 1), "quantity", minimum=1, maximum=MAX_LINE_QUANTITY)

        cart_service.add_item(g.current_customer.id, product_id, quantity)
        return jsonify(cart_service.list_cart(g.current_customer.id)), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFound as e:
        return jsonify({"error": str(e)}), 404
    except InsufficientStock as e:
        return jsonify(e.to_dict()), 409
    except Exception:
        current_app.logger.exception("Failed to add cart item")
        return jsonify({"error": "Internal server error"}), 500


@cart_bp.put("/<int:product_id>")
@require_customer
def update_item_route(product_id: int):
    """Set a line's quantity. Quantity 0 removes the line."""
    try:
        data = request.get_json(silent=True) or {}
        quantity = require_int(data.get("quantity"), "quantity", minimum=0, maximum=MAX_LINE_QUANTITY)

        cart_service.update_item(g.current_customer.id, product_id, quantity)
        return jsonify(cart_service.list_cart(g.current_customer.id)), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFound as e:
        return jsonify({"error": str(e)}), 404
    except InsufficientStock as e:
        return jsonify(e.to_dict()), 409
    except Exception:
        current_app.logger.exception("Failed to update cart item")
        return jsonify({"error": "Internal server error"}), 500


@cart_bp.delete("/<int:product_id>")
@require_customer
def remove_item_route(product_id: int):
    if not cart_service.remove_item(g.current_customer.id, product_id):
        return jsonify({"error": "Cart item not found"}), 404
    return jsonify(cart_service.list_cart(g.current_customer.id)), 200


@cart_bp.delete("")
@require_customer
def clear_cart_route():
    removed = cart_service.clear_cart(g.current_customer.id)
    return jsonify({"removed": removed}), 200
