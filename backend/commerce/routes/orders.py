# Overview: Flask API routes for checkout and the customer's own orders.

# backend/commerce/routes/orders.py
"""
Checkout and customer order routes

POST /api/checkout works for guests and signed-in customers. A signed-in
customer's order is linked to their account, falls back to the account
email, and may clear the server-side cart in the same transaction.

NOT IDEMPOTENT: a replayed checkout creates a second order.
"""

from dataclasses import replace

from flask import Blueprint, request, jsonify, current_app, g

from ..services import order_service
from ..services import order_state_service
from ..services import reversal_service
from ..services.concurrency import ServiceUnavailable
from ..services.inventory_service import InsufficientStock
from ..services.order_state_service import InvalidTransition
from ..validation import NotFound, ValidationError, parse_checkout_payload, parse_payment_proof
from ..decorators import optional_customer, require_customer


orders_bp = Blueprint("orders", __name__, url_prefix="/api")


@orders_bp.post("/checkout")
@optional_customer
def checkout_route():
    """
    Place an order.

    Request body:
    {
        "items": [{"product_id": 1, "quantity": 2}],
        "payment_method": "COD" | "BankTransfer",
        "payment_proof": {...},          // optional, BankTransfer only
        "user_name": "...", "phone": "...", "address": "...",
        "email": "...",                  // optional
        "clear_cart": true               // optional, signed-in only
    }

    Returns 201 {order}; 409 when any line lacks stock (nothing changed).
    """
    try:
        checkout = parse_checkout_payload(request.get_json(silent=True))
        customer = g.current_customer
        customer_id = customer.id if customer is not None else None
        if customer is not None and checkout.email is None:
            checkout = replace(checkout, email=customer.email)

        order = order_service.create_order(checkout, customer_id=customer_id)
        return jsonify({"order": order.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except InsufficientStock as e:
        return jsonify(e.to_dict()), 409
    except ServiceUnavailable as e:
        return jsonify({"error": str(e)}), 503
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/orders")
@require_customer
def list_orders_route():
    orders = order_service.list_customer_orders(g.current_customer.id)
    return jsonify({"orders": [o.to_dict() for o in orders]}), 200


@orders_bp.get("/orders/<int:order_id>")
@require_customer
def get_order_route(order_id: int):
    try:
        order = order_service.get_customer_order(g.current_customer.id, order_id)
        return jsonify({"order": order.to_dict()}), 200
    except NotFound as e:
        return jsonify({"error": str(e)}), 404


@orders_bp.post("/orders/<int:order_id>/cancel")
@require_customer
def cancel_order_route(order_id: int):
    """
    Cancel (delete) a pending order within the cancel window.

    Stock for every line is returned.
    """
    try:
        report = reversal_service.cancel_customer_order(g.current_customer.id, order_id)
        return jsonify({"message": "Order cancelled", "report": report.to_dict()}), 200

    except NotFound as e:
        return jsonify({"error": str(e)}), 404
    except InvalidTransition as e:
        return jsonify(e.to_dict()), 409
    except ServiceUnavailable as e:
        return jsonify({"error": str(e)}), 503
    except Exception:
        current_app.logger.exception("Failed to cancel order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/orders/<int:order_id>/payment-proof")
@require_customer
def submit_payment_proof_route(order_id: int):
    """
    Attach bank-transfer proof to the customer's own order.

    Request body: {"transaction_id", "method", "screenshot_url", "fee_paid_cents"?}
    """
    try:
        proof = parse_payment_proof(request.get_json(silent=True))
        order = order_state_service.submit_payment_proof(g.current_customer.id, order_id, proof)
        return jsonify({"order": order.to_dict()}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFound as e:
        return jsonify({"error": str(e)}), 404
    except InvalidTransition as e:
        return jsonify(e.to_dict()), 409
    except ServiceUnavailable as e:
        return jsonify({"error": str(e)}), 503
    except Exception:
        current_app.logger.exception("Failed to submit payment proof")
        return jsonify({"error": "Internal server error"}), 500
