# Overview: Flask API routes for admin operations; parses input and returns JSON responses.

# backend/commerce/routes/admin.py
"""
Admin routes for the order board and stock corrections.

Provides endpoints for:
- Admin login (username/password -> bearer token)
- Orders (list, inspect, change status/payment_status, delete with stock reversal)
- Stock (absolute set, clamped delta)

Everything except /login requires Authorization: Bearer <admin token>.
The admin UI coalesces rapid edits client-side before they reach here.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import inventory_service
from ..services import order_service
from ..services import order_state_service
from ..services import reversal_service
from ..services.concurrency import ServiceUnavailable
from ..services.order_state_service import InvalidTransition
from ..services.token_service import AuthenticationFailure, authenticate_admin
from ..time_utils import to_utc_z
from ..validation import NotFound, ValidationError, require_int
from ..decorators import require_admin

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


# =============================================================================
# LOGIN
# =============================================================================

@admin_bp.post("/login")
def login_route():
    """
    Exchange the admin credentials for a bearer token (8h).

    Also returns mutation_debounce_seconds, the window admin clients use to
    coalesce rapid edits.

    Returns the same 401 for an unknown username, a wrong password, or an
    unconfigured ADMIN_PASSWORD_HASH.
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username")
        password = data.get("password")
        if not isinstance(username, str) or not isinstance(password, str):
            return jsonify({"error": "username and password required"}), 400

        token, principal = authenticate_admin(username, password)
        current_app.logger.info("Admin login for %s", principal.subject_id)
        return jsonify({
            "token": token,
            "expires_at": to_utc_z(principal.expires_at),
            "mutation_debounce_seconds": current_app.config["MUTATION_DEBOUNCE_SECONDS"],
        }), 200

    except AuthenticationFailure as e:
        current_app.logger.warning("Failed admin login from %s", request.remote_addr)
        return jsonify({"error": str(e)}), 401
    except Exception:
        current_app.logger.exception("Failed admin login")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# ORDERS
# =============================================================================

@admin_bp.get("/orders")
@require_admin
def list_orders():
    """
    List orders, newest first.

    Query params:
    - status: filter by order status
    - payment_status: filter by payment status
    """
    try:
        status = request.args.get("status") or None
        payment_status = request.args.get("payment_status") or None
        if status:
            order_state_service.validate_status(status)
        if payment_status:
            order_state_service.validate_payment_status(payment_status)

        orders = order_service.list_orders(status=status, payment_status=payment_status)
        return jsonify({"orders": [o.to_dict() for o in orders], "count": len(orders)}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400


@admin_bp.get("/orders/<int:order_id>")
@require_admin
def get_order(order_id: int):
    try:
        return jsonify({"order": order_service.get_order(order_id).to_dict()}), 200
    except NotFound as e:
        return jsonify({"error": str(e)}), 404


@admin_bp.put("/orders/<int:order_id>")
@require_admin
def update_order(order_id: int):
    """
    Change status and/or payment_status.

    Request body: {"status"?: "...", "payment_status"?: "..."}

    409 when either field's move is not allowed or the resulting pair is
    refused. A rejected request changes nothing.
    """
    try:
        data = request.get_json(silent=True) or {}
        status = data.get("status")
        payment_status = data.get("payment_status") or data.get("paymentStatus")
        for name, value in (("status", status), ("payment_status", payment_status)):
            if value is not None and not isinstance(value, str):
                return jsonify({"error": f"{name} must be a string"}), 400

        order = order_state_service.update_order_status(
            order_id,
            status=status,
            payment_status=payment_status,
        )
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
        current_app.logger.exception("Failed to update order %s", order_id)
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.delete("/orders/<int:order_id>")
@require_admin
def delete_order(order_id: int):
    """Delete an order and return its units to stock. Body is a ReversalReport."""
    try:
        report = reversal_service.delete_order(order_id)
        return jsonify(report.to_dict()), 200

    except NotFound as e:
        return jsonify({"error": str(e)}), 404
    except ServiceUnavailable as e:
        return jsonify({"error": str(e)}), 503
    except Exception:
        current_app.logger.exception("Failed to delete order %s", order_id)
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.delete("/orders/all")
@require_admin
def delete_all_orders():
    """Delete every order and return all of their units to stock."""
    try:
        report = reversal_service.delete_all_orders()
        current_app.logger.warning(
            "All orders deleted by %s (%d orders)", g.admin_principal.subject_id, report.deleted_count
        )
        return jsonify(report.to_dict()), 200

    except ServiceUnavailable as e:
        return jsonify({"error": str(e)}), 503
    except Exception:
        current_app.logger.exception("Failed to delete all orders")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# STOCK
# =============================================================================

@admin_bp.put("/products/<int:product_id>/stock")
@require_admin
def set_stock(product_id: int):
    """Request body: {"stock": 12}. Returns the stored value."""
    try:
        data = request.get_json(silent=True) or {}
        stock = require_int(data.get("stock"), "stock", minimum=0)
        stored = inventory_service.set_stock(product_id, stock)
        return jsonify({"product_id": product_id, "stock": stored}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFound as e:
        return jsonify({"error": str(e)}), 404
    except ServiceUnavailable as e:
        return jsonify({"error": str(e)}), 503
    except Exception:
        current_app.logger.exception("Failed to set stock for product %s", product_id)
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.post("/products/<int:product_id>/stock/adjust")
@require_admin
def adjust_stock(product_id: int):
    """Request body: {"delta": -3}. Clamped at zero; returns the resulting stock."""
    try:
        data = request.get_json(silent=True) or {}
        delta = require_int(data.get("delta"), "delta")
        stored = inventory_service.adjust_stock(product_id, delta)
        return jsonify({"product_id": product_id, "stock": stored}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFound as e:
        return jsonify({"error": str(e)}), 404
    except ServiceUnavailable as e:
        return jsonify({"error": str(e)}), 503
    except Exception:
        current_app.logger.exception("Failed to adjust stock for product %s", product_id)
        return jsonify({"error": "Internal server error"}), 500
