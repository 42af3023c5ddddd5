# Overview: Flask API routes for customer authentication and account management.

# backend/commerce/routes/auth.py
"""
Customer authentication API routes

Passwordless login:
- POST /generate-otp emails a 6-digit code (throttled per email)
- POST /verify-otp consumes the code and sets the session cookie

SECURITY:
- The session token lives only in an HttpOnly, SameSite=Strict cookie
- Every verification failure returns the same 401 message
- generate-otp answers the same way whether or not an account exists
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import otp_service
from ..services import customer_service
from ..services.login_throttle_service import TooManyRequests
from ..services.token_service import AuthenticationFailure, KIND_CUSTOMER, issue_token
from ..services.concurrency import ServiceUnavailable
from ..validation import ValidationError
from ..decorators import require_customer


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _set_session_cookie(response, token: str):
    config = current_app.config
    response.set_cookie(
        config["CUSTOMER_COOKIE_NAME"],
        token,
        max_age=int(config["CUSTOMER_TOKEN_TTL"].total_seconds()),
        httponly=True,
        secure=config["SESSION_COOKIE_SECURE"],
        samesite="Strict",
        path="/",
    )
    return response


@auth_bp.post("/generate-otp")
def generate_otp_route():
    """
    Send a login code to an email address.

    Request body: {"email": "..."}

    Returns 200 on success, 400 for a malformed email, 429 when the hourly
    allowance for that email is spent.
    """
    try:
        data = request.get_json(silent=True) or {}
        otp_service.request_login_code(data.get("email"))
        return jsonify({"ok": True, "message": "If the address is valid, a code has been sent"}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except TooManyRequests as e:
        body = {"error": str(e), "retry_after_seconds": e.retry_after_seconds}
        headers = {"Retry-After": str(e.retry_after_seconds)} if e.retry_after_seconds else {}
        return jsonify(body), 429, headers
    except ServiceUnavailable as e:
        return jsonify({"error": str(e)}), 503
    except Exception:
        current_app.logger.exception("Failed to generate OTP")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/verify-otp")
def verify_otp_route():
    """
    Exchange a valid code for a customer session.

    Request body: {"email": "...", "code": "123456"} ("otp" is accepted too)

    Creates the Customer on first login. The token is returned only as a
    cookie, never in the body.
    """
    try:
        data = request.get_json(silent=True) or {}
        code = data.get("code") or data.get("otp")
        customer = otp_service.verify_login_code(data.get("email"), code)
        token, _principal = issue_token(customer.id, KIND_CUSTOMER)

        response = jsonify({"user": customer.to_dict(), "message": "Login successful"})
        return _set_session_cookie(response, token), 200

    except AuthenticationFailure as e:
        return jsonify({"error": str(e)}), 401
    except ServiceUnavailable as e:
        return jsonify({"error": str(e)}), 503
    except Exception:
        current_app.logger.exception("Failed to verify OTP")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """
    Clear the session cookie.

    Tokens are stateless; logout removes the browser's copy. The token
    itself stays valid until it expires.
    """
    response = jsonify({"message": "Logout successful"})
    response.delete_cookie(
        current_app.config["CUSTOMER_COOKIE_NAME"],
        path="/",
        httponly=True,
        samesite="Strict",
    )
    return response, 200


@auth_bp.get("/me")
@require_customer
def me_route():
    return jsonify({"user": g.current_customer.to_dict()}), 200


@auth_bp.put("/profile")
@require_customer
def update_profile_route():
    """Update name / phone / address of the signed-in customer."""
    try:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"error": "JSON object body required"}), 400
        customer = customer_service.update_profile(g.current_customer.id, data)
        return jsonify({"user": customer.to_dict()}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update profile")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.delete("/account")
@require_customer
def delete_account_route():
    """
    Delete the signed-in customer's account and clear the cookie.

    Past orders are kept but no longer linked to the account.
    """
    try:
        detached = customer_service.delete_account(g.current_customer.id)
        response = jsonify({"message": "Account deleted", "detached_orders": detached})
        response.delete_cookie(current_app.config["CUSTOMER_COOKIE_NAME"], path="/")
        return response, 200

    except Exception:
        current_app.logger.exception("Failed to delete account")
        return jsonify({"error": "Internal server error"}), 500
