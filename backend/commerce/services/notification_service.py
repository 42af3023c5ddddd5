# Overview: Fire-and-forget email notifications (OTP codes, order confirmations, delivery notices).

"""
Notification Service

Delivery is a best-effort side channel, never part of the transactional
contract:
- dispatch() returns immediately; the send runs on a daemon thread when
  NOTIFICATIONS_ASYNC is on (inline otherwise, e.g. in tests).
- Every failure is caught and logged here. Callers never see an exception
  from a notification, so an SMTP/API outage cannot fail a checkout or an
  OTP request.
- Without RESEND_API_KEY the message is written to the log instead
  (development mode).
"""

from __future__ import annotations

import threading

import resend
from flask import current_app


class NotificationFailure(Exception):
    """The email provider rejected or failed to accept a message."""


def send_email(to: str, subject: str, text: str, html: str | None = None) -> None:
    """Send one email synchronously. Raises NotificationFailure."""
    api_key = (current_app.config.get("RESEND_API_KEY") or "").strip()
    if not api_key:
        current_app.logger.info("Email (dev mode, no provider configured) to=%s subject=%r\n%s", to, subject, text)
        return

    payload: dict[str, object] = {
        "from": current_app.config["MAIL_FROM"],
        "to": [to],
        "subject": subject,
        "text": text,
    }
    if html:
        payload["html"] = html

    resend.api_key = api_key
    try:
        response = resend.Emails.send(payload)
    except Exception as exc:
        raise NotificationFailure(str(exc)) from exc

    if not isinstance(response, dict) or not response.get("id"):
        raise NotificationFailure(f"Unexpected provider response: {response!r}")


def _run_logged(app, description: str, func, args: tuple) -> None:
    with app.app_context():
        try:
            func(*args)
        except Exception:
            app.logger.exception("Notification failed: %s", description)


def dispatch(description: str, func, *args) -> None:
    """Run func(*args) without letting it block or fail the caller."""
    app = current_app._get_current_object()
    if not app.config.get("NOTIFICATIONS_ASYNC", True):
        _run_logged(app, description, func, args)
        return

    worker = threading.Thread(
        target=_run_logged,
        args=(app, description, func, args),
        name=f"notify-{description}",
        daemon=True,
    )
    worker.start()


# ---------------------------------------------------------------------------
# Message builders
# ---------------------------------------------------------------------------

def _format_cents(cents: int) -> str:
    return f"{cents / 100:.2f}"


def _send_otp(email: str, code: str, ttl_minutes: int) -> None:
    store = current_app.config["STORE_NAME"]
    send_email(
        email,
        f"Your {store} Login Code: {code}",
        (
            f"Your one-time login code is: {code}\n\n"
            f"This code will expire in {ttl_minutes} minutes.\n\n"
            "If you didn't request this code, please ignore this email."
        ),
    )


def _send_order_confirmation(order: dict) -> None:
    store = current_app.config["STORE_NAME"]
    lines = "\n".join(
        f"- {item['name']} x{item['quantity']} ({_format_cents(item['price_cents'])})"
        for item in order["items"]
    )
    send_email(
        order["email"],
        f"{store}: order #{order['id']} received",
        (
            f"Thank you for your order, {order['user_name']}.\n\n"
            f"Order #{order['id']}\n{lines}\n\n"
            f"Total: {_format_cents(order['total_price_cents'])}\n"
            f"Payment method: {order['payment_method']}\n"
            f"Shipping to: {order['address']}\n"
        ),
    )


def _send_delivered(order: dict) -> None:
    store = current_app.config["STORE_NAME"]
    send_email(
        order["email"],
        f"{store}: order #{order['id']} delivered",
        (
            f"Hello {order['user_name']},\n\n"
            f"Your order #{order['id']} has been delivered. "
            "We hope you enjoy it, and we would love to hear your review."
        ),
    )


def notify_otp(email: str, code: str) -> None:
    ttl_minutes = int(current_app.config["OTP_TTL"].total_seconds() // 60)
    dispatch("otp", _send_otp, email, code, ttl_minutes)


def notify_order_confirmation(order: dict) -> None:
    if not order.get("email"):
        return
    dispatch(f"order-{order['id']}-confirmation", _send_order_confirmation, order)


def notify_order_delivered(order: dict) -> None:
    if not order.get("email"):
        return
    dispatch(f"order-{order['id']}-delivered", _send_delivered, order)
