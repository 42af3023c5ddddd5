# Overview: Request-shape validation; rejects malformed input before storage is touched.

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any


EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# Maximum price / fee: $9,999,999.99 (999,999,999 cents)
MAX_CENTS = 999_999_999
MAX_LINE_QUANTITY = 10_000
MAX_TEXT_LENGTH = 1000

PAYMENT_METHOD_ALIASES = {
    "COD": "COD",
    "BankTransfer": "BankTransfer",
    "Bank Transfer": "BankTransfer",
}


class ValidationError(ValueError):
    """400-level input problem."""


class NotFound(LookupError):
    """404-level missing resource."""


@dataclass(frozen=True)
class PaymentProof:
    transaction_id: str
    method: str
    screenshot_url: str
    fee_paid_cents: int | None = None


@dataclass(frozen=True)
class CheckoutLine:
    product_id: int
    quantity: int


@dataclass(frozen=True)
class CheckoutRequest:
    """
    Normalized checkout input.

    lines has one entry per product: duplicate product lines in the raw
    payload are merged by summing quantities, so the stock check and the
    decrement see the full amount requested for each product.
    """
    lines: tuple[CheckoutLine, ...]
    payment_method: str
    user_name: str
    phone: str
    address: str
    email: str | None = None
    payment_proof: PaymentProof | None = None
    clear_cart: bool = False


def normalize_email(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("Email is required")
    email = value.strip().lower()
    if len(email) > 255 or not EMAIL_RE.match(email):
        raise ValidationError("Invalid email format")
    return email


def require_int(value: Any, name: str, *, minimum: int | None = None, maximum: int | None = None) -> int:
    """
    Strict integer coercion: rejects bools, floats, decimals and
    scientific notation. Digit strings are accepted.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer")
    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped or "e" in stripped.lower() or "." in stripped:
            raise ValidationError(f"{name} must be an integer")
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{name} must be an integer")
    else:
        raise ValidationError(f"{name} must be an integer")

    if minimum is not None and result < minimum:
        raise ValidationError(f"{name} must be at least {minimum}")
    if maximum is not None and result > maximum:
        raise ValidationError(f"{name} must be at most {maximum}")
    return result


def require_str(value: Any, name: str, *, max_length: int = MAX_TEXT_LENGTH) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} is required")
    cleaned = value.strip()
    if len(cleaned) > max_length:
        raise ValidationError(f"{name} must be at most {max_length} characters")
    return cleaned


def optional_str(value: Any, name: str, *, max_length: int = MAX_TEXT_LENGTH) -> str | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return require_str(value, name, max_length=max_length)


def parse_payment_method(value: Any) -> str:
    method = PAYMENT_METHOD_ALIASES.get(value) if isinstance(value, str) else None
    if method is None:
        raise ValidationError("payment_method must be one of: COD, BankTransfer")
    return method


def parse_payment_proof(data: Any) -> PaymentProof:
    if not isinstance(data, dict):
        raise ValidationError("payment_proof must be an object")
    fee = data.get("fee_paid_cents")
    return PaymentProof(
        transaction_id=require_str(data.get("transaction_id"), "payment_proof.transaction_id", max_length=128),
        method=require_str(data.get("method"), "payment_proof.method", max_length=64),
        screenshot_url=require_str(data.get("screenshot_url"), "payment_proof.screenshot_url", max_length=1024),
        fee_paid_cents=None if fee is None else require_int(
            fee, "payment_proof.fee_paid_cents", minimum=0, maximum=MAX_CENTS
        ),
    )


def parse_checkout_payload(data: Any) -> CheckoutRequest:
    """
    Validate a checkout request body.

    Only product ids and quantities are taken from the client. Names and
    prices are snapshotted from the catalog by the order service.
    """
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")

    items = data.get("items")
    if not isinstance(items, list) or not items:
        raise ValidationError("Order must contain at least one item")

    quantities: dict[int, int] = {}
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"items[{index}] must be an object")
        product_id = require_int(item.get("product_id"), f"items[{index}].product_id", minimum=1)
        quantity = require_int(
            item.get("quantity"), f"items[{index}].quantity", minimum=1, maximum=MAX_LINE_QUANTITY
        )
        quantities[product_id] = quantities.get(product_id, 0) + quantity

    lines = tuple(CheckoutLine(product_id=pid, quantity=qty) for pid, qty in quantities.items())

    email = data.get("email")
    proof = data.get("payment_proof")
    payment_method = parse_payment_method(data.get("payment_method"))
    if proof is not None and payment_method != "BankTransfer":
        raise ValidationError("payment_proof is only accepted for BankTransfer orders")

    return CheckoutRequest(
        lines=lines,
        payment_method=payment_method,
        user_name=require_str(data.get("user_name"), "user_name", max_length=255),
        phone=require_str(data.get("phone"), "phone", max_length=64),
        address=require_str(data.get("address"), "address"),
        email=normalize_email(email) if email else None,
        payment_proof=parse_payment_proof(proof) if proof is not None else None,
        clear_cart=bool(data.get("clear_cart") or data.get("clearCart")),
    )
