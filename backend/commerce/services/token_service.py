# Overview: Signed session tokens for the two principal kinds (admin, customer).

"""
Session Token Service

Admin and customer sessions are separate token spaces:
- Each kind is signed (HS256) with its own secret and has its own lifetime
  (admin: ADMIN_TOKEN_TTL, 8h; customer: CUSTOMER_TOKEN_TTL, 7 days).
- The verifying secret is chosen by the kind the endpoint EXPECTS, and the
  embedded "kind" claim must match it as well. A customer token presented
  to an admin endpoint fails even if both secrets were misconfigured to be
  equal.

validate_token() fails closed: bad encoding, bad signature, expiry, missing
claims and wrong kind all raise the same AuthenticationFailure with the same
message, so a caller cannot learn which check failed.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

import bcrypt
import jwt
from flask import current_app


KIND_ADMIN = "admin"
KIND_CUSTOMER = "customer"

_SECRET_KEYS = {
    KIND_ADMIN: "ADMIN_JWT_SECRET",
    KIND_CUSTOMER: "CUSTOMER_JWT_SECRET",
}
_TTL_KEYS = {
    KIND_ADMIN: "ADMIN_TOKEN_TTL",
    KIND_CUSTOMER: "CUSTOMER_TOKEN_TTL",
}

GENERIC_AUTH_ERROR = "Invalid or expired credentials"


class AuthenticationFailure(Exception):
    """Any authentication rejection. The message never reveals the cause."""

    def __init__(self, message: str = GENERIC_AUTH_ERROR):
        super().__init__(message)


@dataclass(frozen=True)
class Principal:
    """Validated identity carried by a session token."""
    subject_id: str
    kind: str
    issued_at: datetime
    expires_at: datetime


def _secret_for(kind: str) -> str:
    if kind not in _SECRET_KEYS:
        raise ValueError(f"Unknown principal kind {kind!r}")
    return current_app.config[_SECRET_KEYS[kind]]


def issue_token(subject_id: str | int, kind: str, *, now: datetime | None = None) -> tuple[str, Principal]:
    """Sign a token for subject_id. Returns (token, principal)."""
    secret = _secret_for(kind)
    issued_at = now or datetime.now(timezone.utc)
    expires_at = issued_at + current_app.config[_TTL_KEYS[kind]]

    payload = {
        "sub": str(subject_id),
        "kind": kind,
        "iat": issued_at,
        "exp": expires_at,
    }
    token = jwt.encode(payload, secret, algorithm="HS256")
    return token, Principal(
        subject_id=str(subject_id),
        kind=kind,
        issued_at=issued_at,
        expires_at=expires_at,
    )


def validate_token(token: str | None, expected_kind: str) -> Principal:
    """Return the token's principal or raise AuthenticationFailure."""
    if not token:
        raise AuthenticationFailure()
    try:
        claims = jwt.decode(
            token,
            _secret_for(expected_kind),
            algorithms=["HS256"],
            options={"require": ["sub", "kind", "iat", "exp"]},
        )
    except jwt.PyJWTError:
        raise AuthenticationFailure()

    if claims.get("kind") != expected_kind:
        raise AuthenticationFailure()

    return Principal(
        subject_id=claims["sub"],
        kind=claims["kind"],
        issued_at=datetime.fromtimestamp(claims["iat"], tz=timezone.utc),
        expires_at=datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
    )


def hash_password(password: str) -> str:
    """Hash password using bcrypt with cost factor 12."""
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str | None) -> bool:
    """Timing-safe bcrypt check. A missing or malformed hash never matches."""
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def authenticate_admin(username: str, password: str) -> tuple[str, Principal]:
    """
    Check the store administrator's credentials and issue an admin token.

    Raises AuthenticationFailure for a wrong username, a wrong password, or
    when no ADMIN_PASSWORD_HASH is configured.
    """
    expected_username = current_app.config["ADMIN_USERNAME"]
    password_ok = verify_password(password, current_app.config.get("ADMIN_PASSWORD_HASH"))
    if username != expected_username or not password_ok:
        raise AuthenticationFailure()
    return issue_token(username, KIND_ADMIN)
