# Overview: One-time login codes for passwordless customer authentication.

"""
OTP Store

FLOW:
    request_login_code(email)  -> throttle, supersede old codes, store new
                                  code, email it (fire-and-forget)
    verify_login_code(email, code) -> consume code, get-or-create Customer

SECURITY NOTES:
- Codes are 6 digits from the `secrets` CSPRNG and expire after OTP_TTL
  (10 minutes).
- Only a SHA-256 digest of the code is stored.
- At most one live code per email: issuing a code marks every earlier
  unconsumed code consumed in the same transaction.
- Only the newest code for an email is ever accepted, and consumption is a
  conditional UPDATE (consumed = false -> true), so a code verifies at most
  once even when two requests race.
- request_login_code answers the same way for known and unknown emails; the
  Customer row is only created on the first successful verify.
"""

from __future__ import annotations

import hashlib
import secrets
from datetime import datetime

from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..models import OneTimeCode, Customer
from ..time_utils import as_utc_naive, utcnow
from ..validation import normalize_email
from .concurrency import begin_write_transaction, run_with_retry
from .login_throttle_service import check_otp_allowance
from .notification_service import notify_otp
from .token_service import AuthenticationFailure


CODE_LENGTH = 6


def generate_code() -> str:
    """Six-digit numeric code, leading zeros allowed."""
    return f"{secrets.randbelow(10 ** CODE_LENGTH):0{CODE_LENGTH}d}"


def hash_code(code: str) -> str:
    return hashlib.sha256(code.encode("utf-8")).hexdigest()


def issue_code(email: str, *, now: datetime | None = None) -> str:
    """
    Store a fresh code for email, superseding any live one.

    Returns the plaintext code; it is never persisted.
    """
    email = normalize_email(email)
    now = now or utcnow()
    code = generate_code()

    def _op():
        begin_write_transaction()
        db.session.execute(
            update(OneTimeCode)
            .where(OneTimeCode.email == email, OneTimeCode.consumed.is_(False))
            .values(consumed=True, consumed_at=now)
            .execution_options(synchronize_session=False)
        )
        db.session.add(OneTimeCode(
            email=email,
            code_hash=hash_code(code),
            expires_at=now + current_app.config["OTP_TTL"],
            consumed=False,
            created_at=now,
        ))
        db.session.commit()

    run_with_retry(_op)
    return code


def request_login_code(email: str, *, now: datetime | None = None) -> None:
    """
    Issue a code and send it by email.

    Raises ValidationError for a malformed email and TooManyRequests when
    the hourly allowance is spent. Email delivery problems are logged by the
    notifier and never raised.
    """
    email = normalize_email(email)
    check_otp_allowance(email, now)
    code = issue_code(email, now=now)
    notify_otp(email, code)


def verify_login_code(email: str, code: str, *, now: datetime | None = None) -> Customer:
    """
    Consume a code and return the Customer it authenticates.

    Any failure (unknown email, wrong code, superseded, consumed, expired,
    lost race) raises the same AuthenticationFailure.
    """
    try:
        email = normalize_email(email)
    except ValueError:
        raise AuthenticationFailure()
    if not isinstance(code, str) or len(code) != CODE_LENGTH or not code.isdigit():
        raise AuthenticationFailure()

    now = now or utcnow()

    def _op():
        latest = db.session.query(OneTimeCode).filter(
            OneTimeCode.email == email,
        ).order_by(OneTimeCode.created_at.desc(), OneTimeCode.id.desc()).first()

        if (
            latest is None
            or latest.consumed
            or as_utc_naive(latest.expires_at) <= now
            or not secrets.compare_digest(latest.code_hash, hash_code(code))
        ):
            raise AuthenticationFailure()

        consumed = db.session.execute(
            update(OneTimeCode)
            .where(
                OneTimeCode.id == latest.id,
                OneTimeCode.consumed.is_(False),
                OneTimeCode.expires_at > now,
            )
            .values(consumed=True, consumed_at=now)
            .execution_options(synchronize_session=False)
        )
        if consumed.rowcount != 1:
            raise AuthenticationFailure()

        customer = db.session.query(Customer).filter_by(email=email).first()
        if customer is None:
            customer = Customer(email=email)
            db.session.add(customer)
        customer.last_login_at = now

        db.session.commit()
        return customer

    return run_with_retry(_op)
