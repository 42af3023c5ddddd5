"""
OTP Request Throttling Service

WHY: Every OTP request sends an email. Without a cap, the endpoint can be
used to flood an inbox or to brute-force codes by cycling them.

RULE: at most OTP_MAX_PER_HOUR codes per email within a rolling hour
(default 5). Counted from one_time_codes rows, so no separate table is
needed and the window survives restarts.
"""

from datetime import datetime, timedelta

from flask import current_app

from ..extensions import db
from ..models import OneTimeCode
from ..time_utils import as_utc_naive, utcnow


THROTTLE_WINDOW = timedelta(hours=1)


class TooManyRequests(Exception):
    """Raised when an email has exhausted its OTP allowance for the window."""

    def __init__(self, retry_after_seconds: int | None = None):
        super().__init__("Too many OTP requests. Please try again later.")
        self.retry_after_seconds = retry_after_seconds


def get_recent_code_count(email: str, now: datetime | None = None) -> int:
    """Count codes issued to email within THROTTLE_WINDOW."""
    cutoff = (now or utcnow()) - THROTTLE_WINDOW
    return db.session.query(OneTimeCode).filter(
        OneTimeCode.email == email,
        OneTimeCode.created_at >= cutoff,
    ).count()


def check_otp_allowance(email: str, now: datetime | None = None) -> None:
    """
    Raise TooManyRequests if email may not receive another code yet.

    retry_after_seconds is measured from the oldest code still inside the
    window, i.e. when the first slot frees up.
    """
    now = now or utcnow()
    limit = current_app.config["OTP_MAX_PER_HOUR"]
    if get_recent_code_count(email, now) < limit:
        return

    oldest = db.session.query(OneTimeCode).filter(
        OneTimeCode.email == email,
        OneTimeCode.created_at >= now - THROTTLE_WINDOW,
    ).order_by(OneTimeCode.created_at.asc()).first()

    retry_after = None
    if oldest is not None:
        retry_after = max(int((as_utc_naive(oldest.created_at) + THROTTLE_WINDOW - now).total_seconds()), 1)
    raise TooManyRequests(retry_after)
