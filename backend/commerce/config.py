# backend/commerce/config.py
from __future__ import annotations
import os
from datetime import timedelta


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/atelier.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///atelier.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Admin and customer tokens are signed with different secrets so a token
    # minted for one principal can never verify as the other.
    ADMIN_JWT_SECRET = os.environ.get("ADMIN_JWT_SECRET", "dev-admin-secret-DO-NOT-USE-IN-PRODUCTION")
    CUSTOMER_JWT_SECRET = os.environ.get("CUSTOMER_JWT_SECRET", "dev-customer-secret-DO-NOT-USE-IN-PRODUCTION")
    ADMIN_TOKEN_TTL = timedelta(hours=8)
    CUSTOMER_TOKEN_TTL = timedelta(days=7)

    # Single store administrator; generate the hash with `flask admin hash-password`
    ADMIN_USERNAME = os.environ.get("ADMIN_USERNAME", "admin")
    ADMIN_PASSWORD_HASH = os.environ.get("ADMIN_PASSWORD_HASH")

    OTP_TTL = timedelta(minutes=10)
    OTP_MAX_PER_HOUR = int(os.environ.get("OTP_MAX_PER_HOUR", "5"))

    ORDER_CANCEL_WINDOW = timedelta(days=2)
    ENFORCE_ORDER_STATE_PAIRS = _env_flag("ENFORCE_ORDER_STATE_PAIRS", True)

    MUTATION_DEBOUNCE_SECONDS = float(os.environ.get("MUTATION_DEBOUNCE_SECONDS", "0.3"))

    CUSTOMER_COOKIE_NAME = "atelier_user_token"
    SESSION_COOKIE_SECURE = _env_flag("SESSION_COOKIE_SECURE", False)

    # Email: Resend when a key is configured, otherwise OTPs are only logged
    RESEND_API_KEY = os.environ.get("RESEND_API_KEY")
    MAIL_FROM = os.environ.get("MAIL_FROM", "Atelier <noreply@atelier.example>")
    STORE_NAME = os.environ.get("STORE_NAME", "Atelier")
    NOTIFICATIONS_ASYNC = _env_flag("NOTIFICATIONS_ASYNC", True)

    CORS_ALLOWED_ORIGINS = {
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000",
        ).split(",")
        if origin.strip()
    }
