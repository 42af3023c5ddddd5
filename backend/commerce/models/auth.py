from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class OneTimeCode(db.Model):
    """
    One-time login code for passwordless customer authentication.

    INVARIANTS:
    - At most one unconsumed, unexpired code per email. Issuing a new code
      marks every earlier live code consumed.
    - A consumed or expired code is inert forever (replay protection).

    The code itself is never stored; code_hash is its SHA-256 hex digest.
    """
    __tablename__ = "one_time_codes"
    __table_args__ = (
        db.Index("ix_one_time_codes_email_consumed", "email", "consumed"),
        db.Index("ix_one_time_codes_email_created", "email", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False)
    code_hash = db.Column(db.String(64), nullable=False)

    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    consumed = db.Column(db.Boolean, nullable=False, default=False)
    consumed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "expires_at": to_utc_z(self.expires_at),
            "consumed": self.consumed,
            "consumed_at": to_utc_z(self.consumed_at) if self.consumed_at else None,
            "created_at": to_utc_z(self.created_at),
        }
