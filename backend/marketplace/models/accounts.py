from __future__ import annotations

import enum

from ..extensions import db
from marketplace.time_utils import to_utc_z


class Role(str, enum.Enum):
    """Closed set of account roles. Stored as the plain string value."""
    ADMIN = "admin"
    SELLER = "seller"
    BUYER = "buyer"


class Account(db.Model):
    """
    Marketplace account (admin, seller or buyer).

    VERIFICATION: Accounts are created unverified. otp_code/otp_expires_at
    hold the outstanding email challenge and are always set or cleared
    together. An unverified account never authenticates.

    Deleted only through cascade_service.delete_account().
    """
    __tablename__ = "accounts"
    __table_args__ = (
        db.CheckConstraint(
            "(otp_code IS NULL AND otp_expires_at IS NULL)"
            " OR (otp_code IS NOT NULL AND otp_expires_at IS NOT NULL)",
            name="ck_accounts_otp_pair",
        ),
        db.CheckConstraint("role IN ('admin', 'seller', 'buyer')", name="ck_accounts_role"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(16), nullable=False, index=True)

    is_verified = db.Column(db.Boolean, nullable=False, default=False)
    otp_code = db.Column(db.String(16), nullable=True)
    otp_expires_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @property
    def role_kind(self) -> Role:
        return Role(self.role)

    @property
    def display_name(self) -> str:
        return self.email.split("@", 1)[0]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "role": self.role,
            "is_verified": self.is_verified,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }


class SessionToken(db.Model):
    """
    Session tokens for authentication.

    WHY: Opaque bearer tokens, stored only as a SHA-256 hash. Revocable on
    logout and removed with the account.
    """
    __tablename__ = "session_tokens"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)

    token_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime, nullable=False)
    last_used_at = db.Column(db.DateTime, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False)
    revoked_at = db.Column(db.DateTime, nullable=True)
    revoked_reason = db.Column(db.String(255), nullable=True)

    user_agent = db.Column(db.String(512), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)

    account = db.relationship(
        "Account",
        backref=db.backref("sessions", lazy=True, cascade="all, delete-orphan"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
            "expires_at": to_utc_z(self.expires_at),
            "is_revoked": self.is_revoked,
        }
