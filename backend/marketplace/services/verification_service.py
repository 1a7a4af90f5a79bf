# Overview: Service-layer operations for account verification; one-time passcode challenges.

"""
Account Verification State Machine

STATES (derived from the Account row):
    unverified-no-challenge      is_verified=False, otp_code IS NULL
    unverified-challenge-issued  is_verified=False, otp_code set
    verified                     is_verified=True,  otp_code IS NULL (terminal)

issue_challenge() may be called again while a challenge is outstanding
(resend); the newest code replaces the old one, last write wins.

Expiry is lazy: nothing runs when a code expires, verify_challenge()
compares against the clock.

verify_challenge() flips the account with ONE conditional UPDATE that still
requires is_verified=False and the same code/expiry. Two concurrent
verifications with the same valid code: exactly one UPDATE matches; the
other caller sees InvalidChallenge.
"""

from __future__ import annotations

import hmac
import random
import secrets
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..errors import AlreadyVerified, ExpiredChallenge, InvalidChallenge, NotFound
from ..models import Account
from marketplace.time_utils import utcnow
from .concurrency import compare_and_set


DEFAULT_OTP_LENGTH = 6
DEFAULT_OTP_TTL_MINUTES = 10

_system_random = secrets.SystemRandom()


def _otp_length() -> int:
    return int(current_app.config.get("OTP_LENGTH", DEFAULT_OTP_LENGTH))


def _otp_ttl() -> timedelta:
    return timedelta(minutes=int(current_app.config.get("OTP_TTL_MINUTES", DEFAULT_OTP_TTL_MINUTES)))


def generate_code(length: int = DEFAULT_OTP_LENGTH, rng: random.Random | None = None) -> str:
    """
    Numeric code of exactly `length` digits (no leading zero).

    Pass a seeded random.Random for reproducible codes; the default source
    is the OS generator.
    """
    rng = rng or _system_random
    return str(rng.randint(10 ** (length - 1), 10 ** length - 1))


def issue_challenge(
    account_id: int,
    *,
    now: datetime | None = None,
    rng: random.Random | None = None,
    commit: bool = True,
) -> str:
    """
    Store a fresh code and expiry on the account and return the code.

    The caller delivers the code. Raises NotFound for an unknown account
    and AlreadyVerified once the account is verified.
    """
    now = now or utcnow()
    code = generate_code(_otp_length(), rng)
    expires_at = now + _otp_ttl()

    changed = compare_and_set(
        update(Account)
        .where(Account.id == account_id, Account.is_verified.is_(False))
        .values(otp_code=code, otp_expires_at=expires_at)
    )
    if changed == 0:
        account = db.session.query(Account).filter_by(id=account_id).first()
        if account is None:
            raise NotFound("Account not found", {"account_id": account_id})
        raise AlreadyVerified("Account is already verified")

    if commit:
        db.session.commit()
    return code


def verify_challenge(account_id: int, submitted_code: str, *, now: datetime | None = None) -> Account:
    """
    Check a submitted code and mark the account verified.

    Raises:
        NotFound: unknown account
        InvalidChallenge: no outstanding code, wrong code, or lost a
            concurrent verification race
        ExpiredChallenge: now is past otp_expires_at (account left unverified)

    AlreadyVerified is the caller's precondition check, not raised here.
    """
    now = now or utcnow()
    account = (
        db.session.query(Account)
        .filter_by(id=account_id)
        .populate_existing()
        .first()
    )
    if account is None:
        raise NotFound("Account not found", {"account_id": account_id})

    code = account.otp_code
    expires_at = account.otp_expires_at
    if code is None or expires_at is None:
        raise InvalidChallenge("No verification code has been issued")

    if now > expires_at:
        raise ExpiredChallenge("Verification code has expired")

    if not hmac.compare_digest(code, str(submitted_code or "")):
        raise InvalidChallenge("Invalid verification code")

    changed = compare_and_set(
        update(Account)
        .where(
            Account.id == account_id,
            Account.is_verified.is_(False),
            Account.otp_code == code,
            Account.otp_expires_at == expires_at,
        )
        .values(is_verified=True, otp_code=None, otp_expires_at=None)
    )
    if changed == 0:
        db.session.rollback()
        raise InvalidChallenge("Invalid verification code")

    db.session.commit()
    return account
