# Overview: Service-layer operations for session; opaque bearer tokens for verified accounts.

"""
Bearer sessions for verified accounts.

The client holds a random 64-hex-char token; the database holds only its
SHA-256 digest. A session ends when:
- SESSION_ABSOLUTE_TIMEOUT passes since it was opened
- it sits unused longer than SESSION_IDLE_TIMEOUT (revoked on next use)
- the account is deleted or loses its verified flag (revoked on next use)
- the holder logs out
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from ..extensions import db
from ..models import Account, SessionToken
from marketplace.time_utils import utcnow


SESSION_ABSOLUTE_TIMEOUT = timedelta(hours=24)
SESSION_IDLE_TIMEOUT = timedelta(hours=2)


@dataclass
class SessionContext:
    """Authenticated caller: the account and the session it used."""
    account: Account
    session: SessionToken


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """Tokens carry 256 bits of entropy, so a plain digest is enough (no bcrypt)."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _active_session(token: str) -> SessionToken | None:
    return (
        db.session.query(SessionToken)
        .filter_by(token_hash=hash_token(token), is_revoked=False)
        .first()
    )


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason
    db.session.commit()


def create_session(
    account_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """
    Open a session and return (session_row, plaintext_token).

    The plaintext is returned once and never stored. Raises ValueError for
    a missing or unverified account; callers authenticate first.
    """
    account = db.session.get(Account, account_id)
    if account is None:
        raise ValueError("Account not found")
    if not account.is_verified:
        raise ValueError("Account is not verified")

    token = generate_token()
    opened_at = utcnow()
    session = SessionToken(
        account_id=account.id,
        token_hash=hash_token(token),
        created_at=opened_at,
        last_used_at=opened_at,
        expires_at=opened_at + SESSION_ABSOLUTE_TIMEOUT,
        is_revoked=False,
        user_agent=user_agent,
        ip_address=ip_address,
    )
    db.session.add(session)
    db.session.commit()
    return session, token


def validate_session(token: str) -> SessionContext | None:
    """Resolve a bearer token to its caller, or None. Touches last_used_at."""
    session = _active_session(token)
    if session is None:
        return None

    now = utcnow()
    if now > session.expires_at:
        return None
    if now - session.last_used_at > SESSION_IDLE_TIMEOUT:
        _revoke(session, "Idle timeout")
        return None

    account = session.account
    if account is None or not account.is_verified:
        _revoke(session, "Account not verified")
        return None

    session.last_used_at = now
    db.session.commit()
    return SessionContext(account=account, session=session)


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """Revoke by plaintext token. False when no active session matches."""
    session = _active_session(token)
    if session is None:
        return False
    _revoke(session, reason)
    return True
