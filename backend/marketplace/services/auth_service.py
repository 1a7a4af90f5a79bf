# Overview: Service-layer operations for auth; signup, verification flow and credential checks.

"""
Authentication Service

WHY: Accounts must prove email ownership before they can act. Signup
creates an unverified account and sends a one-time code; only after
verification can the account log in.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor BCRYPT_ROUNDS, default 12)
- Minimum 8 characters, at least one letter and one digit
- Session tokens managed separately (see session_service.py)
- Public signup creates sellers and buyers only; admins come from the CLI
"""

import re

import bcrypt
from flask import current_app

from ..extensions import db
from ..errors import (
    AccountExists,
    AccountNotVerified,
    AlreadyVerified,
    InvalidCredentials,
    MarketplaceError,
    NotFound,
    PasswordValidationError,
    ValidationError,
)
from ..models import Account, Role
from marketplace.time_utils import utcnow
from . import notifier, session_service, verification_service


EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
SIGNUP_ROLES = (Role.SELLER.value, Role.BUYER.value)


def normalize_email(email) -> str:
    if not isinstance(email, str) or not EMAIL_PATTERN.match(email.strip()):
        raise ValidationError("Please provide a valid email address")
    return email.strip().lower()


def validate_password_strength(password) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one letter
    - At least one digit

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Za-z]', password):
        raise PasswordValidationError("Password must contain at least one letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str) -> str:
    """Hash password using bcrypt. Password is validated for strength before hashing."""
    validate_password_strength(password)
    rounds = int(current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=rounds))
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() prevents timing attacks automatically.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except (ValueError, TypeError):
        return False


def _find_account(email: str) -> Account | None:
    return db.session.query(Account).filter_by(email=email).first()


def _issue_and_send(account: Account) -> None:
    """Issue a challenge in the open transaction, deliver it, then commit."""
    try:
        code = verification_service.issue_challenge(account.id, commit=False)
        notifier.send_challenge(account.email, code, account.display_name)
    except MarketplaceError:
        db.session.rollback()
        raise
    db.session.commit()


def signup(email, password, role) -> tuple[Account, bool]:
    """
    Register an account and send its verification code.

    Returns (account, created). An existing unverified account gets a new
    code instead (created=False); its password is left unchanged.

    Raises:
        AccountExists: the email belongs to a verified account
        NotificationError: the code could not be delivered; nothing is kept
    """
    email = normalize_email(email)
    if role not in SIGNUP_ROLES:
        raise ValidationError("Role must be either seller or buyer")

    existing = _find_account(email)
    if existing is not None:
        if existing.is_verified:
            raise AccountExists("User already exists and is verified")
        _issue_and_send(existing)
        return existing, False

    account = Account(
        email=email,
        password_hash=hash_password(password),
        role=role,
        is_verified=False,
    )
    db.session.add(account)
    db.session.flush()

    _issue_and_send(account)
    current_app.logger.info("Account %s registered as %s", account.id, role)
    return account, True


def resend_challenge(email) -> Account:
    """Send a fresh code to an unverified account."""
    email = normalize_email(email)
    account = _find_account(email)
    if account is None:
        raise NotFound("User not found")
    if account.is_verified:
        raise AlreadyVerified("User is already verified")

    _issue_and_send(account)
    return account


def complete_verification(
    email,
    code,
    user_agent: str | None = None,
    ip_address: str | None = None,
):
    """
    Verify the emailed code, send the welcome email and open a session.

    Returns (account, session, plaintext_token). A failed welcome email is
    logged and ignored.
    """
    email = normalize_email(email)
    account = _find_account(email)
    if account is None:
        raise NotFound("User not found")
    if account.is_verified:
        raise AlreadyVerified("User is already verified")

    account = verification_service.verify_challenge(account.id, code)
    notifier.send_welcome(account.email, account.display_name, account.role)

    session, token = session_service.create_session(
        account.id, user_agent=user_agent, ip_address=ip_address
    )
    return account, session, token


def authenticate(email, password) -> Account:
    """
    Check credentials. Unverified accounts never authenticate.

    Raises InvalidCredentials or AccountNotVerified.
    Updates last_login_at on success.
    """
    try:
        email = normalize_email(email)
    except ValidationError:
        raise InvalidCredentials("Invalid email or password")

    account = _find_account(email)
    if account is None or not verify_password(password or "", account.password_hash):
        raise InvalidCredentials("Invalid email or password")

    if not account.is_verified:
        raise AccountNotVerified("Please verify your email before logging in")

    account.last_login_at = utcnow()
    db.session.commit()
    return account


def create_admin(email, password) -> Account:
    """Create an already-verified admin account (CLI bootstrap)."""
    email = normalize_email(email)
    if _find_account(email) is not None:
        raise AccountExists("An account with this email already exists")

    account = Account(
        email=email,
        password_hash=hash_password(password),
        role=Role.ADMIN.value,
        is_verified=True,
    )
    db.session.add(account)
    db.session.commit()
    return account
