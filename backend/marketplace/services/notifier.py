# Overview: Account emails (verification code, welcome) rendered and handed to the email channel.

from __future__ import annotations

from flask import current_app

from ..errors import NotificationError
from ..models import Role
from ..notifications import get_email_channel


MARKETPLACE_NAME = "Suitcase Marketplace"

_ROLE_HIGHLIGHTS = {
    Role.SELLER: [
        "Start adding your suitcases to the marketplace",
        "Set competitive prices and manage your inventory",
        "Connect with buyers from around the world",
    ],
    Role.BUYER: [
        "Browse the collection of suitcases",
        "Place orders with cash on delivery or online payment",
        "Track your orders and manage your purchases",
    ],
    Role.ADMIN: [
        "Manage accounts and maintain marketplace quality",
        "Monitor orders and resolve disputes",
        "Keep marketplace operations running smoothly",
    ],
}


def _deliver(to: str, subject: str, body: str, html_body: str | None = None) -> dict:
    result = get_email_channel().send(to=to, subject=subject, body=body, html_body=html_body)
    if result.get("status") != "sent":
        raise NotificationError(
            "Failed to send email",
            details={"to": to, "subject": subject, "error": result.get("error")},
        )
    return result


def send_challenge(address: str, code: str, display_name: str) -> dict:
    """
    Deliver a verification code.

    Raises NotificationError on failure; signup and resend must fail with
    it, since the account is unusable without the code.
    """
    minutes = current_app.config.get("OTP_TTL_MINUTES", 10)
    subject = "Email Verification - OTP Code"
    body = (
        f"Welcome, {display_name}!\n\n"
        f"Thank you for joining {MARKETPLACE_NAME}. Your verification code is:\n\n"
        f"    {code}\n\n"
        f"This code will expire in {minutes} minutes.\n"
        "If you didn't create an account with us, please ignore this email.\n"
    )
    html_body = (
        f"<h2>Welcome, {display_name}!</h2>"
        f"<p>Your verification code is:</p>"
        f"<p style=\"font-size: 32px; letter-spacing: 5px;\"><strong>{code}</strong></p>"
        f"<p>This code will expire in {minutes} minutes.</p>"
    )
    result = _deliver(address, subject, body, html_body)
    current_app.logger.info("Verification code sent to %s", address)
    return result


def send_welcome(address: str, display_name: str, role: Role | str) -> dict | None:
    """
    Best-effort welcome email after verification.

    Never raises: a failed welcome must not undo or fail verification.
    """
    role = Role(role)
    highlights = "\n".join(f"- {line}" for line in _ROLE_HIGHLIGHTS[role])
    subject = f"Welcome to {MARKETPLACE_NAME}!"
    body = (
        f"Hi {display_name},\n\n"
        f"Your account has been verified. You're now a {role.value} member of {MARKETPLACE_NAME}.\n\n"
        f"{highlights}\n"
    )
    try:
        return _deliver(address, subject, body)
    except NotificationError as exc:
        current_app.logger.warning("Welcome email to %s failed: %s", address, exc.details.get("error"))
        return None
