# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/marketplace/routes/auth.py
"""
Authentication API routes

FLOW:
- POST /signup     creates an unverified seller or buyer and emails a code
- POST /verify     checks the code, sends the welcome email, returns a token
- POST /login      verified accounts only
- POST /resend-otp new code for an unverified account
- POST /logout     revokes the presented token
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import MarketplaceError
from ..services import auth_service
from ..services import session_service
from ..decorators import require_auth, bearer_token


auth_bp = Blueprint("auth", __name__, url_prefix="/api/v1/auth")


@auth_bp.post("/signup")
def signup_route():
    """
    Register a seller or buyer.

    Re-submitting the email of an unverified account sends a fresh code.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")
        role = data.get("role")

        if not all([email, password, role]):
            return jsonify({"error": "email, password and role required"}), 400

        account, created = auth_service.signup(email, password, role)

        message = (
            "User registered successfully. Please check your email for the verification code."
            if created
            else "Verification code resent. Please check your email."
        )
        return jsonify({
            "account": account.to_dict(),
            "message": message,
        }), 201 if created else 200

    except MarketplaceError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to register user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/verify")
def verify_route():
    """Verify the emailed code and log the account in."""
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        code = data.get("otp") or data.get("code")

        if not all([email, code]):
            return jsonify({"error": "email and otp required"}), 400

        account, session, token = auth_service.complete_verification(
            email,
            str(code),
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify({
            "account": account.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "message": "Email verified successfully",
        }), 200

    except MarketplaceError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to verify account")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/login")
def login_route():
    """
    Authenticate and create a session token.

    Token must be included in the Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required"}), 400

        account = auth_service.authenticate(email, password)

        session, token = session_service.create_session(
            account.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify({
            "account": account.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful",
        }), 200

    except MarketplaceError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/resend-otp")
def resend_otp_route():
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        if not email:
            return jsonify({"error": "email required"}), 400

        auth_service.resend_challenge(email)
        return jsonify({"message": "New verification code sent to your email"}), 200

    except MarketplaceError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to resend verification code")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the current session token."""
    try:
        session_service.revoke_session(bearer_token(), reason="User logout")
        current_app.logger.info("Account %s logged out", g.current_account.id)
        return jsonify({"message": "Logged out successfully"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"account": g.current_account.to_dict()}), 200
