# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .models import Role
from .services import session_service


def _is_authenticated() -> bool:
    return hasattr(g, 'current_account') and hasattr(g, 'session_context')


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1]


def require_auth(f):
    """
    Require a valid session token.

    Sets the following Flask g attributes:
    - g.current_account: The authenticated Account
    - g.session_context: The full SessionContext object

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, expired or revoked token
    - Account deleted or no longer verified
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_account = context.account
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: Role):
    """
    Require the caller's account to hold one of the given roles.

    Must be stacked below @require_auth.
    """
    allowed = {Role(role) for role in roles}

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            if g.current_account.role_kind not in allowed:
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": sorted(role.value for role in allowed),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
