# Overview: Flask API routes for admin operations; parses input and returns JSON responses.

# backend/marketplace/routes/admin.py
"""
Admin API routes.

SECURITY: All routes require authentication and the admin role. The
services re-check the admin capability on the requesting account id.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import CascadeFailed, MarketplaceError
from ..models import Role
from ..services import cascade_service, operator_service, order_service, reporting_service
from ..decorators import require_auth, require_role


admin_bp = Blueprint("admin", __name__, url_prefix="/api/v1/admin")


@admin_bp.get("/accounts")
@require_auth
@require_role(Role.ADMIN)
def list_accounts_route():
    """
    Query params:
    - role: admin|seller|buyer (optional)
    """
    try:
        accounts = reporting_service.list_accounts(request.args.get("role"))
        return jsonify({
            "accounts": [account.to_dict() for account in accounts],
            "count": len(accounts),
        }), 200

    except MarketplaceError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to list accounts")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.get("/accounts/<int:account_id>")
@require_auth
@require_role(Role.ADMIN)
def get_account_route(account_id: int):
    try:
        return jsonify(reporting_service.account_overview(account_id)), 200

    except MarketplaceError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to get account")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.get("/dashboard")
@require_auth
@require_role(Role.ADMIN)
def dashboard_route():
    try:
        return jsonify(reporting_service.admin_dashboard()), 200

    except Exception:
        current_app.logger.exception("Failed to build admin dashboard")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.get("/system")
@require_auth
@require_role(Role.ADMIN)
def system_route():
    try:
        return jsonify(reporting_service.system_status()), 200

    except Exception:
        current_app.logger.exception("Failed to read system status")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.delete("/accounts/<int:account_id>")
@require_auth
@require_role(Role.ADMIN)
def delete_account_route(account_id: int):
    """
    Delete an account with its dependent records.

    Sellers lose their listings, buyers have their pending orders cancelled.
    All or nothing.
    """
    try:
        summary = cascade_service.delete_account(account_id, g.current_account.id)
        return jsonify({"deleted": summary, "message": "User deleted successfully"}), 200

    except CascadeFailed as e:
        current_app.logger.error("Account deletion failed: %r", e.cause)
        return jsonify({"error": str(e), "details": e.details}), e.http_status
    except MarketplaceError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to delete account")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.patch("/accounts/<int:account_id>/status")
@require_auth
@require_role(Role.ADMIN)
def update_account_status_route(account_id: int):
    """Body: {"is_verified": true|false}"""
    try:
        data = request.get_json(silent=True) or {}
        is_verified = data.get("is_verified")
        if not isinstance(is_verified, bool):
            return jsonify({"error": "is_verified must be a boolean value"}), 400

        account = cascade_service.set_verification_status(
            account_id, is_verified, g.current_account.id
        )
        state = "verified" if is_verified else "unverified"
        return jsonify({"account": account.to_dict(), "message": f"User {state} successfully"}), 200

    except MarketplaceError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update account status")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.patch("/orders/<int:order_id>/status")
@require_auth
@require_role(Role.ADMIN)
def update_order_status_route(order_id: int):
    """Body: {"status": "confirmed"|"shipped"|"delivered"}"""
    try:
        data = request.get_json(silent=True) or {}
        status = data.get("status")
        if not status:
            return jsonify({"error": "status required"}), 400

        order = order_service.advance_status(order_id, status, admin_id=g.current_account.id)
        return jsonify({"order": order.to_dict(), "message": "Order status updated successfully"}), 200

    except MarketplaceError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.patch("/orders/<int:order_id>/cancel")
@require_auth
@require_role(Role.ADMIN)
def cancel_order_route(order_id: int):
    try:
        order = order_service.admin_cancel_order(order_id, g.current_account.id)
        return jsonify({"order": order.to_dict(), "message": "Order cancelled successfully"}), 200

    except MarketplaceError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to cancel order")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.get("/operator-events")
@require_auth
@require_role(Role.ADMIN)
def list_operator_events_route():
    """
    Inconsistencies waiting for manual reconciliation.

    Query params:
    - event_type: str (optional)
    - limit: int (optional, default 100, max 500)
    """
    limit = request.args.get("limit", default=100, type=int)
    limit = max(1, min(limit, 500))

    try:
        events = operator_service.list_events(request.args.get("event_type"), limit=limit)
        return jsonify({"events": [event.to_dict() for event in events], "count": len(events)}), 200

    except Exception:
        current_app.logger.exception("Failed to list operator events")
        return jsonify({"error": "Internal server error"}), 500
