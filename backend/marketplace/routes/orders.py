# Overview: Flask API routes for buyer order operations; parses input and returns JSON responses.

"""
Buyer order routes.

SECURITY: All routes require authentication and the buyer role. Orders
belonging to another buyer answer 404, never 403, so order ids do not
leak across accounts.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import MarketplaceError
from ..models import Role
from ..services import order_service
from ..decorators import require_auth, require_role


orders_bp = Blueprint("orders", __name__, url_prefix="/api/v1/orders")


@orders_bp.post("")
@require_auth
@require_role(Role.BUYER)
def place_order_route():
    """
    Place an order against one listing.

    Body: listing_id, quantity (default 1), payment_method ("cod"/"online"),
    shipping_address, order_notes (optional)
    """
    try:
        data = request.get_json(silent=True) or {}
        listing_id = data.get("listing_id")
        payment_method = data.get("payment_method")
        shipping_address = data.get("shipping_address")

        if not all([listing_id, payment_method, shipping_address]):
            return jsonify({"error": "listing_id, payment_method and shipping_address required"}), 400
        if not isinstance(listing_id, int) or isinstance(listing_id, bool):
            return jsonify({"error": "listing_id must be an integer"}), 400

        order = order_service.place_order(
            g.current_account.id,
            listing_id,
            data.get("quantity", 1),
            payment_method,
            shipping_address,
            order_notes=data.get("order_notes"),
        )
        return jsonify({"order": order.to_dict(), "message": "Order placed successfully"}), 201

    except MarketplaceError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to place order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("")
@require_auth
@require_role(Role.BUYER)
def list_orders_route():
    """
    List the caller's orders, newest first.

    Query params:
    - status: pending/confirmed/shipped/delivered/cancelled (optional)
    """
    try:
        orders = order_service.list_orders(g.current_account.id, status=request.args.get("status"))
        return jsonify({
            "orders": [order.to_dict() for order in orders],
            "count": len(orders),
        }), 200

    except MarketplaceError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/stats")
@require_auth
@require_role(Role.BUYER)
def order_stats_route():
    try:
        return jsonify({"stats": order_service.buyer_stats(g.current_account.id)}), 200

    except Exception:
        current_app.logger.exception("Failed to compute order stats")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>")
@require_auth
@require_role(Role.BUYER)
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(order_id, buyer_id=g.current_account.id)
        return jsonify({"order": order.to_dict()}), 200

    except MarketplaceError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to get order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.patch("/<int:order_id>/cancel")
@require_auth
@require_role(Role.BUYER)
def cancel_order_route(order_id: int):
    """Cancel a pending order; its quantity goes back to the listing."""
    try:
        order = order_service.cancel_order(order_id, g.current_account.id)
        return jsonify({"order": order.to_dict(), "message": "Order cancelled successfully"}), 200

    except MarketplaceError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to cancel order")
        return jsonify({"error": "Internal server error"}), 500
