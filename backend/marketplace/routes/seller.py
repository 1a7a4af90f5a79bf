# Overview: Flask API routes for seller listing operations; parses input and returns JSON responses.

"""
Seller listing routes.

SECURITY: All routes require authentication and the seller role. Every
listing operation is scoped to g.current_account; a listing owned by
another seller answers 403.

PRICES: Clients may send "rate" as a currency amount ("149.99") or
"rate_cents" as an integer. Stored and returned as rate_cents.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import MarketplaceError, ValidationError
from ..models import Role
from ..services import inventory_service, cascade_service, reporting_service
from ..validation import money_to_cents, parse_decimal
from ..decorators import require_auth, require_role


seller_bp = Blueprint("seller", __name__, url_prefix="/api/v1/seller")


def _listing_payload(data: dict) -> dict:
    fields = dict(data)
    if "rate" in fields:
        if "rate_cents" in fields:
            raise ValidationError("Send either rate or rate_cents, not both")
        fields["rate_cents"] = money_to_cents("rate", fields.pop("rate"))
    return fields


@seller_bp.get("/dashboard")
@require_auth
@require_role(Role.SELLER)
def dashboard_route():
    """Listing totals, counts per material and the five newest listings."""
    try:
        return jsonify(reporting_service.seller_dashboard(g.current_account.id)), 200

    except Exception:
        current_app.logger.exception("Failed to build seller dashboard")
        return jsonify({"error": "Internal server error"}), 500


@seller_bp.post("/listings")
@require_auth
@require_role(Role.SELLER)
def create_listing_route():
    try:
        data = request.get_json(silent=True) or {}
        listing = inventory_service.create_listing(g.current_account.id, _listing_payload(data))
        current_app.logger.info("Seller %s created listing %s", g.current_account.id, listing.id)
        return jsonify({"listing": listing.to_dict()}), 201

    except MarketplaceError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create listing")
        return jsonify({"error": "Internal server error"}), 500


@seller_bp.get("/listings")
@require_auth
@require_role(Role.SELLER)
def list_listings_route():
    """
    List the caller's listings.

    Query params:
    - material: str (optional)
    - available: "true" to hide sold listings (optional)
    """
    try:
        material = request.args.get("material")
        available_only = request.args.get("available", "").lower() == "true"
        listings = inventory_service.list_listings(
            seller_id=g.current_account.id,
            material=material,
            available_only=available_only,
        )
        return jsonify({
            "listings": [listing.to_dict() for listing in listings],
            "count": len(listings),
        }), 200

    except Exception:
        current_app.logger.exception("Failed to list listings")
        return jsonify({"error": "Internal server error"}), 500


@seller_bp.get("/listings/<int:listing_id>")
@require_auth
@require_role(Role.SELLER)
def get_listing_route(listing_id: int):
    try:
        listing = inventory_service.get_listing(listing_id)
        if listing.seller_id != g.current_account.id:
            return jsonify({"error": "Access denied. You can only view your own listings."}), 403
        return jsonify({"listing": listing.to_dict()}), 200

    except MarketplaceError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to get listing")
        return jsonify({"error": "Internal server error"}), 500


@seller_bp.patch("/listings/<int:listing_id>")
@require_auth
@require_role(Role.SELLER)
def update_listing_route(listing_id: int):
    """Edit descriptive fields and price. stock/is_sold are rejected here."""
    try:
        data = request.get_json(silent=True) or {}
        if not data:
            return jsonify({"error": "No fields to update"}), 400

        listing = inventory_service.update_listing(
            listing_id, g.current_account.id, _listing_payload(data)
        )
        return jsonify({"listing": listing.to_dict()}), 200

    except MarketplaceError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update listing")
        return jsonify({"error": "Internal server error"}), 500


@seller_bp.delete("/listings/<int:listing_id>")
@require_auth
@require_role(Role.SELLER)
def delete_listing_route(listing_id: int):
    try:
        inventory_service.delete_listing(listing_id, g.current_account.id)
        current_app.logger.info("Seller %s deleted listing %s", g.current_account.id, listing_id)
        return jsonify({"message": "Listing deleted successfully"}), 200

    except MarketplaceError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to delete listing")
        return jsonify({"error": "Internal server error"}), 500


@seller_bp.patch("/listings/<int:listing_id>/sold")
@require_auth
@require_role(Role.SELLER)
def mark_sold_route(listing_id: int):
    """Manual delisting: stock drops to zero."""
    try:
        listing = inventory_service.force_sold(listing_id, g.current_account.id)
        return jsonify({"listing": listing.to_dict(), "message": "Listing marked as sold"}), 200

    except MarketplaceError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to mark listing as sold")
        return jsonify({"error": "Internal server error"}), 500


@seller_bp.post("/listings/<int:listing_id>/restock")
@require_auth
@require_role(Role.SELLER)
def restock_route(listing_id: int):
    try:
        data = request.get_json(silent=True) or {}
        quantity = data.get("quantity")
        if quantity is None:
            return jsonify({"error": "quantity required"}), 400

        listing = inventory_service.restock(listing_id, g.current_account.id, quantity)
        return jsonify({"listing": listing.to_dict()}), 200

    except MarketplaceError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to restock listing")
        return jsonify({"error": "Internal server error"}), 500


@seller_bp.patch("/rates")
@require_auth
@require_role(Role.SELLER)
def adjust_rates_route():
    """
    Change the price of every listing of one material.

    Body: {"material": "leather", "increase_amount": "5.00"}
       or {"material": "leather", "percentage": 10}

    A selection with no listing answers 404 with matched_count 0.
    """
    try:
        data = request.get_json(silent=True) or {}
        material = data.get("material")
        if not material:
            return jsonify({"error": "material required"}), 400

        increase_cents = None
        percentage = None
        if data.get("increase_amount") is not None:
            increase_cents = money_to_cents("increase_amount", data["increase_amount"])
        if data.get("percentage") is not None:
            percentage = parse_decimal("percentage", data["percentage"])

        adjustment = cascade_service.bulk_adjust_rate(
            g.current_account.id,
            material,
            increase_cents=increase_cents,
            percentage=percentage,
        )
        return jsonify({
            **adjustment.to_dict(),
            "message": f"Updated rates for {adjustment.modified_count} {adjustment.material} listings",
        }), 200

    except MarketplaceError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to adjust listing rates")
        return jsonify({"error": "Internal server error"}), 500
