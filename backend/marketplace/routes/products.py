# Overview: Flask API routes for the buyer catalogue; read-only listing browse.

from flask import Blueprint, request, jsonify, current_app

from ..errors import MarketplaceError
from ..models import MATERIALS
from ..services import inventory_service
from ..decorators import require_auth


products_bp = Blueprint("products", __name__, url_prefix="/api/v1/products")


@products_bp.get("")
@require_auth
def list_products_route():
    """
    Available listings across all sellers.

    Query params:
    - material: one of MATERIALS (optional)
    """
    material = request.args.get("material")
    if material is not None and material not in MATERIALS:
        return jsonify({"error": f"material must be one of: {', '.join(MATERIALS)}"}), 400

    try:
        listings = inventory_service.list_listings(material=material, available_only=True)
        return jsonify({
            "products": [listing.to_dict() for listing in listings],
            "count": len(listings),
        }), 200

    except Exception:
        current_app.logger.exception("Failed to list products")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:listing_id>")
@require_auth
def get_product_route(listing_id: int):
    try:
        listing = inventory_service.get_listing(listing_id)
        return jsonify({"product": listing.to_dict()}), 200

    except MarketplaceError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to get product")
        return jsonify({"error": "Internal server error"}), 500
